"""
Point balance stores used by the settlement protocol.

Every mutation is a signed delta applied inside one atomic unit together with
its zero floor and its idempotency marker:
  - users/{uid}                              totalPoints, lastCarbonSurveyDate
  - users/{uid}/carbonSubmissions/{id}       settlement record + finalized flag
  - users/{uid}/pointLedger/{operationId}    one document per applied delta
"""

import logging
import threading

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from carbon.exceptions import BalanceStoreUnavailable, SubmissionNotFound, SurveyCooldownActive
from carbon.settlement import (
    SettlementRecord,
    cooldown_remaining,
    finalization_delta,
    finalize_operation_id,
    finalize_with_receipt,
    provisional_operation_id,
)


class FirestoreBalanceStore:
    def __init__(self, db_factory):
        # The client is created on first use so importing the app never
        # needs credentials.
        self._db_factory = db_factory

    @property
    def db(self):
        return self._db_factory()

    def _user_ref(self, user_id):
        return self.db.collection('users').document(user_id)

    def _run(self, transactional_fn, context):
        try:
            return transactional_fn(self.db.transaction())
        except google_exceptions.GoogleAPIError as e:
            logging.error(f"Balance store write failed in {context}: {e}", exc_info=True)
            raise BalanceStoreUnavailable(f"{context} failed: {e}") from e

    def get_balance(self, user_id):
        try:
            doc = self._user_ref(user_id).get(['totalPoints'])
        except google_exceptions.GoogleAPIError as e:
            raise BalanceStoreUnavailable(f"get_balance failed: {e}") from e
        if not doc.exists:
            return 0
        return int(doc.to_dict().get('totalPoints', 0))

    def get_last_survey_date(self, user_id):
        try:
            doc = self._user_ref(user_id).get(['lastCarbonSurveyDate'])
        except google_exceptions.GoogleAPIError as e:
            raise BalanceStoreUnavailable(f"get_last_survey_date failed: {e}") from e
        if not doc.exists:
            return None
        return doc.to_dict().get('lastCarbonSurveyDate')

    def set_last_survey_date(self, user_id, timestamp):
        try:
            self._user_ref(user_id).set({'lastCarbonSurveyDate': timestamp}, merge=True)
        except google_exceptions.GoogleAPIError as e:
            raise BalanceStoreUnavailable(f"set_last_survey_date failed: {e}") from e

    def get_submission(self, user_id, submission_id):
        try:
            doc = self._user_ref(user_id).collection('carbonSubmissions').document(submission_id).get()
        except google_exceptions.GoogleAPIError as e:
            raise BalanceStoreUnavailable(f"get_submission failed: {e}") from e
        if not doc.exists:
            return None
        return SettlementRecord.from_document(doc.to_dict())

    def apply_points_delta(self, user_id, delta, operation_id=None, reason=None):
        """Returns (applied, balance). A replayed operation_id is a no-op."""
        user_ref = self._user_ref(user_id)
        ledger_ref = user_ref.collection('pointLedger').document(operation_id) if operation_id else None

        @firestore.transactional
        def apply_in_transaction(transaction):
            if ledger_ref is not None and ledger_ref.get(transaction=transaction).exists:
                return False, None
            user_doc = user_ref.get(transaction=transaction)
            current = int(user_doc.to_dict().get('totalPoints', 0)) if user_doc.exists else 0
            new_total = max(0, current + int(delta))
            transaction.set(user_ref, {'totalPoints': new_total}, merge=True)
            if ledger_ref is not None:
                transaction.set(ledger_ref, {
                    'delta': int(delta), 'applied': new_total - current,
                    'reason': reason, 'appliedAt': firestore.SERVER_TIMESTAMP
                })
            return True, new_total

        return self._run(apply_in_transaction, "apply_points_delta")

    def record_submission(self, record: SettlementRecord, delta, now, cooldown_hours=0):
        """Returns (applied, balance). Raises SurveyCooldownActive inside the transaction."""
        user_ref = self._user_ref(record.user_id)
        submission_ref = user_ref.collection('carbonSubmissions').document(record.submission_id)
        ledger_ref = user_ref.collection('pointLedger').document(provisional_operation_id(record.submission_id))

        @firestore.transactional
        def record_in_transaction(transaction):
            if submission_ref.get(transaction=transaction).exists:
                return False, None
            user_doc = user_ref.get(transaction=transaction)
            user_data = user_doc.to_dict() if user_doc.exists else {}
            remaining = cooldown_remaining(user_data.get('lastCarbonSurveyDate'), now, cooldown_hours)
            if remaining is not None:
                raise SurveyCooldownActive(remaining)
            current = int(user_data.get('totalPoints', 0))
            new_total = max(0, current + int(delta))

            transaction.set(submission_ref, record.to_document())
            transaction.set(user_ref, {
                'totalPoints': new_total,
                'lastCarbonSurveyDate': now or firestore.SERVER_TIMESTAMP
            }, merge=True)
            transaction.set(ledger_ref, {
                'delta': int(delta), 'applied': new_total - current,
                'reason': 'carbon_survey', 'appliedAt': firestore.SERVER_TIMESTAMP
            })
            return True, new_total

        return self._run(record_in_transaction, "record_submission")

    def finalize_submission(self, user_id, submission_id, now=None):
        """Returns (applied, delta, balance); raises SubmissionNotFound."""
        user_ref = self._user_ref(user_id)
        submission_ref = user_ref.collection('carbonSubmissions').document(submission_id)
        ledger_ref = user_ref.collection('pointLedger').document(finalize_operation_id(submission_id))

        @firestore.transactional
        def finalize_in_transaction(transaction):
            submission_doc = submission_ref.get(transaction=transaction)
            if not submission_doc.exists:
                raise SubmissionNotFound(submission_id)
            record = SettlementRecord.from_document(submission_doc.to_dict())
            if record.finalized:
                return False, 0, None

            user_doc = user_ref.get(transaction=transaction)
            current = int(user_doc.to_dict().get('totalPoints', 0)) if user_doc.exists else 0
            delta = finalization_delta(record)
            new_total = max(0, current + delta)

            transaction.set(user_ref, {'totalPoints': new_total}, merge=True)
            transaction.update(submission_ref, {
                'finalized': True,
                'bonusPoints': finalize_with_receipt(record.base_points),
                'finalizedAt': now or firestore.SERVER_TIMESTAMP
            })
            transaction.set(ledger_ref, {
                'delta': delta, 'applied': new_total - current,
                'reason': 'carbon_verification', 'appliedAt': firestore.SERVER_TIMESTAMP
            })
            return True, delta, new_total

        return self._run(finalize_in_transaction, "finalize_submission")

    def health_check(self):
        try:
            _ = list(self.db.collection('users').limit(1).stream())
            return {"status": "OK", "details": "Firestore users collection is accessible."}
        except Exception as e:
            return {"status": "ERROR", "details": f"Failed to query Firestore: {str(e)}"}


class InMemoryBalanceStore:
    """
    Process-local store with the same contract, for tests and local runs.
    A single lock makes each operation atomic.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._balances = {}
        self._last_survey = {}
        self._submissions = {}
        self._ledger = {}

    def get_balance(self, user_id):
        with self._lock:
            return self._balances.get(user_id, 0)

    def get_last_survey_date(self, user_id):
        with self._lock:
            return self._last_survey.get(user_id)

    def set_last_survey_date(self, user_id, timestamp):
        with self._lock:
            self._last_survey[user_id] = timestamp

    def get_submission(self, user_id, submission_id):
        with self._lock:
            record = self._submissions.get((user_id, submission_id))
            return record.model_copy() if record else None

    def ledger(self, user_id):
        with self._lock:
            return {op: entry for (uid, op), entry in self._ledger.items() if uid == user_id}

    def _apply(self, user_id, delta, operation_id, reason):
        current = self._balances.get(user_id, 0)
        new_total = max(0, current + int(delta))
        self._balances[user_id] = new_total
        if operation_id:
            self._ledger[(user_id, operation_id)] = {
                'delta': int(delta), 'applied': new_total - current, 'reason': reason
            }
        return new_total

    def apply_points_delta(self, user_id, delta, operation_id=None, reason=None):
        with self._lock:
            if operation_id and (user_id, operation_id) in self._ledger:
                return False, None
            return True, self._apply(user_id, delta, operation_id, reason)

    def record_submission(self, record: SettlementRecord, delta, now, cooldown_hours=0):
        key = (record.user_id, record.submission_id)
        with self._lock:
            if key in self._submissions:
                return False, None
            remaining = cooldown_remaining(self._last_survey.get(record.user_id), now, cooldown_hours)
            if remaining is not None:
                raise SurveyCooldownActive(remaining)
            self._submissions[key] = record.model_copy()
            self._last_survey[record.user_id] = now
            balance = self._apply(record.user_id, delta, provisional_operation_id(record.submission_id), 'carbon_survey')
            return True, balance

    def finalize_submission(self, user_id, submission_id, now=None):
        key = (user_id, submission_id)
        with self._lock:
            record = self._submissions.get(key)
            if record is None:
                raise SubmissionNotFound(submission_id)
            if record.finalized:
                return False, 0, None
            delta = finalization_delta(record)
            balance = self._apply(user_id, delta, finalize_operation_id(submission_id), 'carbon_verification')
            self._submissions[key] = record.model_copy(update={
                'finalized': True,
                'bonus_points': finalize_with_receipt(record.base_points),
                'finalized_at': now,
            })
            return True, delta, balance

    def health_check(self):
        return {"status": "OK", "details": "In-memory balance store."}
