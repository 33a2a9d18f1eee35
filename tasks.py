# FILE: ecoscan-backend/tasks.py

import datetime
import logging

from celery_worker import celery_app
from carbon import settings
from carbon.exceptions import BalanceStoreUnavailable, SubmissionNotFound, SurveyCooldownActive
from carbon.settlement import SettlementRecord
from dependencies import get_balance_store

RETRY_DELAY_SECONDS = 30


def _parse_timestamp(value):
    if not value:
        return None
    return datetime.datetime.fromisoformat(value)


@celery_app.task(bind=True, name="settle_submission_task", max_retries=5, default_retry_delay=RETRY_DELAY_SECONDS)
def settle_submission_task(self, record_data, delta, now_iso):
    """Retries step 1 of a carbon survey settlement after a failed write."""
    record = SettlementRecord.model_validate(record_data)
    try:
        applied, balance = get_balance_store().record_submission(
            record, delta, _parse_timestamp(now_iso), settings.SURVEY_COOLDOWN_HOURS)
        logging.info(f"Queued settlement for {record.submission_id}: applied={applied}, balance={balance}")
    except SurveyCooldownActive as e:
        # Another survey from the same user landed first while this one waited.
        logging.warning(f"Dropping queued settlement for {record.submission_id}: {e}")
    except BalanceStoreUnavailable as e:
        logging.warning(f"Settlement for {record.submission_id} still failing, retrying: {e}")
        raise self.retry(exc=e)


@celery_app.task(bind=True, name="finalize_submission_task", max_retries=5, default_retry_delay=RETRY_DELAY_SECONDS)
def finalize_submission_task(self, user_id, submission_id, now_iso=None):
    """Retries step 2; a duplicate delivery finds the finalized marker and stops."""
    try:
        applied, delta, balance = get_balance_store().finalize_submission(
            user_id, submission_id, _parse_timestamp(now_iso))
        logging.info(f"Queued finalization for {submission_id}: applied={applied}, delta={delta}, balance={balance}")
    except SubmissionNotFound:
        # Step 1 may itself still be queued; give it time to land.
        logging.warning(f"Submission {submission_id} not recorded yet, retrying finalization")
        raise self.retry()
    except BalanceStoreUnavailable as e:
        logging.warning(f"Finalization for {submission_id} still failing, retrying: {e}")
        raise self.retry(exc=e)


@celery_app.task(bind=True, name="award_points_task", max_retries=5, default_retry_delay=RETRY_DELAY_SECONDS)
def award_points_task(self, user_id, amount, operation_id, reason):
    """Applies a point delta keyed by operation_id, so retries never double-award."""
    try:
        applied, balance = get_balance_store().apply_points_delta(user_id, amount, operation_id, reason)
        logging.info(f"Awarded {amount} points to {user_id} for {reason}: applied={applied}, balance={balance}")
    except BalanceStoreUnavailable as e:
        logging.warning(f"Awarding {operation_id} to {user_id} failed, retrying: {e}")
        raise self.retry(exc=e)
