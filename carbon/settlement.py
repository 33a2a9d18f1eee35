"""
Two-phase point settlement for carbon surveys.

Step 1 (submission) grants a provisional share of the base points, or applies
the penalty on a penalty day. Step 2 (verification) replaces the provisional
grant with the full bonus, at most once per submission. The arithmetic here is
pure; the "at most once" gate, the zero floor and the survey cooldown live in
the balance store, which applies them atomically.
"""

import datetime
import logging
from typing import Optional

from pydantic import BaseModel, Field

from . import settings
from .calibration import FootprintEstimate
from .exceptions import SubmissionNotFound, SurveyCooldownActive
from .points import PointsOutcome

logger = logging.getLogger(__name__)

PROVISIONAL_DIVISOR = 3
BONUS_MULTIPLIER = 3


def compute_provisional(base_points: int) -> int:
    """The share of base points granted before verification."""
    return max(0, int(base_points)) // PROVISIONAL_DIVISOR


def finalize_with_receipt(base_points: int) -> int:
    """The full award once a receipt or photo verifies the survey."""
    return max(0, int(base_points)) * BONUS_MULTIPLIER


class SettlementRecord(BaseModel):
    submission_id: str
    user_id: str
    region: str
    kg: float
    base_points: int = Field(ge=0)
    penalty_points: int = Field(le=0)
    provisional_points: int = Field(ge=0)
    finalized: bool = False
    bonus_points: int = 0
    created_at: Optional[datetime.datetime] = None
    finalized_at: Optional[datetime.datetime] = None

    def to_document(self) -> dict:
        return {
            "submissionId": self.submission_id,
            "userId": self.user_id,
            "region": self.region,
            "kg": self.kg,
            "basePoints": self.base_points,
            "penaltyPoints": self.penalty_points,
            "provisionalPoints": self.provisional_points,
            "finalized": self.finalized,
            "bonusPoints": self.bonus_points,
            "createdAt": self.created_at,
            "finalizedAt": self.finalized_at,
        }

    @classmethod
    def from_document(cls, data: dict) -> "SettlementRecord":
        return cls(
            submission_id=data["submissionId"],
            user_id=data["userId"],
            region=data.get("region", ""),
            kg=data.get("kg", 0.0),
            base_points=data.get("basePoints", 0),
            penalty_points=data.get("penaltyPoints", 0),
            provisional_points=data.get("provisionalPoints", 0),
            finalized=data.get("finalized", False),
            bonus_points=data.get("bonusPoints", 0),
            created_at=data.get("createdAt"),
            finalized_at=data.get("finalizedAt"),
        )


class SettlementResult(BaseModel):
    submission_id: str
    applied: bool
    delta: int
    balance: Optional[int] = None
    bonus_points: int = 0


def submission_delta(outcome: PointsOutcome) -> int:
    """Penalty days apply the penalty directly and grant nothing provisional."""
    if outcome.is_penalty:
        return outcome.penalty_points
    return compute_provisional(outcome.base_points)


def finalization_delta(record: SettlementRecord) -> int:
    """Reverts the provisional grant and adds the bonus in one signed delta."""
    return finalize_with_receipt(record.base_points) - record.provisional_points


def provisional_operation_id(submission_id: str) -> str:
    return f"carbon:{submission_id}:provisional"


def finalize_operation_id(submission_id: str) -> str:
    return f"carbon:{submission_id}:finalize"


def cooldown_remaining(last_survey, now, cooldown_hours) -> Optional[float]:
    """Seconds left in the cooldown window, or None when a survey is allowed."""
    if not cooldown_hours or now is None or not isinstance(last_survey, datetime.datetime):
        return None
    ends_at = last_survey + datetime.timedelta(hours=cooldown_hours)
    if now < ends_at:
        return (ends_at - now).total_seconds()
    return None


def build_record(user_id, submission_id, estimate: FootprintEstimate, outcome: PointsOutcome, now) -> SettlementRecord:
    return SettlementRecord(
        submission_id=submission_id,
        user_id=user_id,
        region=estimate.region,
        kg=estimate.kg,
        base_points=outcome.base_points,
        penalty_points=outcome.penalty_points,
        provisional_points=0 if outcome.is_penalty else compute_provisional(outcome.base_points),
        created_at=now,
    )


class SettlementService:
    """Runs both settlement steps against a balance store."""

    def __init__(self, store, cooldown_hours: Optional[float] = None):
        self.store = store
        self.cooldown_hours = settings.SURVEY_COOLDOWN_HOURS if cooldown_hours is None else cooldown_hours

    def ensure_survey_allowed(self, user_id, now):
        """
        Early rejection before scoring and the AI call. The binding check is
        repeated by the store inside the write that records the survey.
        """
        remaining = cooldown_remaining(self.store.get_last_survey_date(user_id), now, self.cooldown_hours)
        if remaining is not None:
            raise SurveyCooldownActive(remaining)

    def submit(self, user_id, submission_id, estimate: FootprintEstimate, outcome: PointsOutcome, now) -> SettlementResult:
        record = build_record(user_id, submission_id, estimate, outcome, now)
        delta = submission_delta(outcome)
        applied, balance = self.store.record_submission(record, delta, now, self.cooldown_hours)
        if applied:
            logger.info(f"Carbon survey {submission_id} for {user_id}: delta {delta}, balance {balance}")
        else:
            logger.warning(f"Carbon survey {submission_id} for {user_id} was already recorded, skipping delta")
        return SettlementResult(submission_id=submission_id, applied=applied, delta=delta if applied else 0, balance=balance)

    def finalize(self, user_id, submission_id, verified: bool, reason: Optional[str] = None, now=None) -> SettlementResult:
        record = self.store.get_submission(user_id, submission_id)
        if record is None:
            raise SubmissionNotFound(submission_id)

        if not verified:
            logger.info(f"Verification rejected for {submission_id} ({reason or 'no reason'}), provisional grant stands")
            return SettlementResult(submission_id=submission_id, applied=False, delta=0)

        bonus = finalize_with_receipt(record.base_points)
        applied, delta, balance = self.store.finalize_submission(user_id, submission_id, now)
        if applied:
            logger.info(f"Carbon survey {submission_id} finalized for {user_id}: delta {delta}, balance {balance}")
        else:
            logger.info(f"Carbon survey {submission_id} already finalized, ignoring duplicate verification")
        return SettlementResult(
            submission_id=submission_id, applied=applied, delta=delta, balance=balance, bonus_points=bonus
        )
