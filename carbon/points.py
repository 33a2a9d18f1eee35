"""
Maps a kilogram value onto a reward or a penalty for the survey.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .calculator import round_half_up
from .exceptions import InvalidInputError
from .regions import get_region_profile

MAX_BASE_POINTS = 30
MAX_PENALTY = -10


class PointsOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_points: int = Field(ge=0, le=MAX_BASE_POINTS)
    penalty_points: int = Field(ge=MAX_PENALTY, le=0)

    @model_validator(mode="after")
    def _one_branch_only(self):
        if self.base_points and self.penalty_points:
            raise ValueError("base_points and penalty_points are mutually exclusive")
        return self

    @property
    def is_penalty(self) -> bool:
        return self.penalty_points < 0


def calculate_points(kg, region) -> PointsOutcome:
    """
    Above the region's penalty threshold the survey costs up to 10 points,
    one point per 2 kg over the line. At or below it, the reward is linear
    from 30 points at the region minimum to 0 at the region maximum.
    """
    if kg is None or kg < 0:
        raise InvalidInputError(f"kg must be non-negative, got {kg!r}")

    profile = get_region_profile(region)

    if kg > profile.penalty_threshold:
        over = round_half_up((kg - profile.penalty_threshold) / 2)
        # A fraction of a kilogram over still counts as a penalty day.
        penalty = max(MAX_PENALTY, min(-1, -over))
        return PointsOutcome(base_points=0, penalty_points=penalty)

    slope = -MAX_BASE_POINTS / (profile.max - profile.min)
    intercept = MAX_BASE_POINTS - slope * profile.min
    raw = slope * kg + intercept
    base = round_half_up(max(0.0, min(raw, float(MAX_BASE_POINTS))))
    return PointsOutcome(base_points=base, penalty_points=0)
