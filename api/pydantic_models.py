from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from .sanitization import sanitize_string

# --- CARBON SURVEY ---
class SurveyRequest(BaseModel):
    # Every dimension needs at least one answer; the scorer never sees an empty list.
    transport: List[str] = Field(min_length=1)
    diet: List[str] = Field(min_length=1)
    drink: List[str] = Field(min_length=1)
    energy: str = Field(min_length=1)
    region: Optional[str] = None
    language: str = "en"
    other: Optional[str] = None
    aiKg: Optional[float] = None

    @field_validator('transport', 'diet', 'drink')
    @classmethod
    def _clean_options(cls, values):
        cleaned = [sanitize_string(v, 40).lower() for v in values]
        cleaned = [v for v in cleaned if v]
        if not cleaned:
            raise ValueError("at least one option is required")
        return cleaned

    @field_validator('region', 'other')
    @classmethod
    def _clean_text(cls, value):
        return sanitize_string(value, 200) if value is not None else None

    @field_validator('language')
    @classmethod
    def _clean_language(cls, value):
        return sanitize_string(value, 10).lower() or "en"

class VerificationRequest(BaseModel):
    verified: bool
    reason: Optional[str] = None

# --- RECYCLING ---
class RecyclingRewardRequest(BaseModel):
    material: str = Field(min_length=1)
    actionId: str = Field(min_length=1, max_length=128)

# --- RESPONSES ---
class EstimateResponse(BaseModel):
    basePoints: int
    penaltyPoints: int
    kg: float
    debug: dict

class SurveySubmissionResponse(BaseModel):
    submissionId: str
    status: str
    kg: float
    basePoints: int
    penaltyPoints: int
    provisionalPoints: int
    pointsDelta: int
    totalPoints: Optional[int] = None
    analysis: dict

class VerificationResponse(BaseModel):
    submissionId: str
    status: str
    applied: bool
    pointsDelta: int
    bonusPoints: int = 0
    totalPoints: Optional[int] = None
