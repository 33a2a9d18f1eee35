"""
Blends an untrusted AI kilogram estimate into the deterministic value.

The AI number is clamped into the region band before blending and the blend
is clamped again, so a hallucinated or hostile estimate can never move the
score outside the plausible regional envelope.
"""

import logging
import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from . import settings
from .calculator import compute_deterministic_kg, enforce_worst_floor, round_kg
from .regions import get_region_profile

logger = logging.getLogger(__name__)


class FootprintEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kg: float = Field(ge=0)
    region: str
    source: str = "deterministic"  # "deterministic" or "calibrated"
    deterministic_kg: float
    ai_kg: Optional[float] = None


def _usable_ai_kg(ai_kg) -> Optional[float]:
    if ai_kg is None or isinstance(ai_kg, bool):
        return None
    if not isinstance(ai_kg, (int, float)):
        return None
    if math.isnan(ai_kg):
        return None
    return float(ai_kg)


def _clamp(value, lo, hi):
    return max(lo, min(value, hi))


def blend_kg(det_kg, region, ai_kg=None, enabled=None, blend=None) -> float:
    """
    Weighted average of the deterministic kg and the clamped AI kg.

    Returns det_kg untouched when calibration is off or no usable AI value
    was supplied.
    """
    enabled = settings.AI_KG_ENABLED if enabled is None else enabled
    weight = settings.AI_KG_BLEND if blend is None else _clamp(float(blend), 0.0, 1.0)

    hint = _usable_ai_kg(ai_kg)
    if not enabled or hint is None:
        return det_kg

    profile = get_region_profile(region)
    ai_clamped = _clamp(hint, profile.min, profile.max)
    if ai_clamped != hint:
        logger.info(f"AI kg {hint} clamped to {ai_clamped} for region {region}")

    mix = (1 - weight) * det_kg + weight * ai_clamped
    return round_kg(_clamp(mix, profile.min, profile.max))


def calibrate_kg(region, transport, diet, drink, energy, ai_kg=None, enabled=None, blend=None) -> float:
    """Deterministic kg, worst-case floor, then the optional AI blend."""
    det = compute_deterministic_kg(region, transport, diet, drink, energy)
    det = enforce_worst_floor(det, region, transport, diet, drink, energy)
    return blend_kg(det, region, ai_kg, enabled=enabled, blend=blend)


def estimate_footprint(region, transport, diet, drink, energy, ai_kg=None, enabled=None, blend=None) -> FootprintEstimate:
    enabled = settings.AI_KG_ENABLED if enabled is None else enabled
    det = compute_deterministic_kg(region, transport, diet, drink, energy)
    det = enforce_worst_floor(det, region, transport, diet, drink, energy)
    final = blend_kg(det, region, ai_kg, enabled=enabled, blend=blend)
    hint = _usable_ai_kg(ai_kg)
    return FootprintEstimate(
        kg=final,
        region=region,
        source="calibrated" if enabled and hint is not None else "deterministic",
        deterministic_kg=det,
        ai_kg=hint,
    )
