"""
Region profiles and the free-text region resolver.

Each profile bounds a "typical day" of CO2 in kilograms for that region and
sets the threshold above which a survey costs points instead of earning them.
"""

import logging
from types import MappingProxyType
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

logger = logging.getLogger(__name__)

FALLBACK_REGION = "default"

# Points awarded at the bottom of the band; mirrored in carbon/points.py.
_MAX_REWARD = 30


class RegionProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    min: float
    avg: float
    max: float
    penalty_threshold: float

    @model_validator(mode="after")
    def _check_bounds(self):
        if min(self.min, self.avg, self.max, self.penalty_threshold) < 0:
            raise ValueError(f"Region {self.key}: bounds must be non-negative")
        if not (self.min <= self.avg <= self.penalty_threshold <= self.max):
            raise ValueError(f"Region {self.key}: expected min <= avg <= penalty_threshold <= max")
        if self.min >= self.max:
            raise ValueError(f"Region {self.key}: min must be below max")
        # The reward branch must still pay out at the threshold, otherwise a
        # survey could end with neither points nor a penalty.
        at_threshold = _MAX_REWARD * (self.max - self.penalty_threshold) / (self.max - self.min)
        if at_threshold < 0.5:
            raise ValueError(f"Region {self.key}: penalty_threshold leaves no reward below it")
        return self


def _profile(key, lo, avg, hi, penalty_threshold):
    return RegionProfile(key=key, min=lo, avg=avg, max=hi, penalty_threshold=penalty_threshold)


REGIONS = MappingProxyType({
    "turkey": _profile("turkey", 10, 24, 40, 30),
    "europe": _profile("europe", 10, 27, 45, 35),
    "usa": _profile("usa", 20, 45, 70, 55),
    "uae": _profile("uae", 25, 55, 85, 65),
    "kuwait": _profile("kuwait", 30, 70, 100, 80),
    "japan": _profile("japan", 10, 26, 42, 32),
    "default": _profile("default", 10, 25, 45, 35),
})

REGION_ALIASES = MappingProxyType({
    # Turkey
    "tr": "turkey",
    "tr-istanbul": "turkey",
    "türkiye": "turkey",
    "turkiye": "turkey",
    "istanbul": "turkey",
    "ankara": "turkey",
    "izmir": "turkey",
    # Europe
    "eu": "europe",
    "de": "europe",
    "germany": "europe",
    "deutschland": "europe",
    "fr": "europe",
    "france": "europe",
    "uk": "europe",
    "gb": "europe",
    "united kingdom": "europe",
    "england": "europe",
    "london": "europe",
    "berlin": "europe",
    "paris": "europe",
    # USA
    "us": "usa",
    "united states": "usa",
    "united states of america": "usa",
    "america": "usa",
    "new york": "usa",
    # UAE
    "ae": "uae",
    "ae-dubai": "uae",
    "dubai": "uae",
    "dubai, uae": "uae",
    "abu dhabi": "uae",
    "united arab emirates": "uae",
    # Kuwait
    "kw": "kuwait",
    "kuwait city": "kuwait",
    # Japan
    "jp": "japan",
    "nihon": "japan",
    "nippon": "japan",
    "tokyo": "japan",
})


def _lookup(candidate: str) -> Optional[str]:
    hit = REGION_ALIASES.get(candidate)
    if hit:
        return hit
    if candidate in REGIONS:
        return candidate
    return None


def resolve_region(value: Optional[str]) -> str:
    """
    Map a free-form region or locale string to a canonical region key.

    Never fails: unknown input resolves to FALLBACK_REGION.
    """
    key = str(value or "").strip().lower()
    if not key:
        return FALLBACK_REGION

    hit = _lookup(key)
    if hit:
        return hit

    # "Istanbul, Turkey" style input: try the country part first.
    for part in reversed(key.split(",")):
        hit = _lookup(part.strip())
        if hit:
            return hit

    logger.debug(f"Unknown region {value!r}, falling back to '{FALLBACK_REGION}'")
    return FALLBACK_REGION


def get_region_profile(region: str) -> RegionProfile:
    """Returns the profile for a canonical key, or the fallback profile."""
    return REGIONS.get(region) or REGIONS[FALLBACK_REGION]
