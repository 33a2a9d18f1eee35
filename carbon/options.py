"""
Survey option tables and the single-option normalizer.
"""

import re
from types import MappingProxyType
from typing import Mapping, Sequence

from .exceptions import InvalidInputError, InvalidOptionError

TRANSPORT_KG = MappingProxyType({
    "car_gasoline": 15.0,
    "ev": 5.0,
    "public_transport": 3.0,
    "walk_bike": 0.0,
})

DIET_KG = MappingProxyType({
    "red_meat": 20.0,
    "white_meat_fish": 8.0,
    "carb_based": 5.0,
    "vegetarian_vegan": 3.0,
})

DRINK_KG = MappingProxyType({
    "drink_alcohol": 4.0,
    "drink_coffee_milk": 2.5,
    "drink_bottled": 2.0,
    "drink_water_tea": 1.0,
})

ENERGY_KG = MappingProxyType({
    "none": 0.0,
    "low": 3.0,
    "medium": 6.0,
    "high": 10.0,
})

DIMENSIONS = MappingProxyType({
    "transport": TRANSPORT_KG,
    "diet": DIET_KG,
    "drink": DRINK_KG,
    "energy": ENERGY_KG,
})

POLICIES = ("worst", "best")


def pick_one(candidates: Sequence[str], weights: Mapping[str, float], policy: str = "worst") -> str:
    """
    Selects one representative option from a multi-select answer.

    "worst" keeps the heaviest option, "best" the lightest. Options missing
    from the weight table are skipped. Ties keep the earliest candidate.
    """
    if policy not in POLICIES:
        raise InvalidInputError(f"Unknown selection policy: {policy!r}")
    if not candidates:
        raise InvalidInputError("Empty selection passed to pick_one")

    picked = None
    for candidate in candidates:
        if candidate not in weights:
            continue
        if picked is None:
            picked = candidate
        elif policy == "worst" and weights[candidate] > weights[picked]:
            picked = candidate
        elif policy == "best" and weights[candidate] < weights[picked]:
            picked = candidate

    if picked is None:
        raise InvalidOptionError("selection", list(candidates))
    return picked


# Ordered: the first matching pattern wins.
_ENERGY_PATTERNS = (
    (re.compile(r"(hepsi|tüm|bütün|\ball\b).*(aç(ı|i)k|\bon\b)"), "high"),
    (re.compile(r"(klima|\bac\b|air condition|heater|ısıtıcı).*(aç(ı|i)k|\bon\b)"), "high"),
    (re.compile(r"(biraz|az|a little|a few|some).*(aç(ı|i)k|\bon\b)"), "low"),
    (re.compile(r"(orta|medium|moderate)"), "medium"),
    (re.compile(r"(kapal(ı|i)|hiç|\boff\b|\bnone\b|\bno\b)"), "none"),
)


def to_energy_level(raw) -> str:
    """Maps a free-text home energy answer onto the energy table keys."""
    text = str(raw or "").strip().lower()
    if text in ENERGY_KG:
        return text
    if not text:
        return "low"
    for pattern, level in _ENERGY_PATTERNS:
        if pattern.search(text):
            return level
    return "low"
