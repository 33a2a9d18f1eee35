"""
Deterministic footprint calculation and the worst-case floor.
"""

import math
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from .exceptions import InvalidOptionError
from .options import DIET_KG, DRINK_KG, ENERGY_KG, TRANSPORT_KG
from .regions import get_region_profile

WORST_FLOOR_RATIO = Decimal("0.95")
_ONE_DECIMAL = Decimal("0.1")

WORST_TRANSPORT = max(TRANSPORT_KG, key=TRANSPORT_KG.get)
WORST_DIET = max(DIET_KG, key=DIET_KG.get)
WORST_DRINK = max(DRINK_KG, key=DRINK_KG.get)
WORST_ENERGY = max(ENERGY_KG, key=ENERGY_KG.get)


def _to_decimal(value) -> Decimal:
    # str() keeps the shortest repr, so 80.75 stays 80.75 and not 80.7499...
    return Decimal(str(value))


def round_kg(value) -> float:
    """Rounds to one decimal, halves away from zero."""
    return float(_to_decimal(value).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def round_half_up(value) -> int:
    return int(math.floor(value + 0.5))


def _weight(table, dimension, value):
    try:
        return table[value]
    except (KeyError, TypeError):
        raise InvalidOptionError(dimension, value) from None


def compute_deterministic_kg(region, transport, diet, drink, energy) -> float:
    """
    Sums the per-dimension weights for one selected option each.

    The region is not used for the sum; it is accepted so callers can pass the
    same argument list to the floor and calibration steps.
    """
    total = (
        _weight(TRANSPORT_KG, "transport", transport)
        + _weight(DIET_KG, "diet", diet)
        + _weight(DRINK_KG, "drink", drink)
        + _weight(ENERGY_KG, "energy", energy)
    )
    return round_kg(total)


def is_worst_scenario(transport, diet, drink, energy) -> bool:
    return (
        transport == WORST_TRANSPORT
        and diet == WORST_DIET
        and drink == WORST_DRINK
        and energy == WORST_ENERGY
    )


def enforce_worst_floor(kg, region, transport, diet, drink, energy) -> float:
    """
    Raises an all-worst day to at least 95% of the region maximum.

    Any other combination, even one with three worst answers, is returned
    unchanged.
    """
    if not is_worst_scenario(transport, diet, drink, energy):
        return kg

    profile = get_region_profile(region)
    lo, hi = _to_decimal(profile.min), _to_decimal(profile.max)
    floor = hi * WORST_FLOOR_RATIO

    floored = min(max(_to_decimal(kg), floor, lo), hi)
    rounded = floored.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    if rounded < floor:
        rounded = floor.quantize(_ONE_DECIMAL, rounding=ROUND_CEILING)
    return float(min(rounded, hi))
