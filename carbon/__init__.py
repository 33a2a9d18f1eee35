"""
Deterministic carbon-footprint scoring and point settlement.
"""

from .ai_response import AnalysisResult, extract_ai_kg, extract_json_object, sanitize_ai_response
from .calculator import compute_deterministic_kg, enforce_worst_floor, is_worst_scenario
from .calibration import FootprintEstimate, blend_kg, calibrate_kg, estimate_footprint
from .exceptions import (
    BalanceStoreUnavailable,
    CarbonError,
    ExternalServiceDegraded,
    InvalidInputError,
    InvalidOptionError,
    MalformedExternalResponse,
    SubmissionNotFound,
    SurveyCooldownActive,
)
from .materials import points_for_material
from .options import DIET_KG, DRINK_KG, ENERGY_KG, TRANSPORT_KG, pick_one, to_energy_level
from .points import PointsOutcome, calculate_points
from .regions import FALLBACK_REGION, REGIONS, RegionProfile, get_region_profile, resolve_region
from .settlement import (
    SettlementRecord,
    SettlementResult,
    SettlementService,
    compute_provisional,
    finalize_with_receipt,
)
