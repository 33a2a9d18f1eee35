import logging
import uuid
import datetime

import pytz
from flask import Blueprint, request, jsonify, current_app

from carbon.ai_response import extract_ai_kg, sanitize_ai_response
from carbon.calibration import estimate_footprint
from carbon.exceptions import BalanceStoreUnavailable, ExternalServiceDegraded, SubmissionNotFound
from carbon.options import DIET_KG, DRINK_KG, TRANSPORT_KG, pick_one, to_energy_level
from carbon.points import calculate_points
from carbon.regions import get_region_profile, resolve_region
from carbon.settlement import SettlementService, build_record, submission_delta
from gemini_service import analyze_footprint
from extensions import limiter

from .auth import token_required
from .cache_utils import cache_analysis, get_cached_analysis
from .error_utils import create_error_response
from .pydantic_models import (
    EstimateResponse, SurveyRequest, SurveySubmissionResponse, VerificationRequest, VerificationResponse
)

carbon_bp = Blueprint('carbon_bp', __name__)

# --- Helpers ---
def _balance_store():
    return current_app.extensions['balance_store']

def _now():
    return datetime.datetime.now(pytz.utc)

def _score(req: SurveyRequest, ai_kg=None):
    """Runs the scoring pipeline for one survey. Raises InvalidInputError."""
    region = resolve_region(req.region)
    chosen = {
        "transport": pick_one(req.transport, TRANSPORT_KG, "worst"),
        "diet": pick_one(req.diet, DIET_KG, "worst"),
        "drink": pick_one(req.drink, DRINK_KG, "worst"),
        "energy": to_energy_level(req.energy),
    }
    estimate = estimate_footprint(region, chosen["transport"], chosen["diet"], chosen["drink"], chosen["energy"], ai_kg)
    outcome = calculate_points(estimate.kg, region)
    return estimate, outcome, chosen

def _debug_info(estimate, chosen):
    profile = get_region_profile(estimate.region)
    return {
        "region": estimate.region,
        "min": profile.min, "avg": profile.avg, "max": profile.max,
        "penaltyThreshold": profile.penalty_threshold,
        "chosen": chosen,
        "aiKg": estimate.ai_kg,
        "detKg": estimate.deterministic_kg,
        "finalKg": estimate.kg,
        "source": estimate.source,
    }

def _analysis_payload(req: SurveyRequest):
    return {
        "region": resolve_region(req.region),
        "language": req.language,
        "transport": req.transport,
        "diet": req.diet,
        "drink": req.drink,
        "energy": to_energy_level(req.energy),
        "other": req.other,
    }

def _run_analysis(payload):
    """Returns (raw AI reply or None, whether the AI answered)."""
    cached = get_cached_analysis(payload)
    if cached is not None:
        return cached, True
    try:
        raw = analyze_footprint(payload)
    except ExternalServiceDegraded as e:
        # Scoring never depends on the AI; the sanitizer supplies general tips.
        logging.warning(f"AI analysis unavailable, using general tips: {e}")
        return None, False
    if raw:
        cache_analysis(payload, raw)
    return raw, True

def _analysis_body(raw, estimate, ai_available):
    analysis = sanitize_ai_response(raw).model_copy(update={"estimatedFootprintKg": estimate.kg})
    body = analysis.model_dump()
    body["aiAvailable"] = ai_available
    return body

# --- Endpoints ---
@carbon_bp.route('/estimate', methods=['POST'])
@limiter.limit("60 per hour")
def estimate_score():
    req = SurveyRequest.model_validate(request.get_json(silent=True))
    estimate, outcome, chosen = _score(req, req.aiKg)
    response = EstimateResponse(
        basePoints=outcome.base_points,
        penaltyPoints=outcome.penalty_points,
        kg=estimate.kg,
        debug=_debug_info(estimate, chosen)
    )
    return jsonify(response.model_dump()), 200

@carbon_bp.route('/analysis', methods=['POST'])
@limiter.limit("30 per hour")
def analysis():
    req = SurveyRequest.model_validate(request.get_json(silent=True))
    raw, ai_available = _run_analysis(_analysis_payload(req))
    ai_kg = req.aiKg if req.aiKg is not None else extract_ai_kg(raw)
    estimate, outcome, _ = _score(req, ai_kg)

    body = _analysis_body(raw, estimate, ai_available)
    body["basePoints"] = outcome.base_points
    body["penaltyPoints"] = outcome.penalty_points
    return jsonify(body), 200

@carbon_bp.route('/surveys', methods=['POST'])
@token_required
@limiter.limit("10 per hour")
def submit_survey(user_id):
    req = SurveyRequest.model_validate(request.get_json(silent=True))
    now = _now()
    service = SettlementService(_balance_store())
    service.ensure_survey_allowed(user_id, now)

    raw, ai_available = _run_analysis(_analysis_payload(req))
    # Only the server-side AI hint is used here; a client-sent aiKg is ignored.
    estimate, outcome, _ = _score(req, extract_ai_kg(raw))
    submission_id = str(uuid.uuid4())
    record = build_record(user_id, submission_id, estimate, outcome, now)

    try:
        result = service.submit(user_id, submission_id, estimate, outcome, now)
        status, status_code, balance = "SETTLED", 201, result.balance
    except BalanceStoreUnavailable as e:
        from tasks import settle_submission_task # Local import to avoid circular dependencies
        logging.warning(f"Settlement for {submission_id} deferred to worker: {e}")
        settle_submission_task.delay(record.model_dump(mode='json'), submission_delta(outcome), now.isoformat())
        status, status_code, balance = "SETTLEMENT_QUEUED", 202, None

    response = SurveySubmissionResponse(
        submissionId=submission_id,
        status=status,
        kg=estimate.kg,
        basePoints=outcome.base_points,
        penaltyPoints=outcome.penalty_points,
        provisionalPoints=record.provisional_points,
        pointsDelta=submission_delta(outcome),
        totalPoints=balance,
        analysis=_analysis_body(raw, estimate, ai_available)
    )
    return jsonify(response.model_dump()), status_code

@carbon_bp.route('/surveys/<submission_id>/verification', methods=['POST'])
@token_required
def verify_survey(user_id, submission_id):
    req = VerificationRequest.model_validate(request.get_json(silent=True))
    now = _now()
    service = SettlementService(_balance_store())

    try:
        result = service.finalize(user_id, submission_id, req.verified, req.reason, now)
    except SubmissionNotFound:
        return create_error_response("SUBMISSION_NOT_FOUND", status_code=404)
    except BalanceStoreUnavailable as e:
        if not req.verified:
            raise
        from tasks import finalize_submission_task # Local import to avoid circular dependencies
        logging.warning(f"Finalization for {submission_id} deferred to worker: {e}")
        finalize_submission_task.delay(user_id, submission_id, now.isoformat())
        response = VerificationResponse(submissionId=submission_id, status="FINALIZATION_QUEUED", applied=False, pointsDelta=0)
        return jsonify(response.model_dump()), 202

    if not req.verified:
        status = "REJECTED"
    elif result.applied:
        status = "FINALIZED"
    else:
        status = "ALREADY_FINALIZED"

    response = VerificationResponse(
        submissionId=submission_id,
        status=status,
        applied=result.applied,
        pointsDelta=result.delta,
        bonusPoints=result.bonus_points,
        totalPoints=result.balance
    )
    return jsonify(response.model_dump()), 200

def health_check():
    """
    Performs a non-destructive health check for the carbon module.
    """
    try:
        estimate, outcome, _ = _score(SurveyRequest(
            transport=["walk_bike"], diet=["vegetarian_vegan"], drink=["drink_water_tea"], energy="none", region="tr"
        ))
        return {"status": "OK", "details": f"Scoring pipeline returned {estimate.kg} kg / {outcome.base_points} points."}
    except Exception as e:
        return {"status": "ERROR", "details": f"Scoring pipeline failed: {str(e)}"}
