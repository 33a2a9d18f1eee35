import logging

from flask import Blueprint, request, jsonify, current_app

from carbon.exceptions import BalanceStoreUnavailable
from carbon.materials import points_for_material
from extensions import limiter

from .auth import token_required
from .pydantic_models import RecyclingRewardRequest

rewards_bp = Blueprint('rewards_bp', __name__)

def recycling_operation_id(action_id):
    return f"recycling:{action_id}"

@rewards_bp.route('/recycling', methods=['POST'])
@token_required
@limiter.limit("60 per hour")
def award_recycling(user_id):
    """
    Awards the flat points for one recycled item. Replaying the same actionId
    returns applied=False and leaves the balance alone.
    """
    req = RecyclingRewardRequest.model_validate(request.get_json(silent=True))
    points = points_for_material(req.material)
    operation_id = recycling_operation_id(req.actionId)
    store = current_app.extensions['balance_store']

    try:
        applied, balance = store.apply_points_delta(user_id, points, operation_id, reason=f"recycling:{req.material}")
    except BalanceStoreUnavailable as e:
        from tasks import award_points_task # Local import to avoid circular dependencies
        logging.warning(f"Recycling award {operation_id} deferred to worker: {e}")
        award_points_task.delay(user_id, points, operation_id, f"recycling:{req.material}")
        return jsonify({"status": "QUEUED", "points": points, "applied": False, "totalPoints": None}), 202

    if applied:
        logging.info(f"Awarded {points} recycling points to {user_id} for {req.material}")
    return jsonify({
        "status": "AWARDED" if applied else "DUPLICATE",
        "points": points,
        "applied": applied,
        "totalPoints": balance if applied else store.get_balance(user_id)
    }), 200
