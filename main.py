# FILE: ecoscan-backend/main.py

import os
from flask import Flask, jsonify
from dotenv import load_dotenv
from pydantic import ValidationError
from logging_config import setup_logging
from extensions import limiter

from api.error_utils import cooldown_error, create_error_response, handle_exception, not_found_error, validation_error
from carbon.exceptions import BalanceStoreUnavailable, InvalidInputError, SurveyCooldownActive

# --- SETUP & CONFIG ---
# Load environment variables for the Flask app process.
load_dotenv()
setup_logging()


def create_app(config=None, balance_store=None):
    """
    Builds the Flask app. Tests pass their own config and an in-memory
    balance store; production falls back to Firestore.
    """
    from dependencies import JWT_SECRET_KEYS, REDIS_URL, get_balance_store

    app = Flask(__name__)
    app.config['JWT_SECRET_KEYS'] = JWT_SECRET_KEYS
    app.config['RATELIMIT_STORAGE_URI'] = os.environ.get('RATELIMIT_STORAGE_URI', REDIS_URL)
    if config:
        app.config.update(config)

    # --- Initialize Extensions ---
    limiter.init_app(app)
    app.extensions['balance_store'] = balance_store if balance_store is not None else get_balance_store()

    # --- Import and Register Blueprints ---
    from api.carbon import carbon_bp, health_check as carbon_health_check
    from api.rewards import rewards_bp

    app.register_blueprint(carbon_bp, url_prefix='/api/carbon', strict_slashes=False)
    app.register_blueprint(rewards_bp, url_prefix='/api/rewards', strict_slashes=False)

    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health():
        checks = {
            "scoring": carbon_health_check(),
            "balance_store": app.extensions['balance_store'].health_check(),
        }
        healthy = all(check["status"] == "OK" for check in checks.values())
        return jsonify({"status": "OK" if healthy else "DEGRADED", "checks": checks}), 200 if healthy else 503

    _register_error_handlers(app)
    return app


def _register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return validation_error(details=e.errors(include_url=False, include_context=False))

    @app.errorhandler(InvalidInputError)
    def handle_invalid_input(e):
        return validation_error(str(e))

    @app.errorhandler(SurveyCooldownActive)
    def handle_cooldown(e):
        return cooldown_error(e.retry_after_seconds)

    @app.errorhandler(BalanceStoreUnavailable)
    def handle_store_unavailable(e):
        return create_error_response("DATABASE_ERROR", status_code=503)

    @app.errorhandler(404)
    def resource_not_found(e):
        """Handles 404 Not Found errors for a clean API response."""
        return not_found_error("The requested resource was not found.")

    @app.errorhandler(500)
    def internal_server_error(e):
        """Handles unexpected 500 Internal Server Errors for a clean API response."""
        return handle_exception(getattr(e, "original_exception", None) or e, context="unhandled request")


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 8080)))
