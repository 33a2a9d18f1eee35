"""
Static scoring configuration, read once from the environment at import time.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# Blend the AI's kg estimate into the deterministic value (always clamped).
AI_KG_ENABLED = _env_bool("AI_KG_ENABLED", True)
AI_KG_BLEND = min(1.0, max(0.0, _env_float("AI_KG_BLEND", 0.3)))

SURVEY_COOLDOWN_HOURS = _env_float("SURVEY_COOLDOWN_HOURS", 24.0)
