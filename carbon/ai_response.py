"""
Boundary defense for the AI footprint service.

The service is untrusted for structure as well as for numbers: anything it
returns is coerced into AnalysisResult, with canned text where fields are
missing, and nothing in here raises to the caller.
"""

import json
import logging
import math
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .exceptions import MalformedExternalResponse

logger = logging.getLogger(__name__)

FALLBACK_ANALYSIS = "Here are a few ways to reduce today's impact."

DEFAULT_RECOMMENDATIONS = (
    "Walk or take public transit for short trips.",
    "Choose local, seasonal foods today.",
    "Turn off unused lights and devices.",
)

DEFAULT_RECOVERY_ACTIONS = (
    "Scan a meal or drink receipt for bonus points.",
    "Take a 20-minute walk and verify it.",
    "Lower your A/C or heating by 1-2°C today.",
)

LIST_SIZE = 3


class AnalysisResult(BaseModel):
    estimatedFootprintKg: float = 0.0
    analysis: str = FALLBACK_ANALYSIS
    recommendations: List[str] = Field(default_factory=lambda: list(DEFAULT_RECOMMENDATIONS))
    recoveryActions: List[str] = Field(default_factory=lambda: list(DEFAULT_RECOVERY_ACTIONS))


def _find_matching_brace(text, start):
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def extract_json_object(raw: str) -> dict:
    """
    Pulls the first JSON object out of a model reply.

    Handles a leading BOM, ```json fences and chatter around the object.
    Raises MalformedExternalResponse when no object can be parsed.
    """
    if not raw or not isinstance(raw, str):
        raise MalformedExternalResponse("Empty response")

    text = raw.strip().lstrip("\ufeff").strip()
    if text.startswith("```"):
        text = text[3:]
        if text[:4].lower() == "json":
            text = text[4:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()

    if not (text.startswith("{") and text.endswith("}")):
        start = text.find("{")
        end = _find_matching_brace(text, start) if start >= 0 else -1
        if end > start:
            text = text[start:end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedExternalResponse(f"Response is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedExternalResponse(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _as_mapping(raw: Any) -> dict:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            return extract_json_object(raw)
        except MalformedExternalResponse as e:
            logger.warning(f"Discarding malformed AI response: {e}")
            return {}
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    return {}


def _coerce_kg(value) -> Optional[float]:
    # Only real numbers count; "12.5" is treated as missing, not parsed.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)


def _pad_to_three(values, defaults):
    cleaned = []
    if isinstance(values, (list, tuple)):
        cleaned = [v.strip() for v in values if isinstance(v, str) and v.strip()]
    for default in defaults:
        if len(cleaned) >= LIST_SIZE:
            break
        cleaned.append(default)
    return cleaned[:LIST_SIZE]


def extract_ai_kg(raw: Any) -> Optional[float]:
    """The AI's kg estimate as a calibration hint, or None when unusable."""
    return _coerce_kg(_as_mapping(raw).get("estimatedFootprintKg"))


def sanitize_ai_response(raw: Any) -> AnalysisResult:
    data = _as_mapping(raw)

    analysis = data.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        analysis = FALLBACK_ANALYSIS

    kg = _coerce_kg(data.get("estimatedFootprintKg"))

    return AnalysisResult(
        estimatedFootprintKg=kg if kg is not None else 0.0,
        analysis=analysis.strip(),
        recommendations=_pad_to_three(data.get("recommendations"), DEFAULT_RECOMMENDATIONS),
        recoveryActions=_pad_to_three(data.get("recoveryActions"), DEFAULT_RECOVERY_ACTIONS),
    )
