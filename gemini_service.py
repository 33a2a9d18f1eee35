import logging
from typing import List, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel

from api.prompts import build_carbon_analysis_prompt
from carbon.ai_response import extract_json_object
from carbon.exceptions import ExternalServiceDegraded, MalformedExternalResponse
from dependencies import ACTIVE_GEMINI_KEYS, GEMINI_MODEL

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_MS = 20000

_clients = {}


class AIFootprintAnalysis(BaseModel):
    estimatedFootprintKg: Optional[float] = None
    analysis: Optional[str] = None
    recommendations: Optional[List[str]] = None
    recoveryActions: Optional[List[str]] = None


def _get_client(api_key):
    if api_key not in _clients:
        _clients[api_key] = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=REQUEST_TIMEOUT_MS)
        )
    return _clients[api_key]


def analyze_footprint(payload: dict) -> dict:
    """
    Asks Gemini for the prose analysis and an optional kg estimate.

    Tries each configured API key in turn. The returned dict is raw and must
    go through carbon.ai_response.sanitize_ai_response before use; the kg in
    it is only ever a hint. Raises ExternalServiceDegraded when every key fails.
    """
    if not ACTIVE_GEMINI_KEYS:
        raise ExternalServiceDegraded("No GEMINI_API_KEY configured")

    prompt = build_carbon_analysis_prompt(payload)
    last_error = None

    for index, api_key in enumerate(ACTIVE_GEMINI_KEYS, start=1):
        try:
            response = _get_client(api_key).models.generate_content(
                model=GEMINI_MODEL,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=AIFootprintAnalysis,
                    temperature=0.0  # Same answers, same analysis
                ))

            if not response.text:
                raise MalformedExternalResponse("Empty response from Gemini")

            result = extract_json_object(response.text)
            logger.info(f"AI footprint analysis received with key {index} for region {payload.get('region')}")
            return result

        except MalformedExternalResponse as e:
            # The call worked; another key will not fix the content.
            logger.error(f"Gemini returned an unusable analysis: {e}")
            return {}
        except Exception as e:
            logger.error(f"Gemini call with key {index} failed: {e}")
            last_error = e

    raise ExternalServiceDegraded(f"All Gemini keys failed: {last_error}")
