"""
Standardized error handling utilities for EcoScan API endpoints.
Provides consistent error formats, HTTP status codes, and error codes across all endpoints.
"""

import logging
from flask import jsonify
from typing import Dict, Any, Optional

# Standard error codes for consistent API responses
ERROR_CODES = {
    # Authentication errors
    "TOKEN_MISSING": "Authentication token is missing",
    "TOKEN_INVALID": "Authentication token is invalid or expired",

    # Validation errors
    "VALIDATION_ERROR": "Request validation failed",

    # Resource errors
    "NOT_FOUND": "Resource not found",
    "SUBMISSION_NOT_FOUND": "Carbon survey submission not found",

    # Business logic errors
    "SURVEY_COOLDOWN": "A carbon survey was already submitted recently",

    # System errors
    "SERVER_ERROR": "Internal server error",
    "DATABASE_ERROR": "Database operation failed",
}

def create_error_response(
    error_code: str,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = 500
) -> tuple:
    """
    Create a standardized error response with consistent format.

    Args:
        error_code: One of the standard ERROR_CODES keys
        message: Optional custom message (defaults to standard message)
        details: Optional additional error details
        status_code: HTTP status code

    Returns:
        Tuple of (JSON response, HTTP status code)
    """
    if error_code not in ERROR_CODES:
        logging.warning(f"Unknown error code used: {error_code}")
        error_code = "SERVER_ERROR"

    error_message = message or ERROR_CODES[error_code]

    response_data = {
        "error_code": error_code,
        "message": error_message
    }

    if details:
        response_data["details"] = details

    log = logging.error if status_code >= 500 else logging.warning
    log(f"API Error [{error_code}]: {error_message} - Status: {status_code}")

    return jsonify(response_data), status_code

def handle_exception(e: Exception, context: str = "API endpoint") -> tuple:
    """
    Handle unexpected exceptions with standardized error response.

    Args:
        e: The exception that occurred
        context: Context information for logging

    Returns:
        Tuple of (JSON response, HTTP status code)
    """
    error_type = type(e).__name__
    logging.error(f"Unexpected error in {context}: {error_type} - {e}", exc_info=True)

    return create_error_response(
        error_code="SERVER_ERROR",
        message="An unexpected error occurred",
        details={"error_type": error_type},
        status_code=500
    )

# Common error response shortcuts
def not_found_error(message: Optional[str] = None) -> tuple:
    return create_error_response("NOT_FOUND", message, status_code=404)

def validation_error(message: Optional[str] = None, details: Optional[Any] = None) -> tuple:
    return create_error_response("VALIDATION_ERROR", message, details, status_code=400)

def cooldown_error(retry_after_seconds: int) -> tuple:
    return create_error_response(
        "SURVEY_COOLDOWN",
        details={"retryAfterSeconds": retry_after_seconds},
        status_code=429
    )
