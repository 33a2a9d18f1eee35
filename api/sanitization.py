"""
Input sanitization for EcoScan API endpoints.
Free-text survey fields end up in the AI prompt, so they are escaped,
stripped of control characters and length-limited before use.
"""

import re
import html
from typing import Optional
import logging

def sanitize_string(input_str, max_length: Optional[int] = None) -> str:
    """
    Sanitize a string input by:
    1. Stripping leading/trailing whitespace
    2. HTML escaping to prevent XSS and prompt markup injection
    3. Removing control characters
    4. Truncating to max_length if specified

    Args:
        input_str: The input string to sanitize
        max_length: Optional maximum length for truncation

    Returns:
        Sanitized string
    """
    if input_str is None:
        return ""
    if not isinstance(input_str, str):
        input_str = str(input_str)

    sanitized = html.escape(input_str.strip(), quote=False)

    # Remove control characters (except tab, newline, carriage return)
    sanitized = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', sanitized)

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        logging.warning(f"Input truncated from {len(input_str)} to {max_length} characters")

    return sanitized
