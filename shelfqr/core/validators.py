"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.

Security Considerations:
- Input validation prevents injection attacks
- Length limits prevent DoS attacks
"""

import re
from typing import Optional

from shelfqr.core.exceptions import InvalidInputError

CODE_PATTERN = re.compile(r'^[0-9A-Za-z_-]+$')
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

MAX_CODE_LENGTH = 32


def sanitize_code(code: str) -> Optional[str]:
    """
    Sanitize and validate a QR code string.

    Codes are generated from the nanoid alphabet: [0-9A-Za-z_-]

    Args:
        code: The code to sanitize

    Returns:
        Sanitized code if valid, None otherwise
    """
    if not code or not isinstance(code, str):
        return None

    code = code.strip()

    if not code or len(code) > MAX_CODE_LENGTH:
        return None

    if not CODE_PATTERN.match(code):
        return None

    return code


def is_valid_email(email: str) -> bool:
    """Loose email check: something@something.tld, no whitespace."""
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email))


def require_text(value: Optional[str], message: str) -> str:
    """
    Strip a required text field.

    Raises:
        InvalidInputError: With the given message if nothing is left
    """
    value = (value or "").strip()
    if not value:
        raise InvalidInputError(message)
    return value
