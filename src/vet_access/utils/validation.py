"""
Validation and data processing utilities for access-consent payloads.

This module provides the text sanitization shared by the request, decision and
follow-up schemas.
"""

import re
import unicodedata
from typing import Optional


def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize a string by normalizing unicode and trimming whitespace.

    Args:
        value: The string to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    # Normalize unicode characters
    normalized = unicodedata.normalize("NFKC", value)

    # Strip whitespace and collapse multiple spaces
    sanitized = re.sub(r"\s+", " ", normalized.strip())

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length].rstrip()

    return sanitized


def sanitize_optional_text(
    value: Optional[str], max_length: Optional[int] = None
) -> Optional[str]:
    """
    Sanitize free text, mapping blank input to None.

    Args:
        value: The text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text, or None when nothing but whitespace was supplied
    """
    if value is None:
        return None
    sanitized = sanitize_string(value, max_length=max_length)
    return sanitized or None


def require_text(value: str, field_name: str, max_length: int) -> str:
    """
    Sanitize required free text.

    Raises:
        ValueError: If the text is blank or longer than ``max_length``
    """
    sanitized = sanitize_string(value)
    if not sanitized:
        raise ValueError(f"{field_name} must not be empty")
    if len(sanitized) > max_length:
        raise ValueError(
            f"{field_name} is too long (maximum {max_length} characters)"
        )
    return sanitized
