"""Shared validation functions for all entry points.

Pure functions with no FastAPI or Click dependencies.
"""

from __future__ import annotations

import unicodedata
from typing import Any

_MAX_TAG_NAME_LENGTH = 64
_MAX_TITLE_LENGTH = 500


def sanitize_tag_name(value: Any) -> tuple[str, str | None]:
    """Validate and clean a tag name.

    Returns (cleaned_name, None) on success or ("", error_message) on failure.
    A leading token trigger is stripped so "#work" and "work" name the same tag.
    """
    if not isinstance(value, str):
        return ("", "tag name must be a string")
    for ch in value:
        if unicodedata.category(ch).startswith("C"):
            return ("", f"tag name must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip().lstrip("#").strip()
    if not cleaned:
        return ("", "tag name must not be empty")
    if len(cleaned) > _MAX_TAG_NAME_LENGTH:
        return ("", f"tag name must be at most {_MAX_TAG_NAME_LENGTH} characters")
    return (cleaned, None)


def sanitize_title(value: Any) -> tuple[str, str | None]:
    """Validate an issue title. Empty titles are allowed; they read back as ""."""
    if not isinstance(value, str):
        return ("", "title must be a string")
    cleaned = value.strip()
    if len(cleaned) > _MAX_TITLE_LENGTH:
        return ("", f"title must be at most {_MAX_TITLE_LENGTH} characters")
    return (cleaned, None)


def validate_priority(value: Any) -> int:
    """Return *value* as a priority (0 low, 1 medium, 2 high) or raise ValueError."""
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Priority must be an integer, got {type(value).__name__}"
        raise ValueError(msg)
    if not 0 <= value <= 2:
        msg = f"Priority must be between 0 and 2, got {value}"
        raise ValueError(msg)
    return value
