"""Utility functions for sanitization and join codes."""

import secrets
import string
from typing import Optional

import bleach

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_LENGTH = 6


def sanitize_text(text: str) -> str:
    """Strip all HTML from user-supplied text (titles, prompts, choices)."""
    sanitized = bleach.clean(text, tags=[], strip=True)
    return sanitized.strip()


def sanitize_optional(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return sanitize_text(text)


def generate_join_code() -> str:
    """Generate a random 6-character upper-case alphanumeric join code."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
