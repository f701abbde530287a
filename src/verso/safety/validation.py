"""
Input validation for user thoughts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

MAX_THOUGHT_CHARS = 2000

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class InvalidInputError(ValueError):
    """Raised before any model call when the user message is unusable."""


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    sanitized: str = ""
    error: str = ""


def validate_thought(text: Any) -> ValidationResult:
    if not isinstance(text, str):
        return ValidationResult(valid=False, error="Message is required")
    cleaned = " ".join(_CONTROL_CHARS.sub("", text).split())
    if not cleaned:
        return ValidationResult(valid=False, error="Message is required")
    if len(cleaned) > MAX_THOUGHT_CHARS:
        return ValidationResult(
            valid=False, error=f"Message must be at most {MAX_THOUGHT_CHARS} characters"
        )
    return ValidationResult(valid=True, sanitized=cleaned)


def require_valid_thought(text: Any) -> str:
    result = validate_thought(text)
    if not result.valid:
        raise InvalidInputError(result.error)
    return result.sanitized
