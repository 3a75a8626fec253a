"""Redaction helpers for safe logging.

Guest records carry names, contact details and identity documents; none of
that may reach the logs. Values logged from request data go through
safe_log_context().
"""

import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Guest columns that are PII whatever their content looks like.
PII_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone",
        "address",
        "date_of_birth",
        "id_number",
        "notes",
    }
)


def redact_string(value: str) -> str:
    """Mask phone numbers and e-mail addresses inside free text."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    return _EMAIL_PATTERN.sub(_REDACTED, result)


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, dict):
        # structure only
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging.

    Known PII fields are dropped to a marker; everything else is redacted
    by value.
    """
    return {
        k: _REDACTED if k in PII_FIELDS else redact_value(v)
        for k, v in kwargs.items()
    }
