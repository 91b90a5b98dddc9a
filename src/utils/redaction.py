"""Secret redaction for config dumps, logs, and persisted error messages.

The Notion integration token must never reach a log line, a run record,
or the output of ``crmforge config show``.
"""

import re
from typing import Any

REDACTED = "***REDACTED***"

# Matched case-insensitively as substrings of dict keys
SENSITIVE_KEY_PARTS = frozenset({"api_key", "apikey", "token", "secret", "authorization"})

_SECRET_PATTERN = re.compile(
    r"(?i)"
    r"(?:"
    r"Bearer\s+\S+"
    r"|"
    r"\b(?:secret|ntn)_[A-Za-z0-9]{8,}"
    r"|"
    r"(?:api_key|token|secret|authorization)\s*[=:]\s*\"[^\"]*\""
    r"|"
    r"(?:api_key|token|secret|authorization)\s*[=:]\s*\S+"
    r")",
)


def is_sensitive_key(key: str) -> bool:
    """Return True if a dict key looks like it holds a credential."""
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact_secrets(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a nested dict with credential values masked.

    Empty values are left alone so an unset key still reads as unset.
    """
    result: dict[str, Any] = {}
    for key, value in obj.items():
        if is_sensitive_key(key) and value:
            result[key] = REDACTED
        elif isinstance(value, dict):
            result[key] = redact_secrets(value)
        elif isinstance(value, list):
            result[key] = [
                redact_secrets(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Mask token-like substrings and truncate an error message.

    Args:
        msg: Error message (None passes through).
        max_length: Maximum length of the result.

    Returns:
        Sanitized message, or None.
    """
    if msg is None:
        return None
    sanitized = _SECRET_PATTERN.sub(REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 3] + "..."
    return sanitized
