"""
Redaction of sensitive request fields before they reach the audit trail
"""

from typing import Any, Tuple

SENSITIVE_FIELDS: Tuple[str, ...] = ("password", "token", "secret", "key")

REDACTED = "[REDACTED]"


def sanitize_body(body: Any) -> Any:
    """
    Copy of a request body with sensitive top-level values redacted.

    Only top-level keys are matched, exactly and case-sensitively. Nested
    objects and arrays are copied through as-is. Non-dict bodies are
    returned unchanged.
    """
    if not body or not isinstance(body, dict):
        return body

    sanitized = dict(body)
    for field_name in SENSITIVE_FIELDS:
        if sanitized.get(field_name):
            sanitized[field_name] = REDACTED

    return sanitized
