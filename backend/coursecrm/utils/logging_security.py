"""
Security Logging Utilities for CourseCRM
Prevents log injection attacks (CWE-117) and information disclosure in logs.

Every value that comes from a request (actor ids, roles, paths, record ids,
error text) goes through one of these helpers before it is interpolated into
a log line.
"""

import re
from typing import Any, Optional
from urllib.parse import quote

# CRLF (raw, URL-encoded, escaped), NUL and other control characters
_INJECTION_RE = re.compile(r"[\r\n]|%0[ad]|\\[rn]|[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", re.IGNORECASE)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._@\-\s]")

_UUID_RE = re.compile(r"^[0-9a-fA-F]{8}(-[0-9a-fA-F]{4}){3}-[0-9a-fA-F]{12}$")

# Credential-looking fragments in exception text
_SECRET_FRAGMENTS = [
    (re.compile(r"\b(password|passwd|token|secret|api[_-]?key)([=:\s]+)\S+", re.IGNORECASE), r"\1=[REDACTED]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), "Bearer [REDACTED]"),
    (re.compile(r"[0-9a-fA-F]{32,}"), "[HEX_REDACTED]"),
]


def sanitize_for_log(value: Optional[Any], max_length: int = 100, allow_special: bool = False) -> str:
    """
    Sanitize any value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Truncate longer values (an ellipsis is appended)
        allow_special: Keep punctuation instead of reducing to [a-zA-Z0-9._@- ]

    Returns:
        str: Single-line string safe for logging
    """
    if value is None:
        return "null"

    text = str(value)
    if len(text) > max_length:
        text = text[:max_length] + "..."

    text = _INJECTION_RE.sub("", text)
    if not allow_special:
        text = _UNSAFE_CHARS_RE.sub("", text)

    text = text.strip()
    return text or "[sanitized]"


def sanitize_id_for_log(id_value: Optional[Any]) -> str:
    """UUIDs and numeric ids pass through untouched; anything else is sanitized."""
    if id_value is None:
        return "[no_id]"

    text = str(id_value)
    if _UUID_RE.match(text) or text.isdigit():
        return text

    return sanitize_for_log(text, max_length=50)


def sanitize_path_for_log(path: Optional[str]) -> str:
    if not path:
        return "[no_path]"

    # Route templates keep their braces readable
    return sanitize_for_log(quote(path, safe="/.:-_{}"), max_length=200, allow_special=True)


def sanitize_error_message_for_log(error_msg: Optional[str]) -> str:
    """
    Sanitize exception text for logging.

    Credential-looking fragments and long hex strings are redacted before the
    usual injection filtering.
    """
    if not error_msg:
        return "[no_error_message]"

    text = str(error_msg)
    for pattern, replacement in _SECRET_FRAGMENTS:
        text = pattern.sub(replacement, text)

    return sanitize_for_log(text, max_length=500, allow_special=True)


def describe_audit_record_for_log(
    action: str,
    actor_id: Optional[str],
    entity: Optional[str],
    entity_id: Optional[str] = None,
    success: bool = True,
) -> str:
    """
    One-line, injection-safe description of an audit record.

    Used on the audit diagnostics channel when a record cannot be persisted.
    """
    parts = [
        f"action={sanitize_for_log(action)}",
        f"actor={sanitize_id_for_log(actor_id)}",
        f"entity={sanitize_for_log(entity) if entity else 'unknown_entity'}:{sanitize_id_for_log(entity_id)}",
        f"success={success}",
    ]
    return " | ".join(parts)
