"""
Unit tests for audit body redaction and log sanitization helpers.
"""

import pytest

from coursecrm.services.audit.sanitization import REDACTED, sanitize_body
from coursecrm.utils.logging_security import (
    describe_audit_record_for_log,
    sanitize_for_log,
    sanitize_id_for_log,
)


@pytest.mark.unit
class TestSanitizeBody:
    """Test redaction of sensitive request fields."""

    def test_sensitive_fields_redacted(self) -> None:
        body = {"name": "Acme", "password": "hunter2", "token": "abc", "secret": "s", "key": "k"}  # pragma: allowlist secret
        sanitized = sanitize_body(body)
        assert sanitized == {
            "name": "Acme",
            "password": REDACTED,
            "token": REDACTED,
            "secret": REDACTED,
            "key": REDACTED,
        }

    def test_input_not_mutated(self) -> None:
        body = {"password": "hunter2"}  # pragma: allowlist secret
        sanitize_body(body)
        assert body == {"password": "hunter2"}  # pragma: allowlist secret

    def test_falsy_values_left_alone(self) -> None:
        assert sanitize_body({"password": "", "token": None}) == {"password": "", "token": None}

    def test_only_top_level_exact_names(self) -> None:
        """Nested objects and differently cased keys pass through."""
        body = {"credentials": {"password": "x"}, "Password": "y", "api_key": "z"}  # pragma: allowlist secret
        assert sanitize_body(body) == body

    @pytest.mark.parametrize("body", [None, {}, [], "raw text", ["password"]])
    def test_non_dict_or_empty_returned_unchanged(self, body) -> None:
        assert sanitize_body(body) == body


@pytest.mark.unit
class TestLogSanitization:
    """Test log-injection protection for user-controlled values."""

    def test_newlines_removed(self) -> None:
        assert "\n" not in sanitize_for_log("user\nFAKE LOG LINE")

    def test_none_value(self) -> None:
        assert sanitize_for_log(None) == "null"

    def test_long_value_truncated(self) -> None:
        assert len(sanitize_for_log("a" * 500)) <= 120

    def test_id_sanitized(self) -> None:
        assert "\r" not in sanitize_id_for_log("id\r\n42")

    def test_describe_audit_record(self) -> None:
        text = describe_audit_record_for_log("DELETE", "user-1", "contacts", "c-1", success=False)
        assert "DELETE" in text
        assert "contacts" in text
