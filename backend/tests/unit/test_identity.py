"""
Unit tests for bearer-token identity resolution and settings validation.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from coursecrm.auth import Actor, actor_from_authorization_header, create_access_token, decode_token
from coursecrm.config import Settings


@pytest.mark.unit
class TestActorResolution:
    def test_valid_token(self, settings: Settings) -> None:
        token = create_access_token(settings, "U1", "CLIENT")
        actor = actor_from_authorization_header(settings, f"Bearer {token}")
        assert actor == Actor(actor_id="U1", role="CLIENT")

    def test_expired_token_is_anonymous(self, settings: Settings) -> None:
        token = create_access_token(settings, "U1", "CLIENT", expires_delta=timedelta(seconds=-10))
        assert decode_token(settings, token) is None
        assert actor_from_authorization_header(settings, f"Bearer {token}") is None

    def test_wrong_signature_is_anonymous(self, settings: Settings) -> None:
        other = Settings(secret_key="another-secret-key-that-is-long-enough-123")  # pragma: allowlist secret
        token = create_access_token(other, "U1", "ADMIN")
        assert actor_from_authorization_header(settings, f"Bearer {token}") is None

    @pytest.mark.parametrize("header", [None, "", "Basic dXNlcjpwYXNz", "Bearer"])
    def test_missing_or_malformed_header(self, settings: Settings, header) -> None:
        assert actor_from_authorization_header(settings, header) is None

    def test_token_without_role_is_anonymous(self, settings: Settings) -> None:
        token = create_access_token(settings, "U1", "")
        assert actor_from_authorization_header(settings, f"Bearer {token}") is None

    def test_payload_id_aliases(self) -> None:
        assert Actor.from_payload({"userId": 7, "role": "MANAGER"}) == Actor("7", "MANAGER")
        assert Actor.from_payload({"id": "x", "role": "CLIENT"}) == Actor("x", "CLIENT")


@pytest.mark.unit
class TestSettings:
    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(secret_key="too-short")  # pragma: allowlist secret

    def test_plain_http_origin_rejected(self, settings: Settings) -> None:
        with pytest.raises(ValidationError):
            Settings(secret_key=settings.secret_key, allowed_origins=["http://example.com"])

    def test_audit_queue_must_be_positive(self, settings: Settings) -> None:
        with pytest.raises(ValidationError):
            Settings(secret_key=settings.secret_key, audit_queue_size=0)

    def test_defaults(self, settings: Settings) -> None:
        assert settings.algorithm == "HS256"
        assert settings.audit_queue_size == 1000
        assert settings.audit_shutdown_timeout == 5.0
