"""
Unit tests for consent bookkeeping and consent visibility.
"""

import pytest

from coursecrm.exceptions import ConsentAccessDeniedError
from coursecrm.services.consent import ConsentService, ConsentType, consent_given_record


@pytest.fixture
def db(memory_session_factory):
    session = memory_session_factory()
    yield session
    session.close()


@pytest.fixture
def service(db) -> ConsentService:
    return ConsentService(db)


@pytest.mark.unit
class TestGiveConsent:
    def test_creates_consent(self, service: ConsentService) -> None:
        consent, created = service.give_consent("U1", ConsentType.MARKETING, "10.0.0.5", "pytest")

        assert created is True
        assert consent.user_id == "U1"
        assert consent.type == "MARKETING"
        assert consent.basis == "EXPLICIT"
        assert consent.details == "IP: 10.0.0.5, UserAgent: pytest"

    def test_repeat_returns_existing(self, service: ConsentService) -> None:
        first, _ = service.give_consent("U1", ConsentType.COOKIES)
        again, created = service.give_consent("U1", "COOKIES")

        assert created is False
        assert again.id == first.id
        assert len(service.user_consents("U1", "U1", "CLIENT")) == 1

    def test_unknown_type_rejected(self, service: ConsentService) -> None:
        with pytest.raises(ValueError):
            service.give_consent("U1", "NEWSLETTER")

    def test_given_record(self, service: ConsentService) -> None:
        consent, _ = service.give_consent("U1", ConsentType.ANALYTICS)

        record = consent_given_record(consent, "10.0.0.5", "pytest")

        assert record.actor_id == "U1"
        assert record.action == "CREATE"
        assert record.entity == "consent"
        assert record.entity_id == consent.id
        assert record.details["action"] == "given"
        assert record.details["consent_type"] == "ANALYTICS"
        assert record.details["ip_address"] == "10.0.0.5"


@pytest.mark.unit
class TestConsentVisibility:
    """Users see their own consents; only ADMIN sees anyone else's."""

    def test_own_consents(self, service: ConsentService) -> None:
        service.give_consent("U1", ConsentType.MARKETING)
        service.give_consent("U2", ConsentType.MARKETING)

        consents = service.user_consents("U1", "U1", "CLIENT")

        assert [c.user_id for c in consents] == ["U1"]

    @pytest.mark.parametrize("role", ["MANAGER", "CLIENT", "CANDIDATE"])
    def test_other_users_consents_denied(self, service: ConsentService, role: str) -> None:
        service.give_consent("U1", ConsentType.MARKETING)

        with pytest.raises(ConsentAccessDeniedError):
            service.user_consents("U1", "someone-else", role)

    def test_admin_reads_any_user(self, service: ConsentService) -> None:
        service.give_consent("U1", ConsentType.MARKETING)

        assert len(service.user_consents("U1", "admin-1", "ADMIN")) == 1

    def test_all_consents_paginated(self, service: ConsentService) -> None:
        for i in range(12):
            service.give_consent(f"U{i}", ConsentType.PERSONAL_DATA)
        service.give_consent("U0", ConsentType.MARKETING)

        result = service.all_consents("admin-1", "ADMIN", page=2, limit=5, consent_type=ConsentType.PERSONAL_DATA)

        assert len(result["data"]) == 5
        assert result["pagination"] == {"page": 2, "limit": 5, "total": 12, "pages": 3}

    def test_all_consents_admin_only(self, service: ConsentService) -> None:
        with pytest.raises(ConsentAccessDeniedError):
            service.all_consents("manager-1", "MANAGER")

    def test_stats(self, service: ConsentService) -> None:
        service.give_consent("U1", ConsentType.MARKETING)
        service.give_consent("U2", ConsentType.MARKETING)
        service.give_consent("U1", ConsentType.COOKIES)

        stats = service.consent_stats("admin-1", "ADMIN")

        assert stats == [{"consent_type": "COOKIES", "count": 1}, {"consent_type": "MARKETING", "count": 2}]

    def test_stats_admin_only(self, service: ConsentService) -> None:
        with pytest.raises(ConsentAccessDeniedError):
            service.consent_stats("manager-1", "MANAGER")

    def test_has_consent(self, service: ConsentService) -> None:
        service.give_consent("U1", ConsentType.MARKETING)

        assert service.has_consent("U1", ConsentType.MARKETING) is True
        assert service.has_consent("U1", ConsentType.COOKIES) is False
        assert service.has_consent("U2", ConsentType.MARKETING) is False
