"""
Integration test fixtures: seeded CRM data and direct audit store access.
"""

import pytest

from coursecrm.repositories import AuditRepository
from coursecrm.services.audit import AuditFilter


@pytest.fixture
def audit_repository(session_factory) -> AuditRepository:
    return AuditRepository(session_factory)


@pytest.fixture
def audit_records(audit_repository, flush_audit):
    """Audit records for an actor once every queued write has landed"""

    def _records(actor_id=None):
        flush_audit()
        records, _ = audit_repository.query(AuditFilter(actor_id=actor_id), skip=0, take=1000)
        return records

    return _records


@pytest.fixture
def create_organization(client, auth_headers):
    def _create(owner_id: str, name: str = "Acme Training") -> dict:
        resp = client.post("/api/organizations", json={"name": name}, headers=auth_headers(owner_id, "CLIENT"))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_contact(client, auth_headers):
    def _create(owner_id: str, org_id: str, full_name: str = "Ann Lee") -> dict:
        resp = client.post(
            "/api/contacts",
            json={"org_id": org_id, "full_name": full_name, "email": "ann@example.com"},
            headers=auth_headers(owner_id, "CLIENT"),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
