"""
Unit test fixtures and helpers.

Provides lightweight fixtures for unit testing that do NOT require
a running application.
"""

from typing import List, Optional

import pytest

from coursecrm.auth import Actor
from coursecrm.database import create_db_engine, create_session_factory, create_tables
from coursecrm.rbac import RBACManager
from coursecrm.repositories import AuditRepository
from coursecrm.services.audit import AuditRecord


class RecordingAuditStore:
    """In-memory audit store that records every create call"""

    def __init__(self, mode: str = "ok"):
        self.mode = mode
        self.calls: List[AuditRecord] = []

    def create(self, record: AuditRecord) -> Optional[AuditRecord]:
        self.calls.append(record)
        if self.mode == "raise":
            raise RuntimeError("audit store unavailable")
        if self.mode == "none":
            return None
        return record


@pytest.fixture
def rbac() -> RBACManager:
    return RBACManager()


@pytest.fixture
def recording_store() -> RecordingAuditStore:
    return RecordingAuditStore()


@pytest.fixture
def raising_store() -> RecordingAuditStore:
    return RecordingAuditStore(mode="raise")


@pytest.fixture
def rejecting_store() -> RecordingAuditStore:
    """Store that reports the write as not persisted"""
    return RecordingAuditStore(mode="none")


@pytest.fixture
def memory_session_factory():
    """In-memory SQLite shared through a StaticPool"""
    engine = create_db_engine("sqlite://")
    create_tables(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def audit_repository(memory_session_factory) -> AuditRepository:
    return AuditRepository(memory_session_factory)


@pytest.fixture
def client_actor() -> Actor:
    return Actor(actor_id="user-2", role="CLIENT")


@pytest.fixture
def manager_actor() -> Actor:
    return Actor(actor_id="manager-1", role="MANAGER")
