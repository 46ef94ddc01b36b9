"""
Pytest configuration and fixtures for CourseCRM backend tests.
"""

import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

TEST_SECRET_KEY = "test-secret-key-for-coursecrm-tests-0123456789"  # pragma: allowlist secret

# get_settings() reads the environment; keep it importable in tests
os.environ.setdefault("COURSECRM_SECRET_KEY", TEST_SECRET_KEY)

from coursecrm.auth import create_access_token  # noqa: E402
from coursecrm.config import Settings  # noqa: E402
from coursecrm.database import create_db_engine, create_session_factory, create_tables  # noqa: E402
from coursecrm.main import create_app  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of any .env file"""
    return Settings(secret_key=TEST_SECRET_KEY, database_url="sqlite://", debug=False)


@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite so request threads and the audit worker get their own connections"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'coursecrm_test.db'}")
    create_tables(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def app(settings, session_factory) -> FastAPI:
    return create_app(settings=settings, session_factory=session_factory)


@pytest.fixture
def client(app):
    """Provide FastAPI test client with the lifespan (audit worker) running"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    """Build Authorization headers for an actor"""

    def _headers(actor_id: str, role: str) -> dict:
        token = create_access_token(settings, actor_id, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def flush_audit(app, client):
    """Wait until every queued audit record has been written"""

    def _flush() -> None:
        client.portal.call(app.state.audit_dispatcher.join)

    return _flush
