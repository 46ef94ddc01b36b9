"""
Database configuration and ORM models
"""

import logging
from datetime import datetime
from typing import Callable, Generator
from uuid import uuid4

from fastapi import Request
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

SessionFactory = Callable[[], Session]


def _new_id() -> str:
    return str(uuid4())


# Database Models
class AuditLog(Base):  # type: ignore[valid-type, misc]
    """Audit trail of guarded operations"""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    actor_id = Column(String(100), nullable=False, index=True)
    action = Column(String(20), nullable=False, index=True)  # CREATE, READ, UPDATE, DELETE
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)  # JSON details
    success = Column(Boolean, default=True, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class Organization(Base):  # type: ignore[valid-type, misc]
    """CRM organization owned by a user"""

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    owner_id = Column(String(100), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    contacts = relationship("Contact", back_populates="organization", cascade="all, delete-orphan")


class Contact(Base):  # type: ignore[valid-type, misc]
    """Contact person within an organization"""

    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=_new_id)
    org_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    position = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    organization = relationship("Organization", back_populates="contacts")


class Consent(Base):  # type: ignore[valid-type, misc]
    """Processing consent granted by a user"""

    __tablename__ = "consents"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    type = Column(String(30), nullable=False, index=True)  # PERSONAL_DATA, MARKETING, ANALYTICS, COOKIES
    basis = Column(String(30), nullable=False, default="EXPLICIT")
    details = Column(Text, nullable=True)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite URLs get thread-shareable connections"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every session sees the same in-memory DB
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)


def create_session_factory(engine: Engine) -> SessionFactory:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Create all tables"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_database_health(session_factory: SessionFactory) -> bool:
    """Check database connectivity"""
    db = session_factory()
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
    finally:
        db.close()


# Database dependency for FastAPI
def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI endpoints.

    Yields:
        SQLAlchemy Session from the application's session factory.

    Note:
        Session is automatically closed when the request completes.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
