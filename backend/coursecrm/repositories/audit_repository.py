"""
Audit Repository

SQLAlchemy-backed audit store. `create` never raises: failures are logged
and reported as None so callers on the dispatch path cannot be disrupted.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ..database import AuditLog, SessionFactory
from ..logging_config import AUDIT_LOGGER_NAME
from ..services.audit.models import AuditFilter, AuditRecord, thaw_details
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_id_for_log

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)

GROUPABLE_FIELDS = {
    "action": AuditLog.action,
    "entity": AuditLog.entity,
}


def _serialize_details(details: Any) -> Optional[str]:
    if not details:
        return None
    return json.dumps(thaw_details(details), default=str, ensure_ascii=False)


def _deserialize_details(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable audit details payload, returning raw text")
        return {"raw": raw}
    return value if isinstance(value, dict) else {"value": value}


def to_record(row: AuditLog) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        actor_id=row.actor_id,
        action=row.action,
        entity=row.entity,
        entity_id=row.entity_id,
        details=_deserialize_details(row.details),
        success=bool(row.success),
        timestamp=row.timestamp,
    )


class AuditRepository:
    """Create and query audit records"""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def create(self, record: AuditRecord) -> Optional[AuditRecord]:
        db: Session = self.session_factory()
        try:
            db.add(
                AuditLog(
                    id=record.id,
                    actor_id=record.actor_id,
                    action=record.action,
                    entity=record.entity,
                    entity_id=record.entity_id,
                    details=_serialize_details(record.details),
                    success=record.success,
                    timestamp=record.timestamp,
                )
            )
            db.commit()
            return record
        except Exception as e:
            audit_logger.error(
                f"Failed to create audit log {sanitize_id_for_log(record.id)}: "
                f"{sanitize_error_message_for_log(str(e))}"
            )
            db.rollback()
            return None
        finally:
            db.close()

    def get(self, record_id: str) -> Optional[AuditRecord]:
        db: Session = self.session_factory()
        try:
            row = db.get(AuditLog, record_id)
            return to_record(row) if row else None
        finally:
            db.close()

    def query(self, audit_filter: AuditFilter, skip: int = 0, take: int = 10) -> Tuple[List[AuditRecord], int]:
        """Page of records, newest first, with the total matching count"""
        db: Session = self.session_factory()
        try:
            base = self._apply_filter(db.query(AuditLog), audit_filter)
            total = base.count()
            rows = base.order_by(AuditLog.timestamp.desc()).offset(skip).limit(take).all()
            return [to_record(row) for row in rows], total
        finally:
            db.close()

    def count(self, audit_filter: AuditFilter) -> int:
        db: Session = self.session_factory()
        try:
            return self._apply_filter(db.query(AuditLog), audit_filter).count()
        finally:
            db.close()

    def count_by(self, field: str, audit_filter: AuditFilter) -> List[Tuple[str, int]]:
        """Record counts grouped by "action" or "entity" """
        column = GROUPABLE_FIELDS.get(field)
        if column is None:
            raise ValueError(f"Cannot group audit records by {field!r}")

        db: Session = self.session_factory()
        try:
            query = self._apply_filter(db.query(column, func.count(AuditLog.id)), audit_filter)
            rows = query.group_by(column).order_by(column).all()
            return [(value, count) for value, count in rows]
        finally:
            db.close()

    @staticmethod
    def _apply_filter(query: Query, audit_filter: AuditFilter) -> Query:
        if audit_filter.actor_id is not None:
            query = query.filter(AuditLog.actor_id == audit_filter.actor_id)
        if audit_filter.entity:
            query = query.filter(AuditLog.entity == audit_filter.entity)
        if audit_filter.action:
            query = query.filter(AuditLog.action == audit_filter.action)
        if audit_filter.date_from is not None:
            query = query.filter(AuditLog.timestamp >= audit_filter.date_from)
        if audit_filter.date_to is not None:
            query = query.filter(AuditLog.timestamp <= audit_filter.date_to)
        return query