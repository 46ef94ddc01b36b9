"""
Audit Query Service

Role-scoped, paginated access to the audit trail. Every query path narrows
non-privileged actors to their own records; caller-supplied filters can
only narrow further, never widen.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from ...exceptions import AuditAccessDeniedError, AuditRecordNotFoundError
from ...rbac import SUPER_ADMIN_ROLE, RoleLike
from ...utils.logging_security import sanitize_for_log, sanitize_id_for_log
from .models import AuditFilter, AuditRecord

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(hours=24)
RECENT_ACTIVITY_LIMIT = 10


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware bounds are converted to match"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class AuditReader(Protocol):
    def get(self, record_id: str) -> Optional[AuditRecord]:
        ...

    def query(self, audit_filter: AuditFilter, skip: int = 0, take: int = 10) -> Tuple[List[AuditRecord], int]:
        ...

    def count(self, audit_filter: AuditFilter) -> int:
        ...

    def count_by(self, field: str, audit_filter: AuditFilter) -> List[Tuple[str, int]]:
        ...


class AuditQueryService:
    """List, fetch and summarize audit records on behalf of an actor"""

    def __init__(
        self,
        store: AuditReader,
        privileged_roles: Iterable[RoleLike] = (SUPER_ADMIN_ROLE,),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.privileged_roles = {getattr(r, "value", r) for r in privileged_roles}
        self.clock = clock

    def is_privileged(self, actor_role: RoleLike) -> bool:
        return getattr(actor_role, "value", actor_role) in self.privileged_roles

    def scoped_filter(
        self,
        actor_id: str,
        actor_role: RoleLike,
        entity: Optional[str] = None,
        action: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> AuditFilter:
        """Effective store filter: caller filters plus the visibility rule"""
        return AuditFilter(
            actor_id=None if self.is_privileged(actor_role) else str(actor_id),
            entity=entity,
            action=action,
            date_from=as_naive_utc(date_from),
            date_to=as_naive_utc(date_to),
        )

    def list_records(
        self,
        actor_id: str,
        actor_role: RoleLike,
        page: int = 1,
        limit: int = 10,
        entity: Optional[str] = None,
        action: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        audit_filter = self.scoped_filter(actor_id, actor_role, entity, action, date_from, date_to)
        skip = (page - 1) * limit
        records, total = self.store.query(audit_filter, skip=skip, take=limit)

        return {
            "data": records,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    def get_record(self, record_id: str, actor_id: str, actor_role: RoleLike) -> AuditRecord:
        record = self.store.get(record_id)
        if record is None:
            raise AuditRecordNotFoundError(record_id=record_id)

        if not self.is_privileged(actor_role) and record.actor_id != str(actor_id):
            logger.warning(
                f"User {sanitize_id_for_log(actor_id)} ({sanitize_for_log(getattr(actor_role, 'value', actor_role))}) "
                f"denied audit record {sanitize_id_for_log(record_id)}"
            )
            raise AuditAccessDeniedError()

        return record

    def get_stats(self, actor_id: str, actor_role: RoleLike) -> Dict[str, Any]:
        audit_filter = self.scoped_filter(actor_id, actor_role)
        recent_filter = self.scoped_filter(actor_id, actor_role, date_from=self.clock() - RECENT_ACTIVITY_WINDOW)
        recent, _ = self.store.query(recent_filter, skip=0, take=RECENT_ACTIVITY_LIMIT)

        return {
            "total_logs": self.store.count(audit_filter),
            "action_stats": [
                {"action": action, "count": count} for action, count in self.store.count_by("action", audit_filter)
            ],
            "entity_stats": [
                {"entity": entity, "count": count} for entity, count in self.store.count_by("entity", audit_filter)
            ],
            "recent_activity": recent,
        }
