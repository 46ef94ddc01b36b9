"""
Audit Log API Routes
Role-scoped, paginated read access to the audit trail
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..auth import Actor, get_current_actor
from ..rbac import UserRole
from ..schemas.audit_schemas import AuditListResponse, AuditRecordResponse, AuditStatsResponse, PaginationInfo
from ..services.audit import AuditQueryService, AuditRecord
from ..services.authorization import OperationMetadata

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audit", tags=["Audit"])

AUDIT_READ = OperationMetadata(
    allowed_roles=(UserRole.ADMIN, UserRole.MANAGER, UserRole.CURATOR, UserRole.CLIENT),
    resource="audit",
    action="read",
)

GUARDED_OPERATIONS = {
    "GET /api/audit": AUDIT_READ,
    "GET /api/audit/stats": AUDIT_READ,
    "GET /api/audit/{id}": AUDIT_READ,
}


def get_audit_query_service(request: Request) -> AuditQueryService:
    return request.app.state.audit_query_service


def _to_response(record: AuditRecord) -> AuditRecordResponse:
    return AuditRecordResponse(**record.to_dict())


@router.get("", response_model=AuditListResponse)
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    entity: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> AuditListResponse:
    """
    Get audit records with filtering and pagination.

    Non-admin callers only ever see their own records.
    """
    result = service.list_records(
        actor.actor_id,
        actor.role,
        page=page,
        limit=limit,
        entity=entity,
        action=action,
        date_from=start_date,
        date_to=end_date,
    )
    return AuditListResponse(
        data=[_to_response(record) for record in result["data"]],
        pagination=PaginationInfo(**result["pagination"]),
    )


@router.get("/stats", response_model=AuditStatsResponse)
def get_audit_stats(
    actor: Actor = Depends(get_current_actor),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> AuditStatsResponse:
    stats = service.get_stats(actor.actor_id, actor.role)
    return AuditStatsResponse(
        total_logs=stats["total_logs"],
        action_stats=stats["action_stats"],
        entity_stats=stats["entity_stats"],
        recent_activity=[_to_response(record) for record in stats["recent_activity"]],
    )


@router.get("/{id}", response_model=AuditRecordResponse)
def get_audit_log(
    id: str,
    actor: Actor = Depends(get_current_actor),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> AuditRecordResponse:
    return _to_response(service.get_record(id, actor.actor_id, actor.role))
