"""
Audit Query Schemas

Pydantic models for audit trail responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# =============================================================================
# Record Models
# =============================================================================


class AuditRecordResponse(BaseModel):
    """Single audit record."""

    id: str
    actor_id: str = Field(..., description="User who attempted the operation")
    action: str = Field(..., description="CREATE, READ, UPDATE or DELETE")
    entity: str = Field(..., description="Resource the operation targeted")
    entity_id: Optional[str] = Field(None, description="Target identifier, when the call named one")
    details: Dict[str, Any] = Field(default_factory=dict, description="Sanitized request snapshot and outcome")
    success: bool
    timestamp: datetime


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AuditListResponse(BaseModel):
    """Paginated audit records, newest first."""

    data: List[AuditRecordResponse]
    pagination: PaginationInfo


# =============================================================================
# Statistics Models
# =============================================================================


class ActionCount(BaseModel):
    action: str
    count: int


class EntityCount(BaseModel):
    entity: str
    count: int


class AuditStatsResponse(BaseModel):
    """Aggregate view of the audit records visible to the caller."""

    total_logs: int
    action_stats: List[ActionCount]
    entity_stats: List[EntityCount]
    recent_activity: List[AuditRecordResponse] = Field(..., description="Up to 10 records from the last 24 hours")
