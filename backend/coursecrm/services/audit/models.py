"""
Audit domain types

AuditRecord is immutable once built; CallContext describes one guarded call
independently of the web framework that received it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4


def freeze_details(value: Any) -> Any:
    """Read-only deep copy: mappings become proxies, lists and sets become tuples"""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_details(item) for key, item in value.items()})
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(freeze_details(item) for item in value)
    return value


def thaw_details(value: Any) -> Any:
    """Plain dict/list copy of frozen details, for serialization"""
    if isinstance(value, Mapping):
        return {key: thaw_details(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw_details(item) for item in value]
    return value


class AuditAction(str, Enum):
    """Audit action derived from the operation kind"""

    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class CallContext:
    """Request facts captured for audit details"""

    method: str
    path: str
    path_params: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None


@dataclass(frozen=True)
class AuditRecord:
    """One attempted guarded operation and its outcome"""

    actor_id: str
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)
    success: bool = True
    timestamp: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        # Detached read-only copy of the snapshot, nested containers included
        object.__setattr__(self, "details", freeze_details(self.details or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "details": thaw_details(self.details),
            "success": self.success,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class AuditFilter:
    """Store-level query filter; None fields are not applied"""

    actor_id: Optional[str] = None
    entity: Optional[str] = None
    action: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
