"""
Audit services module.

Provides audit capture around guarded operations, fire-and-forget
persistence, and role-scoped querying of the audit trail.

Usage:
    from coursecrm.services.audit import (
        AuditCapturePipeline,
        AuditDispatcher,
        AuditQueryService,
    )
"""

from .dispatcher import AuditDispatcher
from .models import AuditAction, AuditFilter, AuditRecord, CallContext
from .pipeline import AuditCapturePipeline, derive_audit_action
from .query_service import AuditQueryService
from .sanitization import REDACTED, SENSITIVE_FIELDS, sanitize_body

__all__ = [
    "AuditAction",
    "AuditCapturePipeline",
    "AuditDispatcher",
    "AuditFilter",
    "AuditQueryService",
    "AuditRecord",
    "CallContext",
    "REDACTED",
    "SENSITIVE_FIELDS",
    "derive_audit_action",
    "sanitize_body",
]
