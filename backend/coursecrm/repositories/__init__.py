"""
Repository Pattern for persistence operations
"""

from .audit_repository import AuditRepository

__all__ = [
    "AuditRepository",
]
