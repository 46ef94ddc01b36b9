"""
Access Control Exceptions

Raised by the request gate and the audit query service. Each carries the
HTTP status and error type used when rendering it as an API error response.
"""

from typing import Optional

from fastapi import status


class AccessControlError(Exception):
    """Base class for authorization and audit visibility failures."""

    status_code: int = status.HTTP_403_FORBIDDEN
    error_type: str = "authorization_error"
    default_message: str = "Access denied"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequiredError(AccessControlError):
    """Raised when a guarded operation is called without an actor.

    Distinct from authorization denials so clients can tell "log in" apart
    from "you may not do this".
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"
    default_message = "Authentication required"


class InsufficientRoleError(AccessControlError):
    """Raised when the actor's role is not in the operation's allowed roles.

    Attributes:
        role: The actor's role
        allowed_roles: Roles the operation accepts
    """

    default_message = "Insufficient role for this operation"

    def __init__(self, role: Optional[str] = None, allowed_roles: Optional[list] = None, message: Optional[str] = None):
        self.role = role
        self.allowed_roles = allowed_roles or []
        super().__init__(message)


class InsufficientPermissionError(AccessControlError):
    """Raised when the permission matrix or ownership check rejects the call.

    Attributes:
        resource: Resource the operation declares
        action: Action the operation declares
    """

    default_message = "Insufficient permissions to access resource"

    def __init__(self, resource: Optional[str] = None, action: Optional[str] = None, message: Optional[str] = None):
        self.resource = resource
        self.action = action
        super().__init__(message)


class AuditAccessDeniedError(AccessControlError):
    """Raised when a scoped actor requests an audit record that is not theirs."""

    default_message = "Access denied"


class AuditRecordNotFoundError(AccessControlError):
    """Raised when an audit record id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found_error"
    default_message = "Audit log not found"

    def __init__(self, record_id: Optional[str] = None, message: Optional[str] = None):
        self.record_id = record_id
        super().__init__(message)


class ConsentAccessDeniedError(AccessControlError):
    """Raised when a non-admin asks for consents other than their own."""

    default_message = "Access denied"
