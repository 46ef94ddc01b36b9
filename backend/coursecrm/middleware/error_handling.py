"""
API Error Handling for CourseCRM
Provides standardized error responses and logging
"""

import logging
import traceback
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from ..exceptions import AccessControlError
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_path_for_log

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Detailed error information"""

    field: Optional[str] = None
    message: str
    type: Optional[str] = None


class APIErrorResponse(BaseModel):
    """Standardized API error response"""

    success: bool = False
    error: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)
    error_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    path: Optional[str] = None
    method: Optional[str] = None


class ErrorType:
    """Standard error types for consistent handling"""

    AUTHENTICATION_ERROR = "authentication_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"
    INTERNAL_ERROR = "internal_error"


def build_error_response(
    status_code: int,
    error_type: str,
    message: str,
    path: Optional[str] = None,
    method: Optional[str] = None,
    details: Optional[List[ErrorDetail]] = None,
) -> JSONResponse:
    """Render an error in the standard response shape"""
    error_response = APIErrorResponse(
        error=error_type,
        message=message,
        details=details or [],
        path=path,
        method=method,
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


def access_control_error_response(exc: AccessControlError, request: Request) -> JSONResponse:
    return build_error_response(
        exc.status_code,
        exc.error_type,
        exc.message,
        path=str(request.url.path),
        method=request.method,
    )


async def _handle_access_control_error(request: Request, exc: AccessControlError) -> JSONResponse:
    logger.warning(
        f"HTTP {exc.status_code} {exc.error_type} on {request.method} {sanitize_path_for_log(request.url.path)}: "
        f"{sanitize_error_message_for_log(exc.message)}"
    )
    return access_control_error_response(exc, request)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render domain exceptions as API error responses"""
    app.add_exception_handler(AccessControlError, _handle_access_control_error)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Outermost safety net: unexpected exceptions become standardized 500s"""

    def __init__(self, app, include_debug_info: bool = False):
        super().__init__(app)
        self.include_debug_info = include_debug_info

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_unexpected_exception(request, exc)

    def _handle_unexpected_exception(self, request: Request, exc: Exception) -> JSONResponse:
        details = [ErrorDetail(message=str(exc), type=type(exc).__name__)] if self.include_debug_info else []
        if self.include_debug_info:
            details.append(ErrorDetail(message=traceback.format_exc(), type="traceback"))

        response = build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorType.INTERNAL_ERROR,
            "Internal server error occurred",
            path=str(request.url.path),
            method=request.method,
            details=details,
        )

        logger.error(
            f"Unexpected error on {request.method} {sanitize_path_for_log(request.url.path)}: "
            f"{sanitize_error_message_for_log(str(exc))}",
            exc_info=True,
        )
        return response
