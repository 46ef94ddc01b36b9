"""
Audit Middleware for CourseCRM
Runs every approved, authenticated operation that declares a resource and
action through the audit capture pipeline.

Must sit inside AuthorizationMiddleware: requests denied by the gate never
reach it, so denials produce no audit record.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..services.audit.dispatcher import AuditDispatcher
from ..services.audit.models import CallContext
from ..services.audit.pipeline import AuditCapturePipeline
from ..services.authorization import ResolvedOperation

logger = logging.getLogger(__name__)


def http_failure(response: Response) -> Optional[str]:
    """Error responses count as failed operations"""
    if response.status_code >= 400:
        return f"HTTP {response.status_code}"
    return None


def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request
    """
    # Check for forwarded headers first (behind proxy)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


async def _read_json_body(request: Request) -> Any:
    if not request.headers.get("content-type", "").startswith("application/json"):
        return None

    body = await request.body()
    if not body:
        return None

    try:
        return json.loads(body)
    except ValueError:
        logger.debug("Request body is not valid JSON, omitted from audit details")
        return None


async def build_call_context(request: Request, resolved: ResolvedOperation) -> CallContext:
    """Framework-independent description of the request for audit details"""
    return CallContext(
        method=request.method,
        path=str(request.url.path),
        path_params=dict(resolved.path_params),
        query_params=dict(request.query_params),
        body=await _read_json_body(request),
        user_agent=request.headers.get("user-agent"),
        client_ip=get_client_ip(request),
    )


class AuditMiddleware(BaseHTTPMiddleware):
    """Audit capture around guarded operations"""

    def __init__(self, app, dispatcher: AuditDispatcher):
        super().__init__(app)
        self.pipeline = AuditCapturePipeline(emit=dispatcher.submit, failure_of=http_failure)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        actor = getattr(request.state, "actor", None)
        resolved: Optional[ResolvedOperation] = getattr(request.state, "operation", None)
        metadata = resolved.metadata if resolved else None

        if not self.pipeline.should_audit(actor, metadata):
            return await call_next(request)

        context = await build_call_context(request, resolved)
        wrapped = self.pipeline.wrap(lambda _context: call_next(request))
        return await wrapped(context, actor, metadata)
