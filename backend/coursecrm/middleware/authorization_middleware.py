"""
Authorization Middleware for CourseCRM
Resolves the caller's identity and validates every registered operation
before it reaches a route handler.

SECURITY FEATURES:
1. Identity Resolution - Bearer token decoded into an actor for every request
2. Operation Lookup - Registered "METHOD /path" metadata with path parameters
3. Ownership Resolution - Owner of the target record for ownership-scoped roles
4. Permission Validation - Request gate over the permission matrix
5. Fail-Secure - Errors while authorizing deny the request
"""

import logging
import time
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth import actor_from_authorization_header
from ..config import Settings
from ..exceptions import AccessControlError
from ..services.authorization import OperationRegistry, RequestGate, ResolvedOperation
from ..utils.logging_security import sanitize_id_for_log, sanitize_path_for_log
from .error_handling import ErrorType, access_control_error_response, build_error_response

logger = logging.getLogger(__name__)


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Authorization middleware that validates requests against declared operation metadata.

    Sets request.state.actor (None for anonymous callers) and
    request.state.operation (the registry hit, if any) for downstream use.
    """

    def __init__(self, app, registry: OperationRegistry, gate: RequestGate, settings: Settings):
        super().__init__(app)
        self.registry = registry
        self.gate = gate
        self.settings = settings

        logger.info(f"Authorization middleware initialized with {len(self.registry)} registered operations")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start_time = time.time()

        actor = actor_from_authorization_header(self.settings, request.headers.get("Authorization"))
        request.state.actor = actor

        resolved = self.registry.resolve(request.method, request.url.path)
        request.state.operation = resolved

        if resolved is None or not resolved.metadata.is_guarded:
            # Not a guarded operation, pass through
            return await call_next(request)

        try:
            owner_id = await self._resolve_owner(request, resolved) if actor is not None else None
            self.gate.check(actor, resolved.metadata, owner_id=owner_id)
        except AccessControlError as exc:
            logger.warning(
                f"Authorization denied for user {sanitize_id_for_log(actor.actor_id if actor else None)} "
                f"on {resolved.key}: {exc.message}"
            )
            return access_control_error_response(exc, request)
        except Exception as e:
            logger.error(f"Authorization middleware error on {resolved.key}: {e}")
            # Fail securely - deny access on any error
            return build_error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                ErrorType.INTERNAL_ERROR,
                "Authorization system error",
                path=str(request.url.path),
                method=request.method,
            )

        response = await call_next(request)

        processing_time = int((time.time() - start_time) * 1000)
        logger.info(
            f"Authorization successful for user {sanitize_id_for_log(actor.actor_id)} on {request.method} "
            f"{sanitize_path_for_log(request.url.path)} ({processing_time}ms)"
        )
        return response

    async def _resolve_owner(self, request: Request, resolved: ResolvedOperation) -> Optional[str]:
        """
        Look up the owner of the targeted record, if the operation declares how
        """
        owner_lookup = resolved.metadata.owner_lookup
        if owner_lookup is None:
            return None

        session_factory = request.app.state.session_factory

        def lookup() -> Optional[str]:
            db = session_factory()
            try:
                return owner_lookup(db, resolved.path_params)
            finally:
                db.close()

        owner_id = await run_in_threadpool(lookup)
        return str(owner_id) if owner_id is not None else None
