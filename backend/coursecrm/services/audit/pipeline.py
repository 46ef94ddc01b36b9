"""
Audit Capture Pipeline

Wraps a guarded operation so that every call reaching execution produces
exactly one audit record, whether it succeeds, fails or is cancelled. The
record is handed to an emit callback that must not block; failures of the
audit write never reach the caller.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ...auth import Actor
from ...logging_config import AUDIT_LOGGER_NAME
from ..authorization import OperationMetadata
from .models import AuditAction, AuditRecord, CallContext
from .sanitization import sanitize_body

logger = logging.getLogger(AUDIT_LOGGER_NAME)

T = TypeVar("T")

Emit = Callable[[AuditRecord], None]
Operation = Callable[[CallContext], Awaitable[T]]
FailureInspector = Callable[[Any], Optional[str]]

_METHOD_ACTIONS = {
    "POST": AuditAction.CREATE,
    "GET": AuditAction.READ,
    "PUT": AuditAction.UPDATE,
    "PATCH": AuditAction.UPDATE,
    "DELETE": AuditAction.DELETE,
}


def derive_audit_action(method: str) -> AuditAction:
    """Map an operation kind to its audit action; unknown kinds are READ"""
    return _METHOD_ACTIONS.get((method or "").upper(), AuditAction.READ)


class AuditCapturePipeline:
    """
    Builds and emits audit records around guarded operations.

    Args:
        emit: Non-blocking hand-off for finished records (e.g. AuditDispatcher.submit)
        failure_of: Optional inspector that reports a failure message for a
            result that returned normally (e.g. an HTTP error response)
    """

    def __init__(self, emit: Emit, failure_of: Optional[FailureInspector] = None):
        self._emit = emit
        self._failure_of = failure_of

    @staticmethod
    def should_audit(actor: Optional[Actor], metadata: Optional[OperationMetadata]) -> bool:
        return actor is not None and metadata is not None and metadata.has_resource_action

    def capture_details(self, context: CallContext) -> Dict[str, Any]:
        return {
            "method": context.method,
            "path": context.path,
            "user_agent": context.user_agent,
            "ip": context.client_ip,
            "params": dict(context.path_params),
            "query": dict(context.query_params),
            "body": sanitize_body(context.body),
        }

    def wrap(
        self, call_next: Operation
    ) -> Callable[[CallContext, Optional[Actor], Optional[OperationMetadata]], Awaitable[Any]]:
        """Return call_next wrapped with audit capture"""

        async def wrapped(
            context: CallContext,
            actor: Optional[Actor] = None,
            metadata: Optional[OperationMetadata] = None,
        ) -> Any:
            if not self.should_audit(actor, metadata):
                return await call_next(context)

            action = derive_audit_action(context.method)
            entity_id = context.path_params.get(metadata.id_param)
            details = self.capture_details(context)

            try:
                result = await call_next(context)
            except asyncio.CancelledError:
                self._record(actor, action, metadata.resource, entity_id, details, "Operation cancelled")
                raise
            except Exception as exc:
                self._record(actor, action, metadata.resource, entity_id, details, str(exc))
                raise

            failure = self._failure_of(result) if self._failure_of else None
            self._record(actor, action, metadata.resource, entity_id, details, failure)
            return result

        return wrapped

    def _record(
        self,
        actor: Actor,
        action: AuditAction,
        entity: str,
        entity_id: Optional[str],
        details: Dict[str, Any],
        error: Optional[str],
    ) -> None:
        outcome = dict(details)
        outcome["success"] = error is None
        outcome["response_status"] = "success" if error is None else "error"
        if error is not None:
            outcome["error"] = error

        try:
            record = AuditRecord(
                actor_id=actor.actor_id,
                action=action.value,
                entity=entity,
                entity_id=entity_id,
                details=outcome,
                success=error is None,
            )
            self._emit(record)
        except Exception as e:
            # The guarded operation's outcome stands regardless
            logger.error(f"Failed to emit audit record for {entity}: {e}")
