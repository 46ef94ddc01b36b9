"""
Authorization Service for CourseCRM

Operation metadata, the registry that attaches it to operations, and the
request gate that approves or rejects a call before it executes.

Guarding is opt-in: an operation with no registered metadata, or metadata
declaring neither roles nor a resource/action pair, is never blocked.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..auth import Actor
from ..exceptions import AuthenticationRequiredError, InsufficientPermissionError, InsufficientRoleError
from ..rbac import RBACManager, RoleLike
from ..utils.logging_security import sanitize_for_log, sanitize_id_for_log

logger = logging.getLogger(__name__)

OwnerLookup = Callable[[Session, Mapping[str, str]], Optional[str]]


@dataclass(frozen=True)
class OperationMetadata:
    """Static access declaration attached to an operation"""

    allowed_roles: Tuple[RoleLike, ...] = ()
    resource: Optional[str] = None
    action: Optional[str] = None
    owner_lookup: Optional[OwnerLookup] = field(default=None, compare=False)
    id_param: str = "id"

    @property
    def has_resource_action(self) -> bool:
        return bool(self.resource and self.action)

    @property
    def is_guarded(self) -> bool:
        return bool(self.allowed_roles) or bool(self.resource)


@dataclass(frozen=True)
class ResolvedOperation:
    """Registry hit for a concrete request"""

    key: str
    metadata: OperationMetadata
    path_params: Dict[str, str]


def _normalize_path(path: str) -> str:
    if len(path) > 1 and path.endswith("/"):
        return path.rstrip("/")
    return path


def _split_key(key: str) -> Tuple[str, str]:
    method, _, path = key.strip().partition(" ")
    if not method or not path.startswith("/"):
        raise ValueError(f"Operation key must look like 'METHOD /path': {key!r}")
    return method.upper(), _normalize_path(path)


class OperationRegistry:
    """
    Table of guarded operations keyed by "METHOD /path/{param}".

    Lookups try a direct match first, then segment-wise pattern matching
    where "{name}" segments match any single segment and are captured as
    path parameters.
    """

    def __init__(self, operations: Optional[Mapping[str, OperationMetadata]] = None):
        self._operations: Dict[str, OperationMetadata] = {}
        if operations:
            self.update(operations)

    def register(self, key: str, metadata: OperationMetadata) -> None:
        method, path = _split_key(key)
        normalized = f"{method} {path}"
        if normalized in self._operations:
            raise ValueError(f"Operation already registered: {normalized}")
        self._operations[normalized] = metadata

    def update(self, operations: Mapping[str, OperationMetadata]) -> None:
        for key, metadata in operations.items():
            self.register(key, metadata)

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def resolve(self, method: str, path: str) -> Optional[ResolvedOperation]:
        """Find the metadata for a concrete request, with extracted path parameters"""
        method = method.upper()
        path = _normalize_path(path)

        direct = f"{method} {path}"
        if direct in self._operations:
            return ResolvedOperation(key=direct, metadata=self._operations[direct], path_params={})

        for key, metadata in self._operations.items():
            key_method, pattern = key.split(" ", 1)
            if key_method != method:
                continue
            params = self._match_pattern(path, pattern)
            if params is not None:
                return ResolvedOperation(key=key, metadata=metadata, path_params=params)

        return None

    @staticmethod
    def _match_pattern(path: str, pattern: str) -> Optional[Dict[str, str]]:
        """
        Match request path against pattern with path parameters
        """
        path_parts = path.split("/")
        pattern_parts = pattern.split("/")

        if len(path_parts) != len(pattern_parts):
            return None

        params: Dict[str, str] = {}
        for part, pat_part in zip(path_parts, pattern_parts):
            if pat_part.startswith("{") and pat_part.endswith("}"):
                if not part:
                    return None
                params[pat_part[1:-1]] = part
            elif part != pat_part:
                return None

        return params


class RequestGate:
    """Approves or rejects a call before any domain logic runs"""

    def __init__(self, rbac: RBACManager):
        self.rbac = rbac

    def check(
        self,
        actor: Optional[Actor],
        metadata: Optional[OperationMetadata],
        owner_id: Optional[str] = None,
    ) -> None:
        """
        Raise if the actor may not run the operation.

        Raises:
            AuthenticationRequiredError: metadata is declared but there is no actor
            InsufficientRoleError: actor's role is not among the allowed roles
            InsufficientPermissionError: matrix or ownership check failed
        """
        if metadata is None or not metadata.is_guarded:
            return

        if actor is None:
            raise AuthenticationRequiredError()

        if metadata.allowed_roles and not self.rbac.has_role(actor.role, metadata.allowed_roles):
            logger.warning(
                f"Role {sanitize_for_log(actor.role)} of user {sanitize_id_for_log(actor.actor_id)} "
                f"not in {[sanitize_for_log(r) for r in _role_names(metadata.allowed_roles)]}"
            )
            raise InsufficientRoleError(role=actor.role, allowed_roles=_role_names(metadata.allowed_roles))

        if metadata.has_resource_action and not self.rbac.can_access_resource(
            actor.role,
            metadata.resource,
            metadata.action,
            owner_id=owner_id,
            actor_id=actor.actor_id,
        ):
            logger.warning(
                f"User {sanitize_id_for_log(actor.actor_id)} with role {sanitize_for_log(actor.role)} "
                f"denied {sanitize_for_log(metadata.action)} on {sanitize_for_log(metadata.resource)}"
            )
            raise InsufficientPermissionError(resource=metadata.resource, action=metadata.action)


def _role_names(roles: Sequence[RoleLike]) -> list:
    return [getattr(r, "value", r) for r in roles]
