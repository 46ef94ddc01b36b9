"""
Role-Based Access Control (RBAC) System for CourseCRM
Defines roles, the permission matrix, and access control logic
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

WILDCARD = "*"


class UserRole(str, Enum):
    """User roles in the system"""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CURATOR = "CURATOR"
    CLIENT = "CLIENT"
    CANDIDATE = "CANDIDATE"


SUPER_ADMIN_ROLE = UserRole.ADMIN

RoleLike = Union[UserRole, str]


@dataclass(frozen=True)
class PermissionRule:
    """Grants a set of actions on one resource ("*" matches anything)"""

    resource: str
    actions: FrozenSet[str]

    @classmethod
    def of(cls, resource: str, *actions: str) -> "PermissionRule":
        return cls(resource=resource, actions=frozenset(actions))

    def matches(self, resource: str, action: str) -> bool:
        resource_match = self.resource == WILDCARD or self.resource == resource
        action_match = WILDCARD in self.actions or action in self.actions
        return resource_match and action_match


@dataclass(frozen=True)
class AuthorizationRequest:
    """A single authorization question asked by the request gate"""

    actor_role: RoleLike
    resource: str
    action: str
    owner_id: Optional[str] = None
    actor_id: Optional[str] = None


def _role_key(role: RoleLike) -> Optional[UserRole]:
    """Normalize a role name; unknown names map to None"""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


class PermissionMatrix:
    """
    Immutable role -> permission rule mapping.

    Built once at startup and shared read-only by every request.
    """

    def __init__(
        self,
        rules: Mapping[RoleLike, Iterable[PermissionRule]],
        ownership_scoped_roles: Iterable[RoleLike] = (UserRole.CLIENT,),
    ):
        table: Dict[UserRole, Tuple[PermissionRule, ...]] = {}
        for role, role_rules in rules.items():
            key = _role_key(role)
            if key is None:
                raise ValueError(f"Unknown role in permission matrix: {role}")
            table[key] = tuple(role_rules)

        self._rules = MappingProxyType(table)
        self._ownership_scoped = frozenset(
            key for key in (_role_key(r) for r in ownership_scoped_roles) if key is not None
        )

    def permissions_for(self, role: RoleLike) -> List[PermissionRule]:
        """Rules for a role; unknown roles get no rules"""
        key = _role_key(role)
        if key is None:
            return []
        return list(self._rules.get(key, ()))

    def has_role(self, role: RoleLike) -> bool:
        key = _role_key(role)
        return key is not None and key in self._rules

    def is_ownership_scoped(self, role: RoleLike) -> bool:
        return _role_key(role) in self._ownership_scoped

    @property
    def roles(self) -> FrozenSet[UserRole]:
        return frozenset(self._rules.keys())


_CRUD = ("read", "create", "update", "delete")

DEFAULT_PERMISSION_MATRIX = PermissionMatrix(
    {
        UserRole.ADMIN: [
            PermissionRule.of(WILDCARD, WILDCARD),
        ],
        UserRole.MANAGER: [
            PermissionRule.of("courses", *_CRUD),
            PermissionRule.of("lessons", *_CRUD),
            PermissionRule.of("quizzes", *_CRUD),
            PermissionRule.of("organizations", *_CRUD),
            PermissionRule.of("contacts", *_CRUD),
            PermissionRule.of("users", "read"),
            PermissionRule.of("progress", "read"),
            PermissionRule.of("dashboard", "read"),
            PermissionRule.of("audit", "read"),
            PermissionRule.of("consent", "read", "create"),
        ],
        UserRole.CURATOR: [
            PermissionRule.of("courses", *_CRUD),
            PermissionRule.of("lessons", *_CRUD),
            PermissionRule.of("quizzes", *_CRUD),
            PermissionRule.of("students", "read"),
            PermissionRule.of("progress", "read"),
            PermissionRule.of("audit", "read"),
        ],
        UserRole.CLIENT: [
            PermissionRule.of("courses", "read"),
            PermissionRule.of("lessons", "read"),
            PermissionRule.of("quizzes", "read"),
            PermissionRule.of("progress", "read", "update"),  # own progress
            PermissionRule.of("profile", "read", "update"),
            PermissionRule.of("organizations", "read", "create", "update"),
            PermissionRule.of("contacts", *_CRUD),
            PermissionRule.of("audit", "read"),
            PermissionRule.of("consent", "read", "create"),
        ],
        UserRole.CANDIDATE: [
            PermissionRule.of("courses", "read"),
            PermissionRule.of("lessons", "read"),
            PermissionRule.of("quizzes", "read"),
            PermissionRule.of("progress", "read", "update"),
            PermissionRule.of("profile", "read", "update"),
            PermissionRule.of("applications", "read", "create"),
            PermissionRule.of("consent", "read", "create"),
        ],
    },
    ownership_scoped_roles=(UserRole.CLIENT,),
)


class RBACManager:
    """Role-Based Access Control Manager"""

    def __init__(self, matrix: PermissionMatrix = DEFAULT_PERMISSION_MATRIX):
        self.matrix = matrix

    def get_permissions(self, role: RoleLike) -> List[PermissionRule]:
        """Get all permission rules for a role"""
        return self.matrix.permissions_for(role)

    def can_access(self, role: RoleLike, resource: str, action: str) -> bool:
        """Check if a role can perform an action on a resource type"""
        # Checked ahead of the matrix so no rule edit can narrow it
        if _role_key(role) is SUPER_ADMIN_ROLE:
            return True

        if not self.matrix.has_role(role):
            return False

        return any(rule.matches(resource, action) for rule in self.matrix.permissions_for(role))

    def can_access_resource(
        self,
        role: RoleLike,
        resource: str,
        action: str,
        owner_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> bool:
        """
        Check role permission, then narrow ownership-scoped roles to their own records.

        Ownership only ever restricts: a role without the base permission is
        denied even when it owns the resource.
        """
        if not self.can_access(role, resource, action):
            return False

        if self.matrix.is_ownership_scoped(role) and owner_id and actor_id:
            return str(owner_id) == str(actor_id)

        return True

    def evaluate(self, request: AuthorizationRequest) -> bool:
        return self.can_access_resource(
            request.actor_role,
            request.resource,
            request.action,
            owner_id=request.owner_id,
            actor_id=request.actor_id,
        )

    @staticmethod
    def has_role(role: RoleLike, allowed_roles: Sequence[RoleLike]) -> bool:
        """Check if a role is one of the allowed roles"""
        key = _role_key(role)
        allowed = {_role_key(r) for r in allowed_roles}
        allowed.discard(None)
        return key is not None and key in allowed


def get_rbac_manager() -> RBACManager:
    """Evaluator over the default matrix"""
    return _default_manager


_default_manager = RBACManager(DEFAULT_PERMISSION_MATRIX)
