"""
Permission declarations and permission services.

Entity types declare the permission that guards their deletion. The handler
validates the resolved permission through a ``PermissionService`` before any
mutation runs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
    Union,
)

from .exceptions import PermissionDeniedError
from .localization import Localizer

logger = logging.getLogger(__name__)

ANONYMOUS_PERMISSION = "*"  # granted to everyone
AUTHENTICATED_PERMISSION = "?"  # granted to any authenticated user
ADMIN_PERMISSION = "admin"


class PermissionKind(str, Enum):
    """Kinds of permission an entity type may declare."""

    DELETE = "delete"
    MODIFY = "modify"
    READ = "read"


# Checked in this order, first declared wins
PERMISSION_PRIORITY: Tuple[PermissionKind, ...] = (
    PermissionKind.DELETE,
    PermissionKind.MODIFY,
    PermissionKind.READ,
)

PermissionDeclaration = Tuple[PermissionKind, Optional[str]]


def resolve_permission(
    declarations: Iterable[PermissionDeclaration],
) -> Optional[Tuple[PermissionKind, str]]:
    """
    Resolve the permission guarding deletion from an entity's declarations.

    Args:
        declarations: (kind, key) pairs declared by the entity type

    Returns:
        The first declared (kind, key) in delete, modify, read order, or None
        when nothing is declared. A declaration without key resolves to "?".
    """
    declared = {}
    for kind, key in declarations:
        declared.setdefault(PermissionKind(kind), key)

    for kind in PERMISSION_PRIORITY:
        if kind in declared:
            return kind, declared[kind] or AUTHENTICATED_PERMISSION
    return None


@dataclass
class User:
    """Represents the caller of a request."""

    id: str
    name: str = ""
    roles: List[str] = field(default_factory=list)
    permissions: Set[str] = field(default_factory=set)

    def has_permission(self, permission: str) -> bool:
        """Check if user holds a specific permission key."""
        return permission in self.permissions or ADMIN_PERMISSION in self.permissions

    def has_any_permission(self, permissions: Sequence[str]) -> bool:
        """Check if user has any of the specified permissions."""
        return any(self.has_permission(p) for p in permissions)


class PermissionService(Protocol):
    """Validates that the current caller holds a permission."""

    def validate_permission(
        self, permission: str, localizer: Optional[Localizer] = None
    ) -> None:
        ...


class UserPermissionService:
    """Permission service checking the keys held by a ``User``."""

    def __init__(self, user: Optional[User] = None):
        self.user = user

    def has_permission(self, permission: str) -> bool:
        if permission == ANONYMOUS_PERMISSION:
            return True
        if self.user is None:
            return False
        if permission == AUTHENTICATED_PERMISSION:
            return True
        return self.user.has_permission(permission)

    def validate_permission(
        self, permission: str, localizer: Optional[Localizer] = None
    ) -> None:
        """
        Validate the current user holds a permission.

        Raises:
            PermissionDeniedError: If the user lacks the permission
        """
        if not self.has_permission(permission):
            user_id = self.user.id if self.user else None
            logger.warning(f"Permission '{permission}' denied for user {user_id}")
            raise PermissionDeniedError(permission, localizer)


class CallablePermissionService:
    """Adapts a ``(user, permission) -> bool`` predicate to a permission service."""

    def __init__(
        self,
        checker: Callable[[Optional[User], str], bool],
        user: Optional[User] = None,
    ):
        self.checker = checker
        self.user = user

    def validate_permission(
        self, permission: str, localizer: Optional[Localizer] = None
    ) -> None:
        if not self.checker(self.user, permission):
            user_id = self.user.id if self.user else None
            logger.warning(f"Permission '{permission}' denied for user {user_id}")
            raise PermissionDeniedError(permission, localizer)


def normalize_declarations(
    declarations: Iterable[Union[PermissionDeclaration, Tuple[str, Optional[str]]]],
) -> Tuple[PermissionDeclaration, ...]:
    """Convert (kind, key) pairs given with string kinds to ``PermissionKind``."""
    return tuple((PermissionKind(kind), key) for kind, key in declarations)
