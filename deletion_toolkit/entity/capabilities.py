"""
Entity capabilities and deletion strategy resolution.

Capabilities are a closed set of flags attached to an entity descriptor when it
is registered. The deletion strategy is a pure function of those flags.
"""

from enum import Enum, Flag, auto


class Capability(Flag):
    """Optional capabilities an entity type may implement."""

    NONE = 0
    IS_ACTIVE = auto()  # integer flag, negative means deleted
    IS_DELETED = auto()  # boolean flag
    DELETE_LOG = auto()  # deletion timestamp + deleting user
    UPDATE_LOG = auto()  # update timestamp + updating user
    DISPLAY_ORDER = auto()  # dense sortable sequence


DELETION_SIGNALS = Capability.IS_ACTIVE | Capability.IS_DELETED | Capability.DELETE_LOG
FLAG_SIGNALS = Capability.IS_ACTIVE | Capability.IS_DELETED


class TimestampKind(str, Enum):
    """Time representation a timestamp column stores."""

    LOCAL = "local"  # naive local time
    UTC = "utc"  # timezone-aware UTC
    UNSPECIFIED = "unspecified"  # naive, treated as local


class DeletionStrategy(str, Enum):
    """Mutually exclusive ways of deleting one entity."""

    HARD_DELETE = "hard_delete"
    ACTIVE_FLAG = "active_flag"
    DELETED_FLAG = "deleted_flag"
    DELETE_LOG = "delete_log"

    @property
    def is_physical(self) -> bool:
        return self is DeletionStrategy.HARD_DELETE


def resolve_strategy(capabilities: Capability) -> DeletionStrategy:
    """
    Pick the deletion strategy for a capability set.

    Precedence:
        1. no active flag, deleted flag or delete log -> hard delete
        2. active flag (before deleted flag) -> flag update
        3. delete log only -> log-only update

    Args:
        capabilities: Capabilities of the entity type

    Returns:
        The strategy to execute
    """
    if not capabilities & DELETION_SIGNALS:
        return DeletionStrategy.HARD_DELETE
    if capabilities & Capability.IS_ACTIVE:
        return DeletionStrategy.ACTIVE_FLAG
    if capabilities & Capability.IS_DELETED:
        return DeletionStrategy.DELETED_FLAG
    return DeletionStrategy.DELETE_LOG


def capability_names(capabilities: Capability) -> list:
    """Names of the individual capabilities in a flag set, in declaration order."""
    return [
        member.name
        for member in (
            Capability.IS_ACTIVE,
            Capability.IS_DELETED,
            Capability.DELETE_LOG,
            Capability.UPDATE_LOG,
            Capability.DISPLAY_ORDER,
        )
        if capabilities & member
    ]
