"""Detection of entities that are already deleted."""

from typing import Any, Mapping

from ..entity.capabilities import Capability
from ..entity.descriptor import EntityDescriptor


def is_already_deleted(descriptor: EntityDescriptor, row: Mapping[str, Any]) -> bool:
    """
    Check the loaded deletion-state fields of an entity.

    An entity is already deleted when its deleted flag is true, its active
    flag is negative, or its deleting user is set.
    """
    if descriptor.has(Capability.IS_DELETED):
        if row.get(descriptor.is_deleted_field):  # type: ignore[arg-type]
            return True
    if descriptor.has(Capability.IS_ACTIVE):
        is_active = row.get(descriptor.is_active_field)  # type: ignore[arg-type]
        if is_active is not None and is_active < 0:
            return True
    if descriptor.has(Capability.DELETE_LOG):
        return row.get(descriptor.delete_user_field) is not None  # type: ignore[arg-type]
    return False
