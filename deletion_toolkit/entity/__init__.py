"""
Entity Module - static metadata about deletable entity types.

Provides capability flags, the strategy resolver, entity descriptors and the
declarative mixins used to describe SQLAlchemy models.
"""

from .capabilities import (
    Capability,
    DeletionStrategy,
    TimestampKind,
    capability_names,
    resolve_strategy,
)
from .descriptor import EntityDescriptor, EntityRegistry
from .mixins import (
    DeleteLogMixin,
    DisplayOrderMixin,
    IsActiveMixin,
    IsDeletedMixin,
    UpdateLogMixin,
    describe_model,
)

__all__ = [
    # Capabilities
    "Capability",
    "DeletionStrategy",
    "TimestampKind",
    "resolve_strategy",
    "capability_names",
    # Descriptors
    "EntityDescriptor",
    "EntityRegistry",
    # Mixins
    "IsActiveMixin",
    "IsDeletedMixin",
    "DeleteLogMixin",
    "UpdateLogMixin",
    "DisplayOrderMixin",
    "describe_model",
]
