"""
Deletion Toolkit - entity deletion orchestration for SQLAlchemy applications.

Deletes one entity per call using the strategy its table supports, chosen once
when the entity type is described.

Key Features
------------
* **Strategies**: Physical delete, active flag, deleted flag or deletion log
* **Idempotency**: Deleting an already deleted entity is a reported no-op
* **Race safety**: Every mutation must affect exactly one row
* **Behaviors**: Ordered hooks around validation, deletion, audit and return
* **Display Order**: Sequences stay dense after a member is deleted
* **Audit Trail**: Checksummed records committed with the deletion
* **Cache**: Group invalidation deferred until the unit of work commits

Quick Start
-----------
>>> from deletion_toolkit import (
...     DeleteRequest, DeleteRequestHandler, EntityDescriptor, UnitOfWork
... )
>>>
>>> descriptor = EntityDescriptor(
...     name="Product", table=products, is_deleted_field="is_deleted"
... )
>>> handler = DeleteRequestHandler(descriptor)
>>>
>>> with UnitOfWork.begin(engine) as uow:
...     response = handler.process(uow, DeleteRequest(entity_id=5))
"""

__version__ = "1.0.0"

from .audit_trail import AuditTrailBehavior, MemoryAuditStorage, SQLAuditStorage
from .cache import MemoryCache, TwoLevelCache
from .config import DeletionConfig, configure, get_config, set_config
from .delete import (
    BehaviorRegistry,
    DeleteBehavior,
    DeleteExceptionBehavior,
    DeleteRequest,
    DeleteRequestHandler,
    DeleteResponse,
    RequestContext,
)
from .entity import (
    Capability,
    DeletionStrategy,
    EntityDescriptor,
    EntityRegistry,
    TimestampKind,
    describe_model,
)
from .exceptions import (
    DeletionError,
    EntityNotFoundError,
    InvalidEntityConfiguration,
    MissingRequiredFieldError,
    PermissionDeniedError,
    ValidationFailedError,
)
from .permissions import PermissionKind, User, UserPermissionService
from .unit_of_work import UnitOfWork

__all__ = [
    # Handler
    "DeleteRequestHandler",
    "DeleteRequest",
    "DeleteResponse",
    "RequestContext",
    "DeleteBehavior",
    "DeleteExceptionBehavior",
    "BehaviorRegistry",
    # Entities
    "Capability",
    "DeletionStrategy",
    "TimestampKind",
    "EntityDescriptor",
    "EntityRegistry",
    "describe_model",
    # Collaborators
    "UnitOfWork",
    "MemoryCache",
    "TwoLevelCache",
    "PermissionKind",
    "User",
    "UserPermissionService",
    # Audit Trail
    "AuditTrailBehavior",
    "MemoryAuditStorage",
    "SQLAuditStorage",
    # Configuration
    "DeletionConfig",
    "configure",
    "get_config",
    "set_config",
    # Exceptions
    "DeletionError",
    "EntityNotFoundError",
    "InvalidEntityConfiguration",
    "MissingRequiredFieldError",
    "PermissionDeniedError",
    "ValidationFailedError",
]
