"""
Delete Module - orchestration of entity deletion.

Provides the request handler, the behavior hooks it invokes and the strategy
executor that builds the deleting statement.
"""

from .behaviors import (
    BehaviorPipeline,
    BehaviorRegistry,
    DeleteBehavior,
    DeleteExceptionBehavior,
    LoggingExceptionBehavior,
)
from .display_order import display_order_filter, reorder_values
from .gate import is_already_deleted
from .handler import DeleteRequestHandler
from .models import DeleteContext, DeleteRequest, DeleteResponse, RequestContext
from .strategies import (
    DeletionExecutor,
    coerce_user_id,
    normalize_timestamp,
    not_deleted_criteria,
)

__all__ = [
    # Handler
    "DeleteRequestHandler",
    "DeleteRequest",
    "DeleteResponse",
    "DeleteContext",
    "RequestContext",
    # Behaviors
    "DeleteBehavior",
    "DeleteExceptionBehavior",
    "LoggingExceptionBehavior",
    "BehaviorPipeline",
    "BehaviorRegistry",
    # Strategies
    "DeletionExecutor",
    "coerce_user_id",
    "normalize_timestamp",
    "not_deleted_criteria",
    "is_already_deleted",
    # Display order
    "display_order_filter",
    "reorder_values",
]
