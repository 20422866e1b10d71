"""
Delete behaviors and the pipeline that invokes them.

A behavior hooks into fixed points of a deletion call. All hooks default to
no-ops, so behaviors only override what they need:

    class RejectLocked(DeleteBehavior):
        def on_validate_request(self, ctx):
            if ctx.row.get("is_locked"):
                raise ValidationFailedError("Locked records cannot be deleted")

Behaviors run in the order they were given to the handler.
"""

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Select

if TYPE_CHECKING:
    from .models import DeleteContext

logger = logging.getLogger(__name__)


class DeleteBehavior:
    """Base class for delete behaviors."""

    def on_validate_request(self, ctx: "DeleteContext") -> None:
        """After load and permission check; raise to abort the call."""

    def on_prepare_query(self, ctx: "DeleteContext", query: Select) -> Select:  # type: ignore[type-arg]
        """Augment the entity load query before it runs."""
        return query

    def on_before_delete(self, ctx: "DeleteContext") -> None:
        """Before the mutation; not called for already deleted entities."""

    def on_after_delete(self, ctx: "DeleteContext") -> None:
        """After a successful mutation."""

    def on_audit(self, ctx: "DeleteContext") -> None:
        """Record the deletion; not called for already deleted entities."""

    def on_return(self, ctx: "DeleteContext") -> None:
        """Last step before the response is returned, on every successful call."""


class DeleteExceptionBehavior(DeleteBehavior):
    """Behavior that also observes failures of the mutation."""

    def on_exception(self, ctx: "DeleteContext", exception: Exception) -> None:
        """Observe a failure; the failure is re-raised afterwards."""


class LoggingExceptionBehavior(DeleteExceptionBehavior):
    """Logs failed deletions."""

    def __init__(self, logger_name: Optional[str] = None):
        self.logger = logging.getLogger(logger_name) if logger_name else logger

    def on_exception(self, ctx: "DeleteContext", exception: Exception) -> None:
        self.logger.error(
            f"Deleting {ctx.descriptor.name} {ctx.entity_id} failed: {exception}"
        )


class BehaviorPipeline:
    """Invokes an ordered, fixed set of behaviors at each hook point."""

    def __init__(self, behaviors: Iterable[DeleteBehavior] = ()):
        self.behaviors: Tuple[DeleteBehavior, ...] = tuple(behaviors)
        self.exception_behaviors: Tuple[DeleteExceptionBehavior, ...] = tuple(
            b for b in self.behaviors if isinstance(b, DeleteExceptionBehavior)
        )

    def validate_request(self, ctx: "DeleteContext") -> None:
        for behavior in self.behaviors:
            behavior.on_validate_request(ctx)

    def prepare_query(self, ctx: "DeleteContext", query: Select) -> Select:  # type: ignore[type-arg]
        for behavior in self.behaviors:
            query = behavior.on_prepare_query(ctx, query)
        return query

    def before_delete(self, ctx: "DeleteContext") -> None:
        for behavior in self.behaviors:
            behavior.on_before_delete(ctx)

    def after_delete(self, ctx: "DeleteContext") -> None:
        for behavior in self.behaviors:
            behavior.on_after_delete(ctx)

    def audit(self, ctx: "DeleteContext") -> None:
        for behavior in self.behaviors:
            behavior.on_audit(ctx)

    def on_return(self, ctx: "DeleteContext") -> None:
        for behavior in self.behaviors:
            behavior.on_return(ctx)

    def on_exception(self, ctx: "DeleteContext", exception: Exception) -> None:
        for behavior in self.exception_behaviors:
            behavior.on_exception(ctx, exception)

    def __len__(self) -> int:
        return len(self.behaviors)


class BehaviorRegistry:
    """
    Ordered registry of behaviors, resolved per entity type.

    Resolution happens once, when a handler is built; handlers never consult
    the registry during a call.
    """

    def __init__(self) -> None:
        self._entries: List[Tuple[DeleteBehavior, Optional[frozenset]]] = []

    def register(
        self, behavior: DeleteBehavior, entities: Optional[Sequence[str]] = None
    ) -> DeleteBehavior:
        """
        Register a behavior.

        Args:
            behavior: Behavior instance
            entities: Entity names the behavior applies to; None for all
        """
        scope = frozenset(entities) if entities is not None else None
        self._entries.append((behavior, scope))
        return behavior

    def resolve(self, entity_name: str) -> List[DeleteBehavior]:
        """Get the behaviors applying to an entity, in registration order."""
        return [
            behavior
            for behavior, scope in self._entries
            if scope is None or entity_name in scope
        ]
