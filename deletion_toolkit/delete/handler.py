"""
Delete request handler.

Orchestrates one deletion: load the entity, check permissions, run the
validation hooks, then either report it as already deleted or delete it with
the strategy resolved for its entity type.

Usage:
    handler = DeleteRequestHandler(descriptor, behaviors=[AuditTrailBehavior(storage)])

    with UnitOfWork.begin(engine) as uow:
        response = handler.process(uow, DeleteRequest(entity_id=5))
"""

import logging
from typing import Any, Iterable, Optional, Union

from sqlalchemy import select

from ..config import DeletionConfig, get_config
from ..entity.capabilities import Capability
from ..entity.descriptor import EntityDescriptor, EntityRegistry
from ..exceptions import (
    EntityNotFoundError,
    MissingRequiredFieldError,
    PermissionDeniedError,
)
from ..permissions import ANONYMOUS_PERMISSION, UserPermissionService
from ..unit_of_work import UnitOfWork
from .behaviors import BehaviorPipeline, BehaviorRegistry, DeleteBehavior
from .display_order import display_order_filter, reorder_values
from .gate import is_already_deleted
from .models import DeleteContext, DeleteRequest, DeleteResponse, RequestContext
from .strategies import Clock, DeletionExecutor

logger = logging.getLogger(__name__)


class DeleteRequestHandler:
    """
    Deletes entities of one type.

    The handler holds only configuration fixed at construction. Everything
    belonging to a single call lives in the ``DeleteContext`` created for it,
    so one handler can serve any number of calls.
    """

    def __init__(
        self,
        descriptor: EntityDescriptor,
        context: Optional[RequestContext] = None,
        behaviors: Iterable[DeleteBehavior] = (),
        config: Optional[DeletionConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the handler.

        Args:
            descriptor: Entity type to delete
            context: Default caller context, used when a call supplies none
            behaviors: Ordered behaviors invoked at each hook point
            config: Configuration, defaults to the global configuration
            clock: Returns the current instant for log timestamps
        """
        self.descriptor = descriptor
        self.context = context or RequestContext()
        self.pipeline = BehaviorPipeline(behaviors)
        self.config = config or get_config()
        self.executor = DeletionExecutor(descriptor, self.config, clock)

    @classmethod
    def from_registry(
        cls,
        entities: EntityRegistry,
        entity_name: str,
        behaviors: Optional[BehaviorRegistry] = None,
        **kwargs: Any,
    ) -> "DeleteRequestHandler":
        """Build a handler for a registered entity with its registered behaviors."""
        descriptor = entities.get(entity_name)
        resolved = behaviors.resolve(entity_name) if behaviors is not None else []
        return cls(descriptor, behaviors=resolved, **kwargs)

    def process(
        self,
        unit_of_work: UnitOfWork,
        request: Union[DeleteRequest, Any],
        context: Optional[RequestContext] = None,
    ) -> DeleteResponse:
        """
        Delete one entity within the caller's unit of work.

        The unit of work is never committed or rolled back here; on any
        failure the caller is expected to roll it back.

        Args:
            unit_of_work: Transaction scope to execute statements in
            request: The request, or a bare entity identifier
            context: Caller context for this call

        Returns:
            Response telling whether the entity was already deleted

        Raises:
            MissingRequiredFieldError: If the request carries no identifier
            EntityNotFoundError: If no entity has the identifier, or the
                deletion affected no row
            PermissionDeniedError: If the caller lacks the required permission
            ValidationFailedError: If the identifier is invalid, a behavior
                objects to the deletion, or a delete-log entity would be
                tombstoned without a deleting user
        """
        if not isinstance(request, DeleteRequest):
            request = DeleteRequest(entity_id=request)

        ctx = DeleteContext(
            handler=self,
            descriptor=self.descriptor,
            unit_of_work=unit_of_work,
            request=request,
            request_context=context or self.context,
        )

        if request.entity_id is None:
            raise MissingRequiredFieldError("EntityId", ctx.localizer)

        self._load_entity(ctx)
        self._validate_permissions(ctx)
        self.pipeline.validate_request(ctx)

        if is_already_deleted(self.descriptor, ctx.row):
            logger.info(
                f"{self.descriptor.name} {ctx.entity_id} was already deleted"
            )
            ctx.response.was_already_deleted = True
        else:
            self.executor.require_user(ctx.request_context.user_id, ctx.localizer)
            self.pipeline.before_delete(ctx)
            self._invoke_delete_action(ctx)
            self._invalidate_cache_on_commit(ctx)
            self._on_after_delete(ctx)
            self.pipeline.audit(ctx)

        self.pipeline.on_return(ctx)
        return ctx.response

    delete = process

    def _load_entity(self, ctx: DeleteContext) -> None:
        ctx.entity_id = self.descriptor.convert_id(ctx.request.entity_id, ctx.localizer)

        query = select(self.descriptor.table).where(
            self.descriptor.id_column == ctx.entity_id
        )
        query = self.pipeline.prepare_query(ctx, query)

        row = ctx.connection.execute(query).first()
        if row is None:
            raise EntityNotFoundError(self.descriptor.name, ctx.entity_id, ctx.localizer)

        ctx.row = dict(row._mapping)
        logger.debug(f"Loaded {self.descriptor.name} {ctx.entity_id}")

    def _validate_permissions(self, ctx: DeleteContext) -> None:
        required = self.descriptor.required_permission
        if required is None or not self.config.enforce_permissions:
            return

        kind, permission = required
        service = ctx.request_context.permissions
        if service is None and ctx.user is not None:
            service = UserPermissionService(ctx.user)
        if service is None:
            if permission == ANONYMOUS_PERMISSION:
                return
            logger.warning(
                f"No permission service to check '{permission}' "
                f"for deleting {self.descriptor.name}"
            )
            raise PermissionDeniedError(permission, ctx.localizer)

        logger.debug(
            f"Checking {kind.value} permission '{permission}' "
            f"for {self.descriptor.name}"
        )
        service.validate_permission(permission, ctx.localizer)

    def _invoke_delete_action(self, ctx: DeleteContext) -> None:
        try:
            self._execute_delete(ctx)
        except Exception as e:
            self.pipeline.on_exception(ctx, e)
            raise

    def _execute_delete(self, ctx: DeleteContext) -> None:
        statement = self.executor.build_statement(
            ctx.entity_id, ctx.request_context.user_id
        )
        self.executor.execute(ctx.connection, statement, ctx.entity_id, ctx.localizer)
        logger.info(
            f"Deleted {self.descriptor.name} {ctx.entity_id} "
            f"({self.executor.strategy.value})"
        )

    def _invalidate_cache_on_commit(self, ctx: DeleteContext) -> None:
        cache = ctx.request_context.cache
        if cache is not None and self.config.cache_enabled:
            cache.invalidate_on_commit(ctx.unit_of_work, self.descriptor)

    def _on_after_delete(self, ctx: DeleteContext) -> None:
        if (
            self.descriptor.has(Capability.DISPLAY_ORDER)
            and self.config.display_order_compaction
        ):
            reorder_values(
                ctx.connection,
                self.descriptor,
                display_order_filter(self.descriptor, ctx.row),
            )
        self.pipeline.after_delete(ctx)
