"""
Deletion strategy execution.

Each strategy builds exactly one mutation for the entity row and requires it
to affect exactly one row. Flag and log strategies guard their update with a
not-already-deleted predicate, so a concurrent caller that lost the race
affects zero rows and fails with ``EntityNotFoundError``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import Column, delete, false, or_, update
from sqlalchemy.engine import Connection
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.expression import Executable

from ..config import DeletionConfig, get_config
from ..entity.capabilities import Capability, DeletionStrategy, TimestampKind
from ..entity.descriptor import EntityDescriptor
from ..exceptions import EntityNotFoundError, ValidationFailedError
from ..localization import Localizer, localize

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_timestamp(now: datetime, kind: TimestampKind) -> datetime:
    """
    Convert an instant to the time representation a column stores.

    Args:
        now: The instant; a naive value is taken as local time
        kind: Representation of the target column

    Returns:
        Aware UTC for ``UTC`` columns, naive local time otherwise
    """
    if now.tzinfo is None:
        now = now.astimezone()
    if kind is TimestampKind.UTC:
        return now.astimezone(timezone.utc)
    return now.astimezone().replace(tzinfo=None)


def coerce_user_id(column: Column, user_id: Optional[Any]) -> Optional[Any]:  # type: ignore[type-arg]
    """Convert a caller identifier to the Python type of a user column."""
    if user_id is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return user_id

    if python_type is int and isinstance(user_id, str):
        stripped = user_id.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        return user_id
    if python_type is str:
        return str(user_id)
    return user_id


def not_deleted_criteria(
    descriptor: EntityDescriptor,
) -> Optional[ColumnElement[bool]]:
    """
    Build the predicate matching rows that are not deleted yet.

    Returns:
        The predicate for the entity's deletion signal, or None for entities
        that are physically deleted
    """
    if descriptor.has(Capability.IS_ACTIVE):
        return descriptor.column(descriptor.is_active_field) >= 0  # type: ignore[arg-type]
    if descriptor.has(Capability.IS_DELETED):
        column = descriptor.column(descriptor.is_deleted_field)  # type: ignore[arg-type]
        return or_(column == false(), column.is_(None))
    if descriptor.has(Capability.DELETE_LOG):
        return descriptor.column(descriptor.delete_user_field).is_(None)  # type: ignore[arg-type]
    return None


class DeletionExecutor:
    """Builds and runs the mutation for an entity's deletion strategy."""

    def __init__(
        self,
        descriptor: EntityDescriptor,
        config: Optional[DeletionConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the executor.

        Args:
            descriptor: Entity to delete rows of
            config: Configuration, defaults to the global configuration
            clock: Returns the current instant, defaults to UTC now
        """
        self.descriptor = descriptor
        self.config = config or get_config()
        self.clock = clock or utcnow

    @property
    def strategy(self) -> DeletionStrategy:
        return self.descriptor.strategy

    def _timestamp(self, kind: Optional[TimestampKind]) -> datetime:
        return normalize_timestamp(
            self.clock(), kind or self.config.default_timestamp_kind
        )

    def _log_values(self, user_id: Optional[Any]) -> Dict[str, Any]:
        d = self.descriptor
        if d.has(Capability.DELETE_LOG):
            return {
                d.delete_date_field: self._timestamp(d.delete_date_kind),
                d.delete_user_field: coerce_user_id(
                    d.column(d.delete_user_field), user_id  # type: ignore[arg-type]
                ),
            }
        if d.has(Capability.UPDATE_LOG):
            return {
                d.update_date_field: self._timestamp(d.update_date_kind),
                d.update_user_field: coerce_user_id(
                    d.column(d.update_user_field), user_id  # type: ignore[arg-type]
                ),
            }
        return {}

    def require_user(
        self, user_id: Optional[Any], localizer: Optional[Localizer] = None
    ) -> None:
        """
        Reject a delete-log tombstone that would record no deleting user.

        The deleting user is the only deletion signal of such entities, so a
        tombstone without one would leave the row looking not deleted.

        Raises:
            ValidationFailedError: If the strategy is delete-log and the user
                identifier is missing
        """
        if self.strategy is not DeletionStrategy.DELETE_LOG:
            return
        d = self.descriptor
        if coerce_user_id(d.column(d.delete_user_field), user_id) is None:  # type: ignore[arg-type]
            logger.warning(f"Refusing to delete {d.name} without a deleting user")
            raise ValidationFailedError(
                localize(localizer, "Validation.DeleteUserRequired", entity=d.name),
                key="Validation.DeleteUserRequired",
            )

    def build_statement(self, entity_id: Any, user_id: Optional[Any] = None) -> Executable:
        """
        Build the mutation deleting one entity.

        Args:
            entity_id: Converted identifier of the entity
            user_id: Identifier of the deleting user

        Returns:
            A DELETE statement for hard deletes, otherwise an UPDATE statement
            guarded by the not-already-deleted predicate

        Raises:
            ValidationFailedError: If a delete-log entity has no deleting user
        """
        d = self.descriptor
        id_filter = d.id_column == entity_id

        if self.strategy is DeletionStrategy.HARD_DELETE:
            return delete(d.table).where(id_filter)
        self.require_user(user_id)

        values: Dict[str, Any] = {}
        if self.strategy is DeletionStrategy.ACTIVE_FLAG:
            values[d.is_active_field] = self.config.active_deleted_value  # type: ignore[index]
        elif self.strategy is DeletionStrategy.DELETED_FLAG:
            values[d.is_deleted_field] = True  # type: ignore[index]
        values.update(self._log_values(user_id))

        return (
            update(d.table)
            .where(id_filter)
            .where(not_deleted_criteria(d))  # type: ignore[arg-type]
            .values(values)
        )

    def execute(
        self,
        connection: Connection,
        statement: Executable,
        entity_id: Any,
        localizer: Optional[Localizer] = None,
    ) -> None:
        """
        Run a deletion statement and require exactly one affected row.

        Raises:
            EntityNotFoundError: If the statement affected no row, e.g. because
                a concurrent call deleted the entity after it was loaded
        """
        result = connection.execute(statement)
        if result.rowcount != 1:
            logger.warning(
                f"{self.strategy.value} of {self.descriptor.name} {entity_id} "
                f"affected {result.rowcount} rows"
            )
            raise EntityNotFoundError(self.descriptor.name, entity_id, localizer)
