"""
Entity descriptors.

A descriptor is the static metadata the deletion pipeline needs about one
entity type: its table, identifier column, optional capability columns and the
permission guarding its deletion. Everything derivable from that metadata is
resolved once, when the descriptor is created.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional, Sequence, Tuple

from sqlalchemy import Column, Table

from ..exceptions import InvalidEntityConfiguration, ValidationFailedError
from ..localization import Localizer, localize
from ..permissions import (
    PermissionDeclaration,
    PermissionKind,
    normalize_declarations,
    resolve_permission,
)
from .capabilities import Capability, DeletionStrategy, TimestampKind, resolve_strategy

if TYPE_CHECKING:
    from ..config import DeletionConfig

logger = logging.getLogger(__name__)

_CAPABILITY_FIELDS: Tuple[Tuple[Capability, Tuple[str, ...]], ...] = (
    (Capability.IS_ACTIVE, ("is_active_field",)),
    (Capability.IS_DELETED, ("is_deleted_field",)),
    (Capability.DELETE_LOG, ("delete_date_field", "delete_user_field")),
    (Capability.UPDATE_LOG, ("update_date_field", "update_user_field")),
    (Capability.DISPLAY_ORDER, ("display_order_field",)),
)


@dataclass(frozen=True, eq=False)
class EntityDescriptor:
    """
    Static description of an entity type.

    Usage:
        descriptor = EntityDescriptor(
            name="Product",
            table=products,
            is_deleted_field="is_deleted",
            delete_date_field="deleted_at",
            delete_user_field="deleted_by",
            permissions=((PermissionKind.DELETE, "Inventory:Delete"),),
        )

    Raises:
        InvalidEntityConfiguration: If a named column does not exist, a log
            capability is only half declared, or both the active flag and the
            deleted flag are declared.
    """

    name: str
    table: Table
    id_field: str = "id"
    is_active_field: Optional[str] = None
    is_deleted_field: Optional[str] = None
    delete_date_field: Optional[str] = None
    delete_user_field: Optional[str] = None
    update_date_field: Optional[str] = None
    update_user_field: Optional[str] = None
    display_order_field: Optional[str] = None
    display_order_group: Tuple[str, ...] = ()
    delete_date_kind: Optional[TimestampKind] = None
    update_date_kind: Optional[TimestampKind] = None
    permissions: Tuple[PermissionDeclaration, ...] = ()
    cache_group: Optional[str] = None

    capabilities: Capability = field(init=False)
    strategy: DeletionStrategy = field(init=False)
    required_permission: Optional[Tuple[PermissionKind, str]] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "display_order_group", tuple(self.display_order_group))
        object.__setattr__(self, "permissions", normalize_declarations(self.permissions))
        if self.cache_group is None:
            object.__setattr__(self, "cache_group", self.table.name)

        self._check_columns()

        capabilities = Capability.NONE
        for capability, field_names in _CAPABILITY_FIELDS:
            declared = [getattr(self, name) is not None for name in field_names]
            if all(declared):
                capabilities |= capability
            elif any(declared):
                raise InvalidEntityConfiguration(
                    self.name,
                    f"{' and '.join(field_names)} must be declared together",
                )

        if Capability.IS_ACTIVE in capabilities and Capability.IS_DELETED in capabilities:
            raise InvalidEntityConfiguration(
                self.name, "an entity cannot have both an active flag and a deleted flag"
            )
        if self.display_order_group and Capability.DISPLAY_ORDER not in capabilities:
            raise InvalidEntityConfiguration(
                self.name, "display_order_group requires display_order_field"
            )

        object.__setattr__(self, "capabilities", capabilities)
        object.__setattr__(self, "strategy", resolve_strategy(capabilities))
        object.__setattr__(
            self, "required_permission", resolve_permission(self.permissions)
        )
        logger.debug(
            f"Described {self.name}: capabilities={capabilities}, "
            f"strategy={self.strategy.value}"
        )

    def _check_columns(self) -> None:
        names = [
            self.id_field,
            self.is_active_field,
            self.is_deleted_field,
            self.delete_date_field,
            self.delete_user_field,
            self.update_date_field,
            self.update_user_field,
            self.display_order_field,
            *self.display_order_group,
        ]
        for name in names:
            if name is not None and name not in self.table.c:
                raise InvalidEntityConfiguration(
                    self.name, f"column '{name}' not found in table {self.table.name}"
                )

    def has(self, capability: Capability) -> bool:
        """Check if the entity type implements a capability."""
        return bool(self.capabilities & capability)

    def column(self, name: str) -> Column:  # type: ignore[type-arg]
        """Get a column of the entity's table by name."""
        return self.table.c[name]

    @property
    def id_column(self) -> Column:  # type: ignore[type-arg]
        return self.table.c[self.id_field]

    def convert_id(self, value: Any, localizer: Optional[Localizer] = None) -> Any:
        """
        Convert a request identifier to the id column's Python type.

        Raises:
            ValidationFailedError: If the value cannot be converted
        """
        try:
            python_type = self.id_column.type.python_type
        except NotImplementedError:
            return value

        if isinstance(value, python_type) and not isinstance(value, bool):
            return value

        try:
            if isinstance(value, bool) and python_type is not bool:
                raise TypeError(f"Boolean is not a valid {python_type.__name__} ID")
            if python_type is int and isinstance(value, float) and not value.is_integer():
                raise ValueError(f"{value} is not an integral ID")
            if isinstance(value, str):
                value = value.strip()
            return python_type(value)
        except (TypeError, ValueError) as e:
            raise ValidationFailedError(
                localize(
                    localizer, "Validation.InvalidId", entity=self.name, entity_id=value
                ),
                entity_id=value,
                key="Validation.InvalidId",
            ) from e

    @classmethod
    def from_table(
        cls,
        table: Table,
        name: Optional[str] = None,
        config: Optional["DeletionConfig"] = None,
        permissions: Sequence[PermissionDeclaration] = (),
        display_order_group: Sequence[str] = (),
        delete_date_kind: Optional[TimestampKind] = None,
        update_date_kind: Optional[TimestampKind] = None,
    ) -> "EntityDescriptor":
        """
        Describe a table by the column-name conventions in configuration.

        A log capability is only detected when both its columns exist. When
        the conventional id column is missing, a single-column primary key is
        used instead.
        """
        if config is None:
            from ..config import get_config

            config = get_config()

        columns = set(table.c.keys())
        fields: Dict[str, Any] = {}
        for field_name, column_name in config.get_column_conventions().items():
            if field_name == "id_field" or column_name in columns:
                fields[field_name] = column_name

        for date_field, user_field in (
            ("delete_date_field", "delete_user_field"),
            ("update_date_field", "update_user_field"),
        ):
            if (date_field in fields) != (user_field in fields):
                fields.pop(date_field, None)
                fields.pop(user_field, None)

        if fields["id_field"] not in columns:
            primary_key = list(table.primary_key.columns)
            if len(primary_key) != 1:
                raise InvalidEntityConfiguration(
                    name or table.name, "no single-column identifier found"
                )
            fields["id_field"] = primary_key[0].name

        return cls(
            name=name or table.name,
            table=table,
            display_order_group=tuple(display_order_group),
            delete_date_kind=delete_date_kind,
            update_date_kind=update_date_kind,
            permissions=tuple(permissions),
            **fields,
        )


class EntityRegistry:
    """Registry of entity descriptors by name."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, EntityDescriptor] = {}

    def register(self, descriptor: EntityDescriptor) -> EntityDescriptor:
        """
        Register a descriptor.

        Raises:
            InvalidEntityConfiguration: If the name is already registered
        """
        if descriptor.name in self._descriptors:
            raise InvalidEntityConfiguration(descriptor.name, "already registered")
        self._descriptors[descriptor.name] = descriptor
        return descriptor

    def get(self, name: str) -> EntityDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise KeyError(f"Entity type {name} not registered") from None

    def names(self) -> Tuple[str, ...]:
        return tuple(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[EntityDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)
