"""
SQLAlchemy mixins declaring entity capabilities.

Compose a declarative model from these mixins and describe it once with
``describe_model``:

    class Product(Base, IsDeletedMixin, DeleteLogMixin):
        __tablename__ = "products"
        __delete_permission__ = "Inventory:Delete"

        id = Column(Integer, primary_key=True)
        name = Column(String(100))

    descriptor = describe_model(Product)
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple, Type

from sqlalchemy import Boolean, DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ..exceptions import InvalidEntityConfiguration
from ..permissions import PermissionDeclaration, PermissionKind
from .capabilities import TimestampKind
from .descriptor import EntityDescriptor


class IsActiveMixin:
    """Integer active flag; 1 is active, a negative value means deleted."""

    is_active: Mapped[int] = mapped_column(SmallInteger, default=1, nullable=False)


class IsDeletedMixin:
    """Boolean deleted flag."""

    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )


class DeleteLogMixin:
    """Deletion timestamp and deleting user, null until deleted."""

    __delete_date_kind__ = TimestampKind.LOCAL

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class UpdateLogMixin:
    """Last update timestamp and updating user."""

    __update_date_kind__ = TimestampKind.LOCAL

    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class DisplayOrderMixin:
    """
    Sortable position kept dense within its group.

    Set ``__display_order_group__`` to the columns that partition the
    sequence, e.g. ``("category_id",)``.
    """

    __display_order_group__ = ()

    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


def _model_permissions(model: Type[Any]) -> Tuple[PermissionDeclaration, ...]:
    declarations: List[PermissionDeclaration] = []
    for kind in PermissionKind:
        attribute = f"__{kind.value}_permission__"
        if hasattr(model, attribute):
            declarations.append((kind, getattr(model, attribute)))
    return tuple(declarations)


def describe_model(model: Type[Any], name: Optional[str] = None) -> EntityDescriptor:
    """
    Build the descriptor of a declarative model from its capability mixins.

    Args:
        model: Mapped class composed of the capability mixins
        name: Entity name, defaults to the class name

    Returns:
        Entity descriptor with capabilities resolved

    Raises:
        InvalidEntityConfiguration: If the model is not mapped to a single table
            or combines incompatible capabilities
    """
    table = getattr(model, "__table__", None)
    entity_name = name or model.__name__
    if table is None:
        raise InvalidEntityConfiguration(entity_name, "model is not mapped to a table")

    primary_key = list(table.primary_key.columns)
    if len(primary_key) != 1:
        raise InvalidEntityConfiguration(
            entity_name, "model needs a single-column primary key"
        )

    fields: dict = {}
    if issubclass(model, IsActiveMixin):
        fields["is_active_field"] = "is_active"
    if issubclass(model, IsDeletedMixin):
        fields["is_deleted_field"] = "is_deleted"
    if issubclass(model, DeleteLogMixin):
        fields["delete_date_field"] = "deleted_at"
        fields["delete_user_field"] = "deleted_by"
        fields["delete_date_kind"] = model.__delete_date_kind__
    if issubclass(model, UpdateLogMixin):
        fields["update_date_field"] = "updated_at"
        fields["update_user_field"] = "updated_by"
        fields["update_date_kind"] = model.__update_date_kind__
    if issubclass(model, DisplayOrderMixin):
        fields["display_order_field"] = "display_order"
        fields["display_order_group"] = tuple(model.__display_order_group__)

    return EntityDescriptor(
        name=entity_name,
        table=table,
        id_field=primary_key[0].name,
        permissions=_model_permissions(model),
        **fields,
    )
