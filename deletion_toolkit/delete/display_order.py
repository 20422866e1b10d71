"""
Display order compaction.

After an entity leaves its sequence, the remaining rows of the same group are
renumbered 1..n so the sequence stays dense.
"""

import logging
from typing import Any, List, Mapping

from sqlalchemy import select, update
from sqlalchemy.engine import Connection
from sqlalchemy.sql import ColumnElement

from ..entity.capabilities import Capability
from ..entity.descriptor import EntityDescriptor
from .strategies import not_deleted_criteria

logger = logging.getLogger(__name__)


def display_order_filter(
    descriptor: EntityDescriptor, row: Mapping[str, Any]
) -> List[ColumnElement[bool]]:
    """
    Build the criteria selecting the sequence a row belongs to.

    The sequence is the group sharing the row's grouping column values,
    restricted to rows that are not deleted.
    """
    criteria: List[ColumnElement[bool]] = []
    for name in descriptor.display_order_group:
        column = descriptor.column(name)
        value = row.get(name)
        criteria.append(column.is_(None) if value is None else column == value)

    not_deleted = not_deleted_criteria(descriptor)
    if not_deleted is not None:
        criteria.append(not_deleted)
    return criteria


def reorder_values(
    connection: Connection,
    descriptor: EntityDescriptor,
    criteria: List[ColumnElement[bool]],
) -> int:
    """
    Renumber a sequence densely from 1, keeping its current order.

    Rows are ordered by their current value, then by id. Only rows whose
    value changes are updated.

    Returns:
        Number of rows updated
    """
    if not descriptor.has(Capability.DISPLAY_ORDER):
        return 0

    id_column = descriptor.id_column
    order_column = descriptor.column(descriptor.display_order_field)  # type: ignore[arg-type]

    query = (
        select(id_column, order_column)
        .where(*criteria)
        .order_by(order_column, id_column)
    )
    rows = connection.execute(query).all()

    updated = 0
    for position, (row_id, current) in enumerate(rows, start=1):
        if current == position:
            continue
        connection.execute(
            update(descriptor.table)
            .where(id_column == row_id)
            .values({order_column.name: position})
        )
        updated += 1

    logger.debug(f"Reordered {updated} of {len(rows)} {descriptor.name} rows")
    return updated
