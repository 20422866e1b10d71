"""
Storage backends for the deletion audit trail.

A transactional backend writes on the caller's connection, so the audit record
commits or rolls back together with the deletion it describes. Other backends
are written to once the unit of work has committed.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    desc,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine

from .models import AuditQuery, DeletionAuditEntry

logger = logging.getLogger(__name__)


def audit_table(metadata: MetaData, name: str = "deletion_audit") -> Table:
    """Define the audit table in a metadata collection."""
    return Table(
        name,
        metadata,
        Column("id", String(50), primary_key=True),
        Column("timestamp", DateTime, nullable=False, index=True),
        Column("user_id", String(100), nullable=True, index=True),
        Column("action", String(50), nullable=False),
        Column("strategy", String(50), nullable=False),
        Column("entity_type", String(100), nullable=False),
        Column("entity_id", String(100), nullable=False),
        Column("snapshot", JSON, nullable=True),
        Column("application", String(100), nullable=False),
        Column("checksum", String(128), nullable=True),
        Index(f"idx_{name}_entity", "entity_type", "entity_id"),
    )


class AuditStorage(ABC):
    """Abstract base class for audit trail storage backends."""

    transactional = False

    @abstractmethod
    def store(
        self, entry: DeletionAuditEntry, connection: Optional[Connection] = None
    ) -> None:
        """
        Store a single audit entry.

        Args:
            entry: Entry to store
            connection: Connection of the caller's unit of work, used by
                transactional backends
        """

    @abstractmethod
    def query(
        self, query: AuditQuery, connection: Optional[Connection] = None
    ) -> List[DeletionAuditEntry]:
        """Query audit entries, newest first."""

    def get_by_id(
        self, entry_id: str, connection: Optional[Connection] = None
    ) -> Optional[DeletionAuditEntry]:
        for entry in self.query(AuditQuery(limit=1000), connection):
            if entry.id == entry_id:
                return entry
        return None


class MemoryAuditStorage(AuditStorage):
    """In-process audit storage."""

    def __init__(self) -> None:
        self._entries: List[DeletionAuditEntry] = []
        self._lock = threading.Lock()

    def store(
        self, entry: DeletionAuditEntry, connection: Optional[Connection] = None
    ) -> None:
        with self._lock:
            self._entries.append(entry)

    def query(
        self, query: AuditQuery, connection: Optional[Connection] = None
    ) -> List[DeletionAuditEntry]:
        with self._lock:
            matching = [e for e in reversed(self._entries) if query.matches(e)]
        return matching[query.offset : query.offset + query.limit]

    def __len__(self) -> int:
        return len(self._entries)


class SQLAuditStorage(AuditStorage):
    """SQL audit storage writing through SQLAlchemy Core."""

    transactional = True

    def __init__(
        self,
        engine: Optional[Engine] = None,
        table_name: str = "deletion_audit",
        metadata: Optional[MetaData] = None,
    ):
        """
        Initialize the storage.

        Args:
            engine: Engine used when no connection is passed to an operation
            table_name: Name of the audit table
            metadata: Metadata to define the table in
        """
        self.engine = engine
        self.metadata = metadata if metadata is not None else MetaData()
        self.table = audit_table(self.metadata, table_name)

    def create_table(self, bind: Optional[Any] = None) -> None:
        """Create the audit table if it does not exist."""
        self.table.create(self._bind(bind), checkfirst=True)

    def _bind(self, connection: Optional[Any]) -> Any:
        bind = connection if connection is not None else self.engine
        if bind is None:
            raise RuntimeError("SQLAuditStorage needs an engine or a connection")
        return bind

    def _entry_to_row(self, entry: DeletionAuditEntry) -> Dict[str, Any]:
        return entry.model_dump(mode="python")

    def _row_to_entry(self, row: Any) -> DeletionAuditEntry:
        return DeletionAuditEntry.model_validate(dict(row._mapping))

    def store(
        self, entry: DeletionAuditEntry, connection: Optional[Connection] = None
    ) -> None:
        statement = insert(self.table).values(self._entry_to_row(entry))
        if connection is not None:
            connection.execute(statement)
        else:
            with self._bind(None).begin() as conn:
                conn.execute(statement)
        logger.debug(f"Stored audit entry {entry.id}")

    def query(
        self, query: AuditQuery, connection: Optional[Connection] = None
    ) -> List[DeletionAuditEntry]:
        t = self.table
        q = select(t)
        if query.entity_type:
            q = q.where(t.c.entity_type == query.entity_type)
        if query.entity_id:
            q = q.where(t.c.entity_id == query.entity_id)
        if query.user_id:
            q = q.where(t.c.user_id == query.user_id)
        if query.action:
            q = q.where(t.c.action == query.action.value)
        q = q.order_by(desc(t.c.timestamp)).limit(query.limit).offset(query.offset)

        if connection is not None:
            rows = connection.execute(q).all()
        else:
            with self._bind(None).connect() as conn:
                rows = conn.execute(q).all()
        return [self._row_to_entry(r) for r in rows]

    def get_by_id(
        self, entry_id: str, connection: Optional[Connection] = None
    ) -> Optional[DeletionAuditEntry]:
        q = select(self.table).where(self.table.c.id == entry_id)
        if connection is not None:
            row = connection.execute(q).first()
        else:
            with self._bind(None).connect() as conn:
                row = conn.execute(q).first()
        return self._row_to_entry(row) if row is not None else None
