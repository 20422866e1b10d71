"""
Unit of work around a SQLAlchemy connection.

The caller owns the unit of work: it decides when to commit or roll back.
Deletion handlers only execute statements on its connection and register
callbacks that must run once the transaction has committed.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, List

from sqlalchemy.engine import Connection, Engine

from .exceptions import UnitOfWorkError

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class UnitOfWorkState(str, Enum):
    """Lifecycle states of a unit of work."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class UnitOfWork:
    """
    Transaction scope with commit-time callbacks.

    Usage:
        with UnitOfWork.begin(engine) as uow:
            handler.process(uow, DeleteRequest(entity_id=5))
            uow.on_commit(lambda: print("committed"))
    """

    def __init__(self, connection: Connection):
        """
        Begin a unit of work on a connection.

        Args:
            connection: Connection to run statements on. A transaction is
                begun unless one is already in progress.
        """
        self._connection = connection
        self._transaction = None if connection.in_transaction() else connection.begin()
        self._state = UnitOfWorkState.ACTIVE
        self._commit_callbacks: List[Callback] = []
        self._rollback_callbacks: List[Callback] = []

    @property
    def connection(self) -> Connection:
        self._ensure_active()
        return self._connection

    @property
    def state(self) -> UnitOfWorkState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is UnitOfWorkState.ACTIVE

    def _ensure_active(self) -> None:
        if not self.is_active:
            raise UnitOfWorkError(f"Unit of work is already {self._state.value}")

    def on_commit(self, callback: Callback) -> Callback:
        """Register a callback to run after the transaction commits."""
        self._ensure_active()
        self._commit_callbacks.append(callback)
        return callback

    def on_rollback(self, callback: Callback) -> Callback:
        """Register a callback to run after the transaction rolls back."""
        self._ensure_active()
        self._rollback_callbacks.append(callback)
        return callback

    def commit(self) -> None:
        """Commit the transaction, then run commit callbacks in order."""
        self._ensure_active()
        if self._transaction is not None:
            self._transaction.commit()
        else:
            self._connection.commit()
        self._state = UnitOfWorkState.COMMITTED

        callbacks, self._commit_callbacks = self._commit_callbacks, []
        self._rollback_callbacks = []
        self._run_callbacks(callbacks, "commit")

    def rollback(self) -> None:
        """Roll back the transaction and discard commit callbacks."""
        self._ensure_active()
        if self._transaction is not None:
            self._transaction.rollback()
        else:
            self._connection.rollback()
        self._state = UnitOfWorkState.ROLLED_BACK

        callbacks, self._rollback_callbacks = self._rollback_callbacks, []
        self._commit_callbacks = []
        self._run_callbacks(callbacks, "rollback")

    def _run_callbacks(self, callbacks: List[Callback], phase: str) -> None:
        # The transaction is already final; a failing callback must not stop the rest
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"Unit of work {phase} callback failed")

    @classmethod
    @contextmanager
    def begin(cls, engine: Engine) -> Iterator["UnitOfWork"]:
        """
        Open a connection and unit of work, committing on success.

        The unit of work is rolled back if the block raises, or left alone if
        the block already finished it.
        """
        with engine.connect() as connection:
            uow = cls(connection)
            try:
                yield uow
            except BaseException:
                if uow.is_active:
                    uow.rollback()
                raise
            if uow.is_active:
                uow.commit()
