"""
Tests for the unit of work and the two-level cache.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy import func, insert, select

from deletion_toolkit.cache import MemoryCache, TwoLevelCache
from deletion_toolkit.config import DeletionConfig, set_config
from deletion_toolkit.exceptions import UnitOfWorkError
from deletion_toolkit.unit_of_work import UnitOfWork, UnitOfWorkState

from .tables import notes


def count_notes(engine):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(notes)).scalar()


class TestUnitOfWork:
    """Test transaction scope and commit-time callbacks."""

    def test_commit_runs_callbacks_in_order(self, engine):
        calls = []
        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            uow.on_commit(lambda: calls.append("first"))
            uow.on_commit(lambda: calls.append("second"))
            assert calls == []
            uow.commit()

        assert calls == ["first", "second"]
        assert uow.state is UnitOfWorkState.COMMITTED

    def test_rollback_discards_commit_callbacks(self, engine):
        committed = Mock()
        rolled_back = Mock()
        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            uow.on_commit(committed)
            uow.on_rollback(rolled_back)
            uow.rollback()

        committed.assert_not_called()
        rolled_back.assert_called_once_with()
        assert uow.state is UnitOfWorkState.ROLLED_BACK

    def test_statements_commit(self, engine):
        with UnitOfWork.begin(engine) as uow:
            uow.connection.execute(insert(notes).values(id=1, body="kept"))

        assert count_notes(engine) == 1

    def test_begin_rolls_back_on_error(self, engine):
        callback = Mock()

        with pytest.raises(RuntimeError):
            with UnitOfWork.begin(engine) as uow:
                uow.connection.execute(insert(notes).values(id=1, body="lost"))
                uow.on_commit(callback)
                raise RuntimeError("boom")

        assert count_notes(engine) == 0
        callback.assert_not_called()
        assert uow.state is UnitOfWorkState.ROLLED_BACK

    def test_begin_respects_explicit_rollback(self, engine):
        with UnitOfWork.begin(engine) as uow:
            uow.connection.execute(insert(notes).values(id=1, body="lost"))
            uow.rollback()

        assert count_notes(engine) == 0

    def test_finished_unit_of_work_rejected(self, engine):
        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            uow.commit()

            with pytest.raises(UnitOfWorkError):
                uow.connection
            with pytest.raises(UnitOfWorkError):
                uow.on_commit(Mock())
            with pytest.raises(UnitOfWorkError):
                uow.commit()

    def test_failing_callback_does_not_stop_others(self, engine, caplog):
        after = Mock()
        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            uow.on_commit(Mock(side_effect=RuntimeError("cache down")))
            uow.on_commit(after)
            uow.commit()

        after.assert_called_once_with()
        assert "commit callback failed" in caplog.text

    def test_joins_existing_transaction(self, engine):
        with engine.connect() as connection:
            connection.begin()
            uow = UnitOfWork(connection)
            uow.connection.execute(insert(notes).values(id=1, body="joined"))
            uow.commit()

        assert count_notes(engine) == 1


class TestMemoryCache:
    """Test the local cache level."""

    def test_set_and_get(self):
        cache = MemoryCache()
        cache.set("products", "5", {"name": "Widget"})

        assert cache.get("products", "5") == {"name": "Widget"}
        assert cache.get("products", "6", "missing") == "missing"

    def test_expired_entry(self):
        cache = MemoryCache()
        cache.set("products", "5", "value", ttl_seconds=-1)

        assert cache.get("products", "5") is None

    def test_remove(self):
        cache = MemoryCache()
        cache.set("products", "5", "value")
        cache.remove("products", "5")

        assert cache.get("products", "5") is None

    def test_invalidate_group_only_affects_group(self):
        cache = MemoryCache()
        cache.set("products", "5", "product")
        cache.set("categories", "1", "category")

        cache.invalidate_group("products")

        assert cache.get("products", "5") is None
        assert cache.get("categories", "1") == "category"

    def test_ttl_defaults_to_configuration(self):
        set_config(DeletionConfig(environment="test", cache_ttl_seconds=42))

        assert MemoryCache().ttl_seconds == 42
        assert MemoryCache(ttl_seconds=10).ttl_seconds == 10

    def test_entry_expires_with_configured_ttl(self):
        set_config(DeletionConfig(environment="test", cache_ttl_seconds=1))
        cache = MemoryCache()
        cache.set("products", "5", "value")

        entry = cache._groups["products"]["5"]
        lifetime = entry["expires_at"] - datetime.now(timezone.utc)
        assert timedelta(0) < lifetime <= timedelta(seconds=1)


class TestTwoLevelCache:
    """Test group invalidation across both levels."""

    def test_invalidate_both_levels(self):
        distributed = Mock()
        cache = TwoLevelCache(distributed=distributed)
        cache.set("products", "5", "product")

        cache.invalidate_group("products")

        assert cache.get("products", "5") is None
        distributed.invalidate_group.assert_called_once_with("products")

    def test_local_only(self):
        cache = TwoLevelCache()
        cache.set("products", "5", "product")

        cache.invalidate_group("products")

        assert cache.get("products", "5") is None

    def test_local_level_ttl(self):
        set_config(DeletionConfig(environment="test", cache_ttl_seconds=30))

        assert TwoLevelCache().local.ttl_seconds == 30
        assert TwoLevelCache(ttl_seconds=5).local.ttl_seconds == 5

    def test_invalidate_on_commit(self, product_descriptor):
        cache = TwoLevelCache()
        cache.set("products", "5", "product")
        uow = Mock()

        cache.invalidate_on_commit(uow, product_descriptor)

        assert cache.get("products", "5") == "product"
        callback = uow.on_commit.call_args.args[0]
        callback()
        assert cache.get("products", "5") is None
