"""
Tests for the delete request handler.

Covers the end-to-end deletion scenarios for every strategy, the order in which
behaviors are invoked, idempotent repeat calls, concurrent deletion between
load and mutation, permission checks and commit-deferred cache invalidation.
"""

import logging
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy import delete, update

from deletion_toolkit.audit_trail import (
    AuditQuery,
    AuditTrailBehavior,
    MemoryAuditStorage,
    SQLAuditStorage,
)
from deletion_toolkit.cache import MemoryCache, TwoLevelCache
from deletion_toolkit.config import DeletionConfig
from deletion_toolkit.delete import (
    BehaviorRegistry,
    DeleteExceptionBehavior,
    DeleteRequest,
    DeleteRequestHandler,
    LoggingExceptionBehavior,
    RequestContext,
)
from deletion_toolkit.entity import EntityDescriptor, EntityRegistry
from deletion_toolkit.exceptions import (
    EntityNotFoundError,
    MissingRequiredFieldError,
    PermissionDeniedError,
    ValidationFailedError,
)
from deletion_toolkit.permissions import PermissionKind, User
from deletion_toolkit.unit_of_work import UnitOfWork

from .tables import add_rows, categories, get_row, invoices, notes, products

FIXED_NOW = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


class RecordingBehavior(DeleteExceptionBehavior):
    """Records the hooks it receives."""

    def __init__(self, calls=None, label=""):
        self.calls = calls if calls is not None else []
        self.label = label
        self.exceptions = []

    def _record(self, hook):
        self.calls.append(f"{self.label}{hook}")

    def on_prepare_query(self, ctx, query):
        self._record("prepare_query")
        return query

    def on_validate_request(self, ctx):
        self._record("validate_request")

    def on_before_delete(self, ctx):
        self._record("before_delete")

    def on_after_delete(self, ctx):
        self._record("after_delete")

    def on_audit(self, ctx):
        self._record("audit")

    def on_return(self, ctx):
        self._record("return")

    def on_exception(self, ctx, exception):
        self._record("exception")
        self.exceptions.append(exception)


class ConcurrentDeleteBehavior(RecordingBehavior):
    """Deletes the entity on the same connection right before the mutation."""

    def __init__(self, statement):
        super().__init__()
        self.statement = statement

    def on_before_delete(self, ctx):
        super().on_before_delete(ctx)
        ctx.connection.execute(self.statement)


class RejectingBehavior(RecordingBehavior):
    def on_validate_request(self, ctx):
        super().on_validate_request(ctx)
        raise ValidationFailedError("Locked records cannot be deleted")


def run_delete(engine, handler, entity_id, context=None):
    with UnitOfWork.begin(engine) as uow:
        return handler.process(uow, DeleteRequest(entity_id=entity_id), context)


@pytest.fixture
def product_rows(engine):
    add_rows(
        engine,
        products,
        [
            {"id": 5, "name": "Widget", "is_deleted": False},
            {"id": 6, "name": "Gadget", "is_deleted": False},
        ],
    )


@pytest.fixture
def category_rows(engine):
    add_rows(
        engine,
        categories,
        [
            {"id": i, "name": f"A{i}", "section": "a", "is_active": 1, "display_order": i}
            for i in range(1, 6)
        ]
        + [{"id": 6, "name": "B1", "section": "b", "is_active": 1, "display_order": 7}],
    )


class TestDeletedFlagStrategy:
    """Entities with a deleted flag are flagged, never removed."""

    def test_delete_sets_flag_and_log(self, engine, product_descriptor, product_rows):
        handler = DeleteRequestHandler(product_descriptor, clock=lambda: FIXED_NOW)
        context = RequestContext(user=User(id="jdoe"))

        response = run_delete(engine, handler, 5, context)

        assert response.was_already_deleted is False
        row = get_row(engine, products, 5)
        assert row["is_deleted"] is True
        assert row["deleted_by"] == "jdoe"
        assert row["deleted_at"] == FIXED_NOW.astimezone().replace(tzinfo=None)

    def test_other_rows_untouched(self, engine, product_descriptor, product_rows):
        run_delete(engine, DeleteRequestHandler(product_descriptor), 5)

        assert get_row(engine, products, 6)["is_deleted"] is False

    def test_second_delete_is_noop(self, engine, product_descriptor, product_rows):
        handler = DeleteRequestHandler(product_descriptor)
        context = RequestContext(user=User(id="jdoe"))

        first = run_delete(engine, handler, 5, context)
        row_after_first = get_row(engine, products, 5)
        second = run_delete(engine, handler, 5, RequestContext(user=User(id="other")))

        assert first.was_already_deleted is False
        assert second.was_already_deleted is True
        assert get_row(engine, products, 5) == row_after_first

    def test_second_delete_skips_mutation_hooks(
        self, engine, product_descriptor, product_rows
    ):
        recorder = RecordingBehavior()
        handler = DeleteRequestHandler(product_descriptor, behaviors=[recorder])

        run_delete(engine, handler, 5)
        recorder.calls.clear()
        run_delete(engine, handler, 5)

        assert recorder.calls == ["prepare_query", "validate_request", "return"]

    def test_row_already_flagged_before_first_call(self, engine, product_descriptor):
        add_rows(engine, products, [{"id": 7, "name": "Old", "is_deleted": True}])

        response = run_delete(engine, DeleteRequestHandler(product_descriptor), 7)

        assert response.was_already_deleted is True
        assert get_row(engine, products, 7)["deleted_at"] is None


class TestActiveFlagStrategy:
    """Entities with an active flag are deactivated with the sentinel value."""

    def test_delete_sets_sentinel_and_update_log(
        self, engine, category_descriptor, category_rows
    ):
        handler = DeleteRequestHandler(category_descriptor, clock=lambda: FIXED_NOW)

        response = run_delete(engine, handler, 2, RequestContext(user=User(id="jdoe")))

        assert response.was_already_deleted is False
        row = get_row(engine, categories, 2)
        assert row["is_active"] == -1
        assert row["updated_by"] == "jdoe"
        assert row["updated_at"] is not None

    def test_configured_sentinel(self, engine, category_descriptor, category_rows):
        config = DeletionConfig(environment="test", active_deleted_value=-2)
        handler = DeleteRequestHandler(category_descriptor, config=config)

        run_delete(engine, handler, 2)

        assert get_row(engine, categories, 2)["is_active"] == -2

    def test_inactive_but_not_deleted_row_is_deleted(self, engine, category_descriptor):
        add_rows(
            engine,
            categories,
            [{"id": 10, "name": "Off", "section": "c", "is_active": 0, "display_order": 1}],
        )

        response = run_delete(engine, DeleteRequestHandler(category_descriptor), 10)

        assert response.was_already_deleted is False
        assert get_row(engine, categories, 10)["is_active"] == -1

    def test_null_active_flag_is_not_found(self, engine, category_descriptor):
        add_rows(
            engine,
            categories,
            [{"id": 11, "name": "Null", "section": "c", "is_active": None}],
        )
        behavior = RecordingBehavior()
        handler = DeleteRequestHandler(category_descriptor, behaviors=[behavior])

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 11)

        assert get_row(engine, categories, 11)["is_active"] is None
        assert "before_delete" in behavior.calls
        assert "exception" in behavior.calls


class TestHardDeleteStrategy:
    """Entities without a deletion signal are physically removed."""

    def test_row_removed(self, engine, note_descriptor):
        add_rows(engine, notes, [{"id": 1, "body": "hello"}])

        response = run_delete(engine, DeleteRequestHandler(note_descriptor), 1)

        assert response.was_already_deleted is False
        assert get_row(engine, notes, 1) is None

    def test_second_delete_fails(self, engine, note_descriptor):
        add_rows(engine, notes, [{"id": 1, "body": "hello"}])
        handler = DeleteRequestHandler(note_descriptor)
        run_delete(engine, handler, 1)

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 1)


class TestDeleteLogStrategy:
    """Entities with only a deletion log are tombstoned."""

    def test_user_and_date_recorded(self, engine, invoice_descriptor):
        add_rows(engine, invoices, [{"id": 3, "number": "INV-3"}])
        handler = DeleteRequestHandler(invoice_descriptor, clock=lambda: FIXED_NOW)

        run_delete(engine, handler, 3, RequestContext(user=User(id="42")))

        row = get_row(engine, invoices, 3)
        assert row["deleted_by"] == 42
        assert row["deleted_at"] is not None

    def test_tombstoned_row_is_already_deleted(self, engine, invoice_descriptor):
        add_rows(engine, invoices, [{"id": 3, "number": "INV-3"}])
        handler = DeleteRequestHandler(invoice_descriptor)
        context = RequestContext(user=User(id="42"))

        run_delete(engine, handler, 3, context)
        response = run_delete(engine, handler, 3, context)

        assert response.was_already_deleted is True

    def test_anonymous_delete_refused(self, engine, invoice_descriptor):
        add_rows(engine, invoices, [{"id": 3, "number": "INV-3"}])
        behavior = RecordingBehavior()
        storage = MemoryAuditStorage()
        handler = DeleteRequestHandler(
            invoice_descriptor, behaviors=[behavior, AuditTrailBehavior(storage)]
        )

        for _ in range(2):
            with pytest.raises(ValidationFailedError) as exc_info:
                run_delete(engine, handler, 3)
            assert exc_info.value.key == "Validation.DeleteUserRequired"

        row = get_row(engine, invoices, 3)
        assert row["deleted_at"] is None
        assert row["deleted_by"] is None
        assert behavior.calls == ["prepare_query", "validate_request"] * 2
        assert len(storage) == 0

    def test_anonymous_call_after_tombstone_is_noop(self, engine, invoice_descriptor):
        add_rows(engine, invoices, [{"id": 3, "number": "INV-3"}])
        handler = DeleteRequestHandler(invoice_descriptor)
        run_delete(engine, handler, 3, RequestContext(user=User(id="42")))

        response = run_delete(engine, handler, 3)

        assert response.was_already_deleted is True
        assert get_row(engine, invoices, 3)["deleted_by"] == 42

    def test_flag_entity_deleted_without_user(
        self, engine, product_descriptor, product_rows
    ):
        response = run_delete(engine, DeleteRequestHandler(product_descriptor), 5)

        assert response.was_already_deleted is False
        row = get_row(engine, products, 5)
        assert row["is_deleted"] is True
        assert row["deleted_by"] is None


class TestRequestValidation:
    """Test failures before any mutation."""

    def test_missing_id_touches_no_database(self, product_descriptor):
        uow = Mock()
        handler = DeleteRequestHandler(product_descriptor)

        with pytest.raises(MissingRequiredFieldError) as exc_info:
            handler.process(uow, DeleteRequest())

        assert exc_info.value.key == "Validation.Required"
        uow.connection.execute.assert_not_called()

    def test_unknown_id(self, engine, product_descriptor, product_rows):
        with pytest.raises(EntityNotFoundError) as exc_info:
            run_delete(engine, DeleteRequestHandler(product_descriptor), 99)

        assert str(exc_info.value) == "Product with ID '99' was not found."
        assert exc_info.value.entity_id == 99

    def test_string_id_is_converted(self, engine, product_descriptor, product_rows):
        with UnitOfWork.begin(engine) as uow:
            response = DeleteRequestHandler(product_descriptor).process(uow, " 5 ")

        assert response.was_already_deleted is False
        assert get_row(engine, products, 5)["is_deleted"] is True

    def test_invalid_id(self, engine, product_descriptor, product_rows):
        with pytest.raises(ValidationFailedError):
            run_delete(engine, DeleteRequestHandler(product_descriptor), "abc")

    def test_validation_behavior_aborts(self, engine, product_descriptor, product_rows):
        behavior = RejectingBehavior()
        handler = DeleteRequestHandler(product_descriptor, behaviors=[behavior])

        with pytest.raises(ValidationFailedError):
            run_delete(engine, handler, 5)

        assert behavior.calls == ["prepare_query", "validate_request"]
        assert behavior.exceptions == []
        assert get_row(engine, products, 5)["is_deleted"] is False


class TestBehaviorPipeline:
    """Test hook ordering and exception hooks."""

    def test_hook_order(self, engine, product_descriptor, product_rows):
        recorder = RecordingBehavior()
        handler = DeleteRequestHandler(product_descriptor, behaviors=[recorder])

        run_delete(engine, handler, 5)

        assert recorder.calls == [
            "prepare_query",
            "validate_request",
            "before_delete",
            "after_delete",
            "audit",
            "return",
        ]

    def test_behaviors_run_in_given_order(self, engine, product_descriptor, product_rows):
        calls = []
        handler = DeleteRequestHandler(
            product_descriptor,
            behaviors=[RecordingBehavior(calls, "a:"), RecordingBehavior(calls, "b:")],
        )

        run_delete(engine, handler, 5)

        assert calls[:4] == [
            "a:prepare_query",
            "b:prepare_query",
            "a:validate_request",
            "b:validate_request",
        ]
        assert calls[-2:] == ["a:return", "b:return"]

    def test_prepare_query_can_augment_load(self, engine, product_descriptor, product_rows):
        class OnlyGadgets(RecordingBehavior):
            def on_prepare_query(self, ctx, query):
                return query.where(products.c.name == "Gadget")

        handler = DeleteRequestHandler(product_descriptor, behaviors=[OnlyGadgets()])

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 5)
        assert run_delete(engine, handler, 6).was_already_deleted is False

    def test_state_bag_is_per_call(self, engine, product_descriptor, product_rows):
        seen = []

        class Counter(RecordingBehavior):
            def on_validate_request(self, ctx):
                seen.append(dict(ctx.state_bag))
                ctx.state_bag["visited"] = True

        handler = DeleteRequestHandler(product_descriptor, behaviors=[Counter()])
        run_delete(engine, handler, 5)
        run_delete(engine, handler, 6)

        assert seen == [{}, {}]

    def test_exception_hook_receives_failure_and_it_is_reraised(
        self, engine, note_descriptor
    ):
        add_rows(engine, notes, [{"id": 1, "body": "hello"}])
        behavior = ConcurrentDeleteBehavior(delete(notes).where(notes.c.id == 1))
        handler = DeleteRequestHandler(note_descriptor, behaviors=[behavior])

        with pytest.raises(EntityNotFoundError) as exc_info:
            run_delete(engine, handler, 1)

        assert behavior.exceptions == [exc_info.value]
        assert behavior.calls[-1] == "exception"

    def test_logging_exception_behavior(self, engine, note_descriptor, caplog):
        add_rows(engine, notes, [{"id": 1, "body": "hello"}])
        handler = DeleteRequestHandler(
            note_descriptor,
            behaviors=[
                ConcurrentDeleteBehavior(delete(notes).where(notes.c.id == 1)),
                LoggingExceptionBehavior(),
            ],
        )

        with caplog.at_level(logging.ERROR):
            with pytest.raises(EntityNotFoundError):
                run_delete(engine, handler, 1)

        assert "Deleting Note 1 failed" in caplog.text

    def test_from_registry(self, product_descriptor, category_descriptor):
        entities = EntityRegistry()
        entities.register(product_descriptor)
        entities.register(category_descriptor)
        behaviors = BehaviorRegistry()
        shared = behaviors.register(RecordingBehavior())
        product_only = behaviors.register(RecordingBehavior(), entities=["Product"])

        product_handler = DeleteRequestHandler.from_registry(
            entities, "Product", behaviors
        )
        category_handler = DeleteRequestHandler.from_registry(
            entities, "Category", behaviors
        )

        assert product_handler.descriptor is product_descriptor
        assert product_handler.pipeline.behaviors == (shared, product_only)
        assert category_handler.pipeline.behaviors == (shared,)

    def test_delete_alias(self, engine, product_descriptor, product_rows):
        handler = DeleteRequestHandler(product_descriptor)

        with UnitOfWork.begin(engine) as uow:
            response = handler.delete(uow, DeleteRequest(entity_id=5))

        assert response.was_already_deleted is False


@pytest.mark.race
class TestConcurrentDeletion:
    """A row deleted between load and mutation fails the losing call."""

    def test_deleted_flag_race(self, engine, product_descriptor, product_rows):
        behavior = ConcurrentDeleteBehavior(
            update(products).where(products.c.id == 5).values(is_deleted=True)
        )
        handler = DeleteRequestHandler(product_descriptor, behaviors=[behavior])

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 5)

        assert "after_delete" not in behavior.calls
        assert "audit" not in behavior.calls

    def test_active_flag_race(self, engine, category_descriptor, category_rows):
        behavior = ConcurrentDeleteBehavior(
            update(categories).where(categories.c.id == 2).values(is_active=-1)
        )
        handler = DeleteRequestHandler(category_descriptor, behaviors=[behavior])

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 2)

    def test_delete_log_race(self, engine, invoice_descriptor):
        add_rows(engine, invoices, [{"id": 3, "number": "INV-3"}])
        behavior = ConcurrentDeleteBehavior(
            update(invoices).where(invoices.c.id == 3).values(deleted_by=7)
        )
        handler = DeleteRequestHandler(invoice_descriptor, behaviors=[behavior])

        with pytest.raises(EntityNotFoundError):
            run_delete(engine, handler, 3, RequestContext(user=User(id="42")))

        assert get_row(engine, invoices, 3)["deleted_by"] is None


class TestPermissions:
    """Test permission checks before deletion."""

    def make_descriptor(self, *permissions):
        return EntityDescriptor(
            name="Product",
            table=products,
            is_deleted_field="is_deleted",
            permissions=permissions,
        )

    def test_delete_permission_takes_precedence(self, engine, product_rows):
        descriptor = self.make_descriptor(
            (PermissionKind.MODIFY, "Inventory:Modify"),
            (PermissionKind.DELETE, "Inventory:Delete"),
        )
        service = Mock()
        handler = DeleteRequestHandler(
            descriptor, context=RequestContext(permissions=service)
        )

        run_delete(engine, handler, 5)

        service.validate_permission.assert_called_once_with("Inventory:Delete", None)

    def test_modify_permission_alone_not_sufficient(self, engine, product_rows):
        descriptor = self.make_descriptor(
            (PermissionKind.MODIFY, "Inventory:Modify"),
            (PermissionKind.DELETE, "Inventory:Delete"),
        )
        user = User(id="jdoe", permissions={"Inventory:Modify"})
        handler = DeleteRequestHandler(descriptor, context=RequestContext(user=user))

        with pytest.raises(PermissionDeniedError) as exc_info:
            run_delete(engine, handler, 5)

        assert exc_info.value.permission == "Inventory:Delete"
        assert get_row(engine, products, 5)["is_deleted"] is False

    def test_user_with_permission(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.DELETE, "Inventory:Delete"))
        user = User(id="jdoe", permissions={"Inventory:Delete"})
        handler = DeleteRequestHandler(descriptor, context=RequestContext(user=user))

        assert run_delete(engine, handler, 5).was_already_deleted is False

    def test_read_permission_fallback(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.READ, None))
        handler = DeleteRequestHandler(descriptor)

        with pytest.raises(PermissionDeniedError):
            run_delete(engine, handler, 5)
        response = run_delete(engine, handler, 5, RequestContext(user=User(id="jdoe")))
        assert response.was_already_deleted is False

    def test_denied_without_permission_service(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.DELETE, "Inventory:Delete"))

        with pytest.raises(PermissionDeniedError):
            run_delete(engine, DeleteRequestHandler(descriptor), 5)

    def test_anonymous_permission(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.DELETE, "*"))

        response = run_delete(engine, DeleteRequestHandler(descriptor), 5)

        assert response.was_already_deleted is False

    def test_enforcement_disabled(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.DELETE, "Inventory:Delete"))
        config = DeletionConfig(environment="test", enforce_permissions=False)

        response = run_delete(engine, DeleteRequestHandler(descriptor, config=config), 5)

        assert response.was_already_deleted is False

    def test_permission_checked_before_validation(self, engine, product_rows):
        descriptor = self.make_descriptor((PermissionKind.DELETE, "Inventory:Delete"))
        behavior = RecordingBehavior()
        handler = DeleteRequestHandler(descriptor, behaviors=[behavior])

        with pytest.raises(PermissionDeniedError):
            run_delete(engine, handler, 5)

        assert behavior.calls == ["prepare_query"]


class TestCacheInvalidation:
    """Cache groups are evicted only when the unit of work commits."""

    @pytest.fixture
    def cache(self):
        cache = TwoLevelCache(local=MemoryCache(), distributed=Mock())
        cache.set("products", "5", "cached product")
        return cache

    def test_evicted_after_commit(self, engine, product_descriptor, product_rows, cache):
        handler = DeleteRequestHandler(
            product_descriptor, context=RequestContext(cache=cache)
        )

        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            handler.process(uow, DeleteRequest(entity_id=5))
            assert cache.get("products", "5") == "cached product"
            cache.distributed.invalidate_group.assert_not_called()
            uow.commit()

        assert cache.get("products", "5") is None
        cache.distributed.invalidate_group.assert_called_once_with("products")

    def test_rollback_leaves_cache(self, engine, product_descriptor, product_rows, cache):
        handler = DeleteRequestHandler(
            product_descriptor, context=RequestContext(cache=cache)
        )

        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            handler.process(uow, DeleteRequest(entity_id=5))
            uow.rollback()

        assert cache.get("products", "5") == "cached product"
        cache.distributed.invalidate_group.assert_not_called()
        assert get_row(engine, products, 5)["is_deleted"] is False

    def test_already_deleted_does_not_evict(
        self, engine, product_descriptor, product_rows, cache
    ):
        handler = DeleteRequestHandler(
            product_descriptor, context=RequestContext(cache=cache)
        )
        run_delete(engine, handler, 5)
        cache.set("products", "5", "repopulated")

        run_delete(engine, handler, 5)

        assert cache.get("products", "5") == "repopulated"

    def test_disabled_by_config(self, engine, product_descriptor, product_rows, cache):
        config = DeletionConfig(environment="test", cache_enabled=False)
        handler = DeleteRequestHandler(
            product_descriptor, context=RequestContext(cache=cache), config=config
        )

        run_delete(engine, handler, 5)

        assert cache.get("products", "5") == "cached product"


class TestDisplayOrderCompaction:
    """Remaining members of a sequence are renumbered after a deletion."""

    def orders(self, engine, ids):
        return {i: get_row(engine, categories, i)["display_order"] for i in ids}

    def test_middle_member_deleted(self, engine, category_descriptor, category_rows):
        run_delete(engine, DeleteRequestHandler(category_descriptor), 3)

        assert self.orders(engine, [1, 2, 4, 5]) == {1: 1, 2: 2, 4: 3, 5: 4}

    def test_other_group_untouched(self, engine, category_descriptor, category_rows):
        run_delete(engine, DeleteRequestHandler(category_descriptor), 3)

        assert get_row(engine, categories, 6)["display_order"] == 7

    def test_deleted_member_keeps_value(self, engine, category_descriptor, category_rows):
        run_delete(engine, DeleteRequestHandler(category_descriptor), 3)

        row = get_row(engine, categories, 3)
        assert row["is_active"] == -1
        assert row["display_order"] == 3

    def test_compaction_disabled(self, engine, category_descriptor, category_rows):
        config = DeletionConfig(environment="test", display_order_compaction=False)

        run_delete(engine, DeleteRequestHandler(category_descriptor, config=config), 3)

        assert self.orders(engine, [4, 5]) == {4: 4, 5: 5}


class TestAuditTrail:
    """Test the audit behavior wired into the handler."""

    def test_sql_audit_commits_with_deletion(
        self, engine, product_descriptor, product_rows
    ):
        storage = SQLAuditStorage(engine)
        storage.create_table()
        handler = DeleteRequestHandler(
            product_descriptor, behaviors=[AuditTrailBehavior(storage)]
        )

        run_delete(engine, handler, 5, RequestContext(user=User(id="jdoe")))

        entries = storage.query(AuditQuery(entity_type="Product"))
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == "SOFT_DELETE"
        assert entry.entity_id == "5"
        assert entry.user_id == "jdoe"
        assert entry.snapshot["name"] == "Widget"
        assert entry.verify_checksum()

    def test_sql_audit_rolled_back_with_deletion(
        self, engine, product_descriptor, product_rows
    ):
        storage = SQLAuditStorage(engine)
        storage.create_table()
        handler = DeleteRequestHandler(
            product_descriptor, behaviors=[AuditTrailBehavior(storage)]
        )

        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            handler.process(uow, DeleteRequest(entity_id=5))
            uow.rollback()

        assert storage.query(AuditQuery()) == []

    def test_memory_audit_written_on_commit(
        self, engine, product_descriptor, product_rows
    ):
        storage = MemoryAuditStorage()
        handler = DeleteRequestHandler(
            product_descriptor, behaviors=[AuditTrailBehavior(storage)]
        )

        with engine.connect() as connection:
            uow = UnitOfWork(connection)
            handler.process(uow, DeleteRequest(entity_id=5))
            assert len(storage) == 0
            uow.commit()

        assert len(storage) == 1

    def test_no_audit_for_already_deleted(self, engine, product_descriptor, product_rows):
        storage = MemoryAuditStorage()
        handler = DeleteRequestHandler(
            product_descriptor, behaviors=[AuditTrailBehavior(storage)]
        )

        run_delete(engine, handler, 5)
        run_delete(engine, handler, 5)

        assert len(storage) == 1

    def test_audit_disabled(self, engine, product_descriptor, product_rows):
        config = DeletionConfig(environment="test", audit_enabled=False)
        storage = MemoryAuditStorage()
        handler = DeleteRequestHandler(
            product_descriptor, behaviors=[AuditTrailBehavior(storage, config)]
        )

        run_delete(engine, handler, 5)

        assert len(storage) == 0
