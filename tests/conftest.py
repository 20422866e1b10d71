"""Shared fixtures: an in-memory SQLite database with one table per strategy."""

import pytest
from sqlalchemy import create_engine

from deletion_toolkit.config import DeletionConfig, set_config
from deletion_toolkit.entity import EntityDescriptor

from .tables import categories, invoices, metadata, notes, products


@pytest.fixture(autouse=True)
def config():
    """Install a fresh configuration for every test."""
    config = DeletionConfig(environment="test", application_name="Tests")
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def engine():
    """Create an in-memory SQLite database with the test tables."""
    engine = create_engine("sqlite://")
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def product_descriptor():
    return EntityDescriptor(
        name="Product",
        table=products,
        is_deleted_field="is_deleted",
        delete_date_field="deleted_at",
        delete_user_field="deleted_by",
    )


@pytest.fixture
def category_descriptor():
    return EntityDescriptor(
        name="Category",
        table=categories,
        is_active_field="is_active",
        update_date_field="updated_at",
        update_user_field="updated_by",
        display_order_field="display_order",
        display_order_group=("section",),
    )


@pytest.fixture
def note_descriptor():
    return EntityDescriptor(name="Note", table=notes)


@pytest.fixture
def invoice_descriptor():
    return EntityDescriptor(
        name="Invoice",
        table=invoices,
        delete_date_field="deleted_at",
        delete_user_field="deleted_by",
    )
