#!/usr/bin/env python3
"""
Command-line interface for the Deletion Toolkit.

Provides inspection of deletable tables, single deletions and audit trail search.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import MetaData, create_engine, inspect
from sqlalchemy.engine import Engine

from . import __version__
from .audit_trail import AuditQuery, AuditTrailBehavior, SQLAuditStorage
from .config import DeletionConfig, get_config, set_config
from .delete import (
    DeleteBehavior,
    DeleteRequest,
    DeleteRequestHandler,
    LoggingExceptionBehavior,
    RequestContext,
)
from .entity import EntityDescriptor, capability_names
from .exceptions import DeletionError
from .permissions import User
from .unit_of_work import UnitOfWork

console = Console()


def _setup_logging(config: DeletionConfig) -> None:
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    root.setLevel(config.log_level)


def _reflect(engine: Engine, tables: Tuple[str, ...]) -> MetaData:
    metadata = MetaData()
    metadata.reflect(bind=engine, only=list(tables) or None)
    return metadata


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path]) -> None:
    """Deletion Toolkit - entity deletion with soft-delete strategies."""
    if config_file is not None:
        try:
            set_config(DeletionConfig.from_file(config_file))
        except ValueError as e:
            console.print(f"[red]Invalid configuration file: {e}[/red]")
            sys.exit(1)
    _setup_logging(get_config())

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Deletion Toolkit[/bold blue] v{__version__}\n"
                "[dim]Entity deletion with soft-delete strategies[/dim]\n\n"
                "Use [bold]deletion --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage deletion toolkit configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    try:
        config_dict = get_config().to_dict()

        if format == "json":
            console.print_json(data=config_dict)
        elif format == "yaml":
            import yaml

            console.print(yaml.safe_dump(config_dict, default_flow_style=False))
        else:
            table = Table(title="Deletion Configuration", show_header=True)
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")

            categories = {
                "General": ["application_name", "environment", "log_level"],
                "Deletion": [
                    "active_deleted_value",
                    "default_timestamp_kind",
                    "enforce_permissions",
                    "display_order_compaction",
                ],
                "Audit Trail": [
                    "audit_enabled",
                    "audit_table_name",
                    "checksum_algorithm",
                ],
                "Cache": ["cache_enabled", "cache_ttl_seconds"],
                "Column Conventions": [
                    "id_column",
                    "is_active_column",
                    "is_deleted_column",
                    "delete_date_column",
                    "delete_user_column",
                    "update_date_column",
                    "update_user_column",
                    "display_order_column",
                ],
            }

            for category, settings in categories.items():
                table.add_row(f"[bold]{category}[/bold]", "")
                for setting in settings:
                    value = config_dict[setting]
                    if isinstance(value, bool):
                        value = "✓" if value else "✗"
                    table.add_row(f"  {setting}", str(value))

            console.print(table)

    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--url", required=True, help="SQLAlchemy database URL")
@click.option("--table", "tables", multiple=True, help="Table to describe")
def describe(url: str, tables: Tuple[str, ...]) -> None:
    """Show how rows of each table would be deleted."""
    try:
        engine = create_engine(url)
        metadata = _reflect(engine, tables)
    except Exception as e:
        console.print(f"[red]Error reading database: {e}[/red]")
        sys.exit(1)

    if not metadata.tables:
        console.print("[yellow]No tables found[/yellow]")
        return

    config = get_config()
    table = Table(title="Deletion Strategies")
    table.add_column("Table", style="cyan")
    table.add_column("Strategy", style="green")
    table.add_column("Capabilities", style="yellow")
    table.add_column("Permission", style="magenta")

    for name in sorted(metadata.tables):
        try:
            descriptor = EntityDescriptor.from_table(metadata.tables[name], config=config)
        except DeletionError as e:
            table.add_row(name, "[red]invalid[/red]", str(e), "")
            continue

        permission = descriptor.required_permission
        table.add_row(
            name,
            descriptor.strategy.value,
            ", ".join(capability_names(descriptor.capabilities)) or "-",
            permission[1] if permission else "-",
        )

    console.print(table)


@cli.command()
@click.option("--url", required=True, help="SQLAlchemy database URL")
@click.option("--table", "table_name", required=True, help="Table to delete from")
@click.option("--id", "entity_id", required=True, help="Identifier of the row")
@click.option("--user", help="ID of the deleting user")
@click.option("--dry-run", is_flag=True, help="Roll back instead of committing")
@click.option("--audit/--no-audit", default=True, help="Record the deletion")
def delete(
    url: str,
    table_name: str,
    entity_id: str,
    user: Optional[str],
    dry_run: bool,
    audit: bool,
) -> None:
    """Delete one row using the strategy its table supports."""
    config = get_config()
    try:
        engine = create_engine(url)
        metadata = _reflect(engine, (table_name,))
        descriptor = EntityDescriptor.from_table(
            metadata.tables[table_name], config=config
        )
    except DeletionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error reading table {table_name}: {e}[/red]")
        sys.exit(1)

    behaviors: List[DeleteBehavior] = [LoggingExceptionBehavior()]
    if audit and config.audit_enabled:
        storage = SQLAuditStorage(engine, config.audit_table_name)
        storage.create_table()
        behaviors.append(AuditTrailBehavior(storage, config))

    context = RequestContext(user=User(id=user) if user else None)
    handler = DeleteRequestHandler(
        descriptor, context=context, behaviors=behaviors, config=config
    )

    with engine.connect() as connection:
        uow = UnitOfWork(connection)
        try:
            response = handler.process(uow, DeleteRequest(entity_id=entity_id))
        except Exception as e:
            uow.rollback()
            console.print(f"[red]{e}[/red]")
            sys.exit(1)

        if dry_run:
            uow.rollback()
        else:
            uow.commit()

    if response.was_already_deleted:
        console.print(f"[yellow]{table_name} {entity_id} was already deleted[/yellow]")
    elif dry_run:
        console.print(
            f"[blue]Dry run: {table_name} {entity_id} would be deleted "
            f"({descriptor.strategy.value})[/blue]"
        )
    else:
        console.print(
            f"[green]✓ Deleted {table_name} {entity_id} "
            f"({descriptor.strategy.value})[/green]"
        )


@cli.group()
def audit() -> None:
    """Search the deletion audit trail."""
    pass


@audit.command("search")
@click.option("--url", required=True, help="SQLAlchemy database URL")
@click.option("--entity", help="Filter by entity type")
@click.option("--entity-id", help="Filter by entity ID")
@click.option("--user", help="Filter by user ID")
@click.option("--limit", type=int, default=100, help="Maximum results to return")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
def audit_search(
    url: str,
    entity: Optional[str],
    entity_id: Optional[str],
    user: Optional[str],
    limit: int,
    format: str,
) -> None:
    """Search audit trail entries."""
    try:
        config = get_config()
        engine = create_engine(url)
        if not inspect(engine).has_table(config.audit_table_name):
            console.print("[yellow]No audit entries found matching criteria[/yellow]")
            return

        storage = SQLAuditStorage(engine, config.audit_table_name)
        entries = storage.query(
            AuditQuery(entity_type=entity, entity_id=entity_id, user_id=user, limit=limit)
        )

        if not entries:
            console.print("[yellow]No audit entries found matching criteria[/yellow]")
            return

        if format == "json":
            console.print_json(data=[e.model_dump(mode="json") for e in entries])
        else:
            table = Table(
                title=f"Audit Trail Entries (showing {len(entries)} of {limit})"
            )
            table.add_column("Timestamp", style="cyan")
            table.add_column("User", style="green")
            table.add_column("Action", style="yellow")
            table.add_column("Entity", style="blue")
            table.add_column("Integrity", style="magenta")

            for entry in entries:
                intact = entry.verify_checksum(algorithm=config.checksum_algorithm)
                table.add_row(
                    entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    entry.user_id or "-",
                    str(entry.action),
                    f"{entry.entity_type}:{entry.entity_id}",
                    "[green]ok[/green]" if intact else "[red]mismatch[/red]",
                )

            console.print(table)

    except Exception as e:
        console.print(f"[red]Error searching audit trail: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
