"""Recovery Center operator CLI.

Runs the same services as the HTTP API against ``DATABASE_URL``, for use
from a maintenance shell when the web tier is unavailable.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from .application.list_service import list_recoverable
from .application.preview_service import preview_recovery
from .application.restore_service import restore_records
from .application.summary_service import summarize_recovery
from .application.validation import (
    require_entity,
    validate_restore_request_with_logging,
)
from .config import settings
from .domain.constants import CONFIRMATION_PHRASE
from .domain.entities import RecoveryRecord
from .domain.exceptions import DomainError, RestoreConflictError
from .domain.registry import RECOVERY_ENTITIES, is_archive_backed_account_entity
from .infrastructure.database.database import get_main_engine, init_db
from .infrastructure.database.schema import SchemaIntrospector
from .logging_config import setup_logging

app = typer.Typer(help="List, preview and restore soft-deleted school records.")
console = Console()


@app.callback()
def main(
    log_level: Annotated[
        str, typer.Option(help="Log level for this command")
    ] = "WARNING",
) -> None:
    setup_logging(log_level)


@contextmanager
def _database() -> Iterator[tuple[Session, SchemaIntrospector]]:
    with Session(get_main_engine()) as session:
        try:
            yield session, SchemaIntrospector(session)
        except DomainError as e:
            console.print(f"[red]✗ {e}[/red]")
            if isinstance(e, RestoreConflictError):
                console.print(f"Blocked ids: {', '.join(e.blocked_ids)}")
            raise typer.Exit(1) from e


def _records_table(title: str, records: list[RecoveryRecord]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="bold")
    table.add_column("Label")
    table.add_column("Removed at")
    table.add_column("Reason")
    for record in records:
        table.add_row(
            str(record.id),
            record.label or "-",
            record.occurred_at.isoformat(sep=" ") if record.occurred_at else "-",
            record.reason or "-",
        )
    return table


@app.command()
def entities() -> None:
    """Show the registered entity types."""
    table = Table(title="Recoverable entities")
    table.add_column("Key", style="bold")
    table.add_column("Table")
    table.add_column("Mode")
    table.add_column("Archive-backed")
    for entity in RECOVERY_ENTITIES:
        table.add_row(
            entity.key,
            entity.table,
            entity.mode.value,
            "yes" if is_archive_backed_account_entity(entity.key) else "",
        )
    console.print(table)


@app.command()
def summary() -> None:
    """Count recoverable rows per entity."""
    with _database() as (session, introspector):
        result = summarize_recovery(session, introspector)

    table = Table(title=f"Recoverable records ({result.total})")
    table.add_column("Entity", style="bold")
    table.add_column("Table")
    table.add_column("Mode")
    table.add_column("Count", justify="right")
    for item in result.counts:
        table.add_row(item.entity, item.table, item.mode, str(item.count))
    console.print(table)

    for item in result.unavailable:
        console.print(f"[yellow]⚠ {item.entity}: {item.reason}[/yellow]")


@app.command("list")
def list_command(
    entity: Annotated[str, typer.Argument(help="Recovery entity key")],
    page: Annotated[int, typer.Option(help="1-based page number")] = 1,
    page_size: Annotated[int, typer.Option(help="Rows per page")] = 20,
    query: Annotated[str | None, typer.Option(help="Substring search")] = None,
) -> None:
    """Page through soft-deleted records of one entity."""
    with _database() as (session, introspector):
        config = require_entity(entity)
        result = list_recoverable(session, introspector, config, page, page_size, query)

    console.print(
        _records_table(
            f"{config.key}: page {result.page}/{result.total_pages} "
            f"({result.total} total)",
            result.records,
        )
    )


@app.command()
def preview(
    entity: Annotated[str, typer.Argument(help="Recovery entity key")],
    ids: Annotated[list[str], typer.Argument(help="Record ids")],
) -> None:
    """Classify ids without changing anything."""
    with _database() as (session, introspector):
        config = require_entity(entity)
        _, result = preview_recovery(session, introspector, config, ids)

    console.print(_records_table("Recoverable", result.recoverable))
    for blocked in result.not_recoverable:
        console.print(f"[yellow]⚠ {blocked.record.id}: {blocked.conflict}[/yellow]")
    if result.not_found:
        console.print(f"[dim]Not found: {', '.join(result.not_found)}[/dim]")


@app.command()
def restore(
    entity: Annotated[str, typer.Argument(help="Recovery entity key")],
    ids: Annotated[list[str], typer.Argument(help="Record ids")],
    reason: Annotated[str, typer.Option(prompt=True, help="Why the records return")],
    approval_note: Annotated[
        str, typer.Option(prompt=True, help="Who approved the restore")
    ],
    actor: Annotated[str, typer.Option(help="Administrator id for the audit log")],
    confirm_phrase: Annotated[
        str,
        typer.Option(
            prompt=f"Type {CONFIRMATION_PHRASE} to confirm",
            help=f"Must be {CONFIRMATION_PHRASE}",
        ),
    ],
) -> None:
    """Restore records in one audited transaction."""
    with _database() as (session, introspector):
        config = require_entity(entity)
        request = validate_restore_request_with_logging(
            ids, reason, approval_note, confirm_phrase
        )
        result = restore_records(
            session, introspector, config, request, actor=actor, ip_address="cli"
        )

    console.print(f"[green]✓ Restored {result.restored_count} record(s)[/green]")
    if result.skipped_ids:
        console.print(f"[dim]Skipped: {', '.join(result.skipped_ids)}[/dim]")


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port")] = None,
    reload: Annotated[bool, typer.Option(help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    uvicorn.run(
        "recovery_center.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create the audit log table."""
    init_db(get_main_engine())
    console.print("[green]✓ Audit table ready[/green]")


if __name__ == "__main__":
    app()
