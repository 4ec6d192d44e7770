"""
Root Typer application for the examvault CLI.

Commands::

    examvault init-db                       create every entity table
    examvault describe MediaThumbnail       column mapping of one entity
    examvault sql Question --dialect sqlserver
    examvault archive-audit-logs --before 2026-01-01
    examvault set-default-thumbnail <uuid>
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

import typer
from rich.syntax import Syntax

from examvault import __version__
from examvault.cli.utils import (
    console,
    descriptor_table,
    fail,
    load_settings,
    make_provider,
    resolve_entity,
)
from examvault.core.coercion import default_registry
from examvault.core.dialect import get_dialect
from examvault.core.errors import NotFoundError, VaultError
from examvault.core.logging import configure_logging
from examvault.core.models import ALL_ENTITIES
from examvault.core.repositories import AuditLogRepository, MediaThumbnailRepository
from examvault.core.schema import describe
from examvault.core.statements import PageRequest, StatementBuilder
from examvault.core.timestamps import utc_now
from examvault.core.transactions import unit_of_work

app = typer.Typer(
    name="examvault",
    help="examvault — persistence engine for the exam-authoring backend.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"examvault {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Emit structured logs."),
) -> None:
    """examvault CLI — inspect entity mappings and run maintenance operations."""
    if verbose:
        settings = load_settings()
        configure_logging(level=settings.log_level, json_format=settings.json_logs)


# ── Introspection ────────────────────────────────────────────────────────


@app.command("describe")
def describe_entity(
    entity: str = typer.Argument(..., help="Entity type or table name"),
) -> None:
    """Show how an entity maps to its table."""
    console.print(descriptor_table(resolve_entity(entity)))


@app.command()
def sql(
    entity: str = typer.Argument(..., help="Entity type or table name"),
    dialect: str = typer.Option("sqlite", "--dialect", help="sqlite or sqlserver"),
) -> None:
    """Preview the statements generated for an entity."""
    descriptor = resolve_entity(entity)
    try:
        target = get_dialect(dialect)
    except VaultError as e:
        fail(e.message)
    builder = StatementBuilder(descriptor, target, default_registry())
    returning = descriptor.primary_key if descriptor.key_generated else None
    statements = {
        "create": builder.create_table().sql,
        "insert": target.insert(
            descriptor.table, [c.column for c in descriptor.insert_columns], returning
        ),
        "update": builder.update_sql(),
        "select_by_id": builder.select_by_id(None).sql,
        "select_paged": builder.select_paged(PageRequest(1, 20)).sql,
        "count": builder.count().sql,
        "soft_delete": builder.soft_delete(None, utc_now()).sql,
        "hard_delete": builder.hard_delete(None).sql,
    }
    for name, text in statements.items():
        console.print(f"[bold]-- {name}[/bold]")
        console.print(Syntax(text, "sql", word_wrap=True))


# ── Maintenance ──────────────────────────────────────────────────────────


@app.command()
def init_db(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite database path"),
) -> None:
    """Create every entity table that does not exist yet."""
    provider, _settings = make_provider(database)
    registry = default_registry()
    try:
        with unit_of_work(provider) as handle:
            for entity_type in ALL_ENTITIES:
                builder = StatementBuilder(describe(entity_type), provider.dialect, registry)
                handle.execute(builder.create_table().sql)
    except provider.error_types as e:
        fail(f"Schema creation failed: {e}")
    console.print(f"[green]✓[/green] {len(ALL_ENTITIES)} tables ready")


@app.command()
def archive_audit_logs(
    before: datetime = typer.Option(
        ..., "--before", help="Archive entries stamped before this date (UTC)"
    ),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite database path"),
) -> None:
    """Move old audit log entries to the archive table."""
    provider, settings = make_provider(database)
    cutoff = before if before.tzinfo else before.replace(tzinfo=UTC)
    repo = AuditLogRepository(provider, archive_suffix=settings.archive_suffix)
    try:
        count = repo.archive_logs(cutoff)
    except VaultError as e:
        fail(e.message)
    console.print(f"[green]✓[/green] Archived {count} audit log(s) to {repo.archive_table}")


@app.command()
def set_default_thumbnail(
    thumbnail_id: UUID = typer.Argument(..., help="MediaThumbnailId to promote"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite database path"),
) -> None:
    """Make a thumbnail the default of its media file and size."""
    provider, _settings = make_provider(database)
    try:
        MediaThumbnailRepository(provider).set_as_default(thumbnail_id)
    except NotFoundError:
        fail(f"Thumbnail {thumbnail_id} not found")
    except VaultError as e:
        fail(e.message)
    console.print(f"[green]✓[/green] {thumbnail_id} is now the default thumbnail")


if __name__ == "__main__":
    app()
