"""
CLI utility helpers: entity lookup, provider construction and output.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from examvault.core.connection import build_provider
from examvault.core.models import ALL_ENTITIES
from examvault.core.schema import EntityDescriptor, describe
from examvault.core.settings import VaultSettings, get_settings

console = Console()
err_console = Console(stderr=True)


# ── Settings / provider helpers ──────────────────────────────────────────


def load_settings(database: str | None = None) -> VaultSettings:
    """Deployment settings, with ``--database`` overriding the SQLite path."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(
            update={"dialect": "sqlite", "database_path": Path(database)}
        )
    return settings


def make_provider(database: str | None = None) -> tuple[Any, VaultSettings]:
    settings = load_settings(database)
    return build_provider(settings), settings


def resolve_entity(name: str) -> EntityDescriptor:
    """Find an entity by type name or table name (case-insensitive)."""
    wanted = name.lower()
    for entity_type in ALL_ENTITIES:
        descriptor = describe(entity_type)
        if wanted in (descriptor.name.lower(), descriptor.table.lower()):
            return descriptor
    known = ", ".join(t.__name__ for t in ALL_ENTITIES)
    fail(f"Unknown entity {name!r}. Known: {known}")


# ── Output helpers ───────────────────────────────────────────────────────


def fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


def descriptor_table(descriptor: EntityDescriptor) -> Table:
    table = Table(title=f"{descriptor.name} → {descriptor.table}")
    table.add_column("Attribute", style="cyan")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Nullable")
    table.add_column("Key")
    for info in descriptor.columns:
        is_key = info.column == descriptor.primary_key
        table.add_row(
            info.attribute,
            info.column,
            info.python_type.__name__,
            "yes" if info.optional and not is_key else "no",
            ("generated" if descriptor.key_generated else "client") if is_key else "",
        )
    return table
