"""Shared helpers for repository classes.

Tags:
    examvault, repository, helpers, join

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from operator import attrgetter, itemgetter
from typing import Any

from examvault.core.flatten import Relation
from examvault.core.schema import describe
from examvault.core.statements import StatementBuilder


def builder_for(entity_type: type, repository: Any) -> StatementBuilder:
    """Statement builder for a joined entity, sharing the repository's dialect and registry."""
    return StatementBuilder(
        describe(entity_type), repository.provider.dialect, repository.registry
    )


def collection(
    name: str,
    position: int,
    key_attribute: str,
    *,
    child_of: Callable[[tuple], Any] | None = None,
) -> Relation:
    """Relation appending segment ``position`` of each mapped row to ``owner.<name>``."""
    return Relation(
        name,
        child_of=child_of or itemgetter(position),
        key_of=attrgetter(key_attribute),
        attach=lambda owner, child: getattr(owner, name).append(child),
    )
