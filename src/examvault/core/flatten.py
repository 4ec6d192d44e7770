"""
Result flattening: joined rowsets -> owner objects with nested collections.

A ``LEFT JOIN`` from one owner to N children returns the owner once per
child; joining a second child table multiplies again. :func:`flatten`
walks the rowset once and rebuilds the graph, emitting each owner once and
each child once per owner per relation.

Manifesto:
    Ghost duplicates are silent corruption: a question rendered with its
    four answers twice looks plausible. Deduplication is explicit, one
    seen-set per relation, never a dictionary improvised at the call site.

Architecture:
    ::

        rows (arrival order)                  RowGroup
        ┌──────┬─────────┬────────┐          owners:  {Q1: <Q1>}
        │ Q1   │ Answer1 │ Media1 │   ──▶    seen["answers"]: {Q1: {A1, A2}}
        │ Q1   │ Answer1 │ Media2 │          seen["media"]:   {Q1: {M1, M2}}
        │ Q1   │ Answer2 │ Media1 │
        │ Q1   │ Answer2 │ Media2 │   ──▶    [Q1(answers=[A1, A2],
        └──────┴─────────┴────────┘              media=[M1, M2])]

        split_row(columns, row, split_on=["AnswerId", "QuestionMediaId"])
          searches split columns right to left, so a child segment may
          repeat the owner's key column without confusing the split.

Examples:
    >>> rows = [("q1", "a1"), ("q1", "a2"), ("q2", None)]
    >>> answers = Relation(
    ...     "answers",
    ...     child_of=lambda r: r[1],
    ...     key_of=lambda c: c,
    ...     attach=lambda owner, child: owner.append(child),
    ... )
    >>> flatten(rows, lambda r: r[0], answers, owner_of=lambda r: [])
    [['a1', 'a2'], []]

Guardrails:
    ❌ DON'T: Attach a child whose key is NULL (outer-join miss)
    ✅ DO: Let ``child_of`` return ``None`` for an all-NULL segment

    ❌ DON'T: Re-sort children after flattening
    ✅ DO: Put the ordering in the query's ORDER BY

Tags:
    flattening, join, multi-mapping, deduplication

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from operator import itemgetter
from typing import Any

from examvault.core.coercion import TypeCoercionRegistry
from examvault.core.errors import ConfigurationError
from examvault.core.schema import EntityDescriptor, describe


@dataclass(frozen=True)
class Relation:
    """One nested collection reconstructed from a joined row.

    Attributes:
        name: Relation name; one seen-set is kept per name.
        child_of: Row -> child object, or ``None`` when the join missed.
        key_of: Child -> its primary-key value.
        attach: ``(owner, child)`` -> appends the child to the owner.
    """

    name: str
    child_of: Callable[[Any], Any]
    key_of: Callable[[Any], Any]
    attach: Callable[[Any, Any], None]


class RowGroup:
    """Per-call flattening state: owners by key plus one seen-set per relation."""

    def __init__(self, relations: Sequence[Relation]):
        names = [r.name for r in relations]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate relation names: {names}")
        self.owners: dict[Any, Any] = {}
        self.seen: dict[str, dict[Any, set[Any]]] = {name: {} for name in names}

    def add_owner(self, key: Any, owner: Any) -> Any:
        self.owners[key] = owner
        return owner

    def first_sighting(self, relation: str, owner_key: Any, child_key: Any) -> bool:
        """Mark ``child_key`` seen for ``owner_key``; True if it was new."""
        seen = self.seen[relation].setdefault(owner_key, set())
        if child_key in seen:
            return False
        seen.add(child_key)
        return True


def flatten(
    rows: Iterable[Any],
    owner_key_of: Callable[[Any], Any],
    *relations: Relation,
    owner_of: Callable[[Any], Any] = itemgetter(0),
) -> list[Any]:
    """Rebuild owners with nested collections from a joined rowset.

    Args:
        rows: Rows in arrival order (tuples of hydrated segments, or any
            shape the callables understand).
        owner_key_of: Row -> owner primary key. Rows whose owner key is
            ``None`` are skipped.
        *relations: Nested collections to rebuild.
        owner_of: Row -> owner object, called once per distinct owner.

    Returns:
        Owners in first-seen order.
    """
    group = RowGroup(relations)
    for row in rows:
        key = owner_key_of(row)
        if key is None:
            continue
        owner = group.owners.get(key)
        if owner is None:
            owner = group.add_owner(key, owner_of(row))
        for relation in relations:
            child = relation.child_of(row)
            if child is None:
                continue
            child_key = relation.key_of(child)
            if child_key is None:
                continue
            if group.first_sighting(relation.name, key, child_key):
                relation.attach(owner, child)
    return list(group.owners.values())


# =============================================================================
# ROW SPLITTING
# =============================================================================


def _split_columns(split_on: str | Sequence[str]) -> list[str]:
    if isinstance(split_on, str):
        return [s.strip() for s in split_on.split(",") if s.strip()]
    return list(split_on)


def split_points(columns: Sequence[str], split_on: str | Sequence[str]) -> list[int]:
    """Start index of every segment after the first.

    Each split column is searched right to left from the end of the
    previous (later) segment, never at index 0.

    Raises:
        ConfigurationError: A split column is not present where expected.
    """
    lowered = [c.lower() for c in columns]
    points: list[int] = []
    end = len(columns)
    for name in reversed(_split_columns(split_on)):
        target = name.lower()
        index = next((i for i in range(end - 1, 0, -1) if lowered[i] == target), None)
        if index is None:
            raise ConfigurationError(
                f"Split column {name!r} not found in result columns {list(columns)}"
            )
        points.append(index)
        end = index
    return list(reversed(points))


def split_row(
    columns: Sequence[str], row: Sequence[Any], split_on: str | Sequence[str]
) -> list[dict[str, Any] | None]:
    """Split one joined row into per-entity ``{column: value}`` segments.

    A segment whose values are all NULL (outer-join miss) becomes ``None``.
    """
    return _segments(columns, row, split_points(columns, split_on))


def _segments(
    columns: Sequence[str], row: Sequence[Any], points: Sequence[int]
) -> list[dict[str, Any] | None]:
    row = tuple(row)
    bounds = [0, *points, len(columns)]
    segments: list[dict[str, Any] | None] = []
    for start, stop in zip(bounds, bounds[1:], strict=False):
        values = row[start:stop]
        if all(v is None for v in values):
            segments.append(None)
        else:
            segments.append(dict(zip(columns[start:stop], values, strict=True)))
    return segments


class JoinMapper:
    """
    Hydrate joined rows into tuples of entities, one per mapped type.

    Default split columns are the primary keys of the 2nd..nth types, so
    the query must select each entity's key first in its segment.

    Example:
        mapper = JoinMapper([Question, Answer], registry)
        for question, answer in mapper.map(columns, rows):
            ...
    """

    def __init__(
        self,
        types: Sequence[type],
        registry: TypeCoercionRegistry,
        split_on: str | Sequence[str] | None = None,
    ):
        if len(types) < 2:
            raise ConfigurationError("JoinMapper needs at least two entity types")
        self.descriptors: list[EntityDescriptor] = [describe(t) for t in types]
        self.registry = registry
        if split_on is None:
            split_on = [d.primary_key for d in self.descriptors[1:]]
        self.split_on = _split_columns(split_on)
        if len(self.split_on) != len(types) - 1:
            raise ConfigurationError(
                f"{len(types)} types need {len(types) - 1} split columns, got {self.split_on}"
            )

    def map(self, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> list[tuple]:
        points = split_points(columns, self.split_on)
        mapped: list[tuple] = []
        for row in rows:
            segments = _segments(columns, row, points)
            mapped.append(
                tuple(
                    None if seg is None else self.registry.hydrate(desc, seg)
                    for desc, seg in zip(self.descriptors, segments, strict=True)
                )
            )
        return mapped


__all__ = [
    "Relation",
    "RowGroup",
    "flatten",
    "split_points",
    "split_row",
    "JoinMapper",
]
