"""Fragment descriptors returned by the engine.

Descriptors are plain values: table aliases to add to ``FROM``, output
column expressions, join conditions and (for predicates) condition
strings. Every alias is namespaced by field key, so descriptors for
different fields can be merged into one query without collisions.

The mappings are read-only views; join descriptors are shared through the
engine's cache and must not be mutated by callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NamedTuple

ALWAYS_FALSE = "1=0"


class JoinCondition(NamedTuple):
    """``(join_type, on)``, e.g. ``("JOIN", "actor_rev_user.actor_id = rev_actor")``."""

    join_type: str
    on: str


def _freeze(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


def _render_joins(tables: Mapping[str, str], joins: Mapping[str, JoinCondition]) -> str:
    parts = []
    for alias, table in tables.items():
        condition = joins.get(alias)
        if condition is None:
            parts.append(f", {table} {alias}")
        else:
            parts.append(f"{condition.join_type} {table} {alias} ON {condition.on}")
    return " ".join(parts)


@dataclass(frozen=True)
class JoinDescriptor:
    """SELECT fields and joins for reading one user-reference field.

    Attributes:
        tables: alias → table name, to add to the query's tables
        fields: output name → SQL expression. Keys are the legacy id
            column, the legacy text column and the actor column.
        joins: alias → :class:`JoinCondition`
    """

    tables: Mapping[str, str] = field(default_factory=dict)
    fields: Mapping[str, str] = field(default_factory=dict)
    joins: Mapping[str, JoinCondition] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", _freeze(self.tables))
        object.__setattr__(self, "fields", _freeze(self.fields))
        object.__setattr__(self, "joins", _freeze(self.joins))

    def merge(self, other: JoinDescriptor) -> JoinDescriptor:
        """Combine with the descriptor of another field."""
        return JoinDescriptor(
            tables={**self.tables, **other.tables},
            fields={**self.fields, **other.fields},
            joins={**self.joins, **other.joins},
        )

    def __add__(self, other: JoinDescriptor) -> JoinDescriptor:
        return self.merge(other)

    def render_fields(self) -> str:
        """``expr AS name`` list for a SELECT clause."""
        return ", ".join(
            name if expr == name else f"{expr} AS {name}" for name, expr in self.fields.items()
        )

    def render_joins(self) -> str:
        """JOIN clauses to append after the main table."""
        return _render_joins(self.tables, self.joins)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": dict(self.tables),
            "fields": dict(self.fields),
            "joins": {alias: list(cond) for alias, cond in self.joins.items()},
        }


@dataclass(frozen=True)
class WhereDescriptor:
    """WHERE condition matching rows that reference any of a set of users.

    Attributes:
        tables: alias → table name, needed by the condition
        conds: the alternatives OR'd together, or ``"1=0"`` when nothing
            can match
        orconds: the individual alternatives, keyed ``"actor"``,
            ``"userid"`` or ``"username"``, for callers that would rather
            issue one query per alternative (e.g. a UNION)
        joins: alias → :class:`JoinCondition`
    """

    tables: Mapping[str, str] = field(default_factory=dict)
    conds: str = ALWAYS_FALSE
    orconds: Mapping[str, str] = field(default_factory=dict)
    joins: Mapping[str, JoinCondition] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", _freeze(self.tables))
        object.__setattr__(self, "orconds", _freeze(self.orconds))
        object.__setattr__(self, "joins", _freeze(self.joins))

    @property
    def matches_nothing(self) -> bool:
        return not self.orconds

    def render_joins(self) -> str:
        return _render_joins(self.tables, self.joins)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": dict(self.tables),
            "conds": self.conds,
            "orconds": dict(self.orconds),
            "joins": {alias: list(cond) for alias, cond in self.joins.items()},
        }


__all__ = [
    "ALWAYS_FALSE",
    "JoinCondition",
    "JoinDescriptor",
    "WhereDescriptor",
]
