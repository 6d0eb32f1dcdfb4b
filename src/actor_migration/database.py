"""Caller-owned storage handle.

:class:`Database` pairs a :class:`~actor_migration.protocols.Connection`
with a :class:`~actor_migration.dialect.Dialect` and the storage domain the
connection points at. The engine receives one on every write or predicate
operation; it uses the handle to scope actor resolution, to quote literals
for ``IN`` lists, and to run the deferred temp-table upsert. It never
commits: transactions belong to the caller.

Usage:
    >>> import sqlite3
    >>> db = Database(sqlite3.connect(":memory:"), domain_id="enwiki")
    >>> db.make_list({"rev_user": [1, 2]})
    'rev_user IN (1, 2)'
    >>> db.make_list(["a = 1", "b = 2"], ListMode.OR)
    '(a = 1) OR (b = 2)'

Tags:
    database, storage-handle, sql, portability
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from actor_migration.dialect import Dialect, SQLiteDialect
from actor_migration.errors import StorageError, UsageError
from actor_migration.logging import get_logger
from actor_migration.protocols import Connection

logger = get_logger(__name__)


class ListMode(str, Enum):
    """How :meth:`Database.make_list` joins its items."""

    AND = "AND"
    OR = "OR"


def _is_value_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


class Database:
    """Connection + dialect + domain, as handed to engine operations.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect. Defaults to :class:`SQLiteDialect`.
        domain_id: Storage domain (wiki id) the connection points at.
            Actor ids are resolved within this domain.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        domain_id: str = "local",
    ) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.domain_id = domain_id

    def __repr__(self) -> str:
        return f"Database(dialect={self.dialect.name!r}, domain_id={self.domain_id!r})"

    # -- Fragment helpers --------------------------------------------------

    def quote(self, value: Any) -> str:
        return self.dialect.quote(value)

    def make_list(
        self,
        conds: Mapping[str, Any] | Sequence[str],
        mode: ListMode = ListMode.AND,
    ) -> str:
        """Combine conditions into one SQL condition string.

        A mapping turns each ``column: value`` pair into ``column = value``,
        or ``column IN (...)`` when the value is a collection with more than
        one distinct element. A sequence is taken as ready-made condition
        strings. Items are joined with ``mode``; each is parenthesised when
        there is more than one.

        Raises:
            UsageError: If a collection value is empty or nothing is given.
        """
        if isinstance(conds, Mapping):
            parts = [self._column_condition(column, value) for column, value in conds.items()]
        elif isinstance(conds, str):
            parts = [conds]
        else:
            parts = list(conds)
        if not parts:
            raise UsageError("make_list() needs at least one condition")
        if len(parts) == 1:
            return parts[0]
        return f" {mode.value} ".join(f"({part})" for part in parts)

    def _column_condition(self, column: str, value: Any) -> str:
        if _is_value_list(value):
            values = list(dict.fromkeys(value))
            if not values:
                raise UsageError(f"Empty value list for {column}")
            if len(values) == 1:
                return self._column_condition(column, values[0])
            return f"{column} IN ({', '.join(self.quote(v) for v in values)})"
        if value is None:
            return f"{column} IS NULL"
        return f"{column} = {self.quote(value)}"

    # -- Execution ---------------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def insert(self, table: str, row: Mapping[str, Any]) -> Any:
        """Insert a single row; returns the cursor (``lastrowid`` for new keys)."""
        columns = list(row)
        return self.conn.execute(self.dialect.insert(table, columns), tuple(row.values()))

    def upsert(self, table: str, row: Mapping[str, Any], key_columns: list[str]) -> None:
        """Insert ``row``, or overwrite its non-key columns if the key exists.

        Raises:
            StorageError: If the driver rejects the statement.
        """
        columns = list(row)
        sql = self.dialect.upsert(table, columns, key_columns)
        try:
            self.conn.execute(sql, tuple(row.values()))
        except Exception as exc:
            logger.error("upsert_failed", table=table, key_columns=key_columns, error=str(exc))
            raise StorageError(f"Upsert into {table} failed", cause=exc).with_context(
                table=table
            ) from exc

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()


__all__ = [
    "ListMode",
    "Database",
]
