"""SQL dialect abstraction for the fragments the engine and its storage handle emit.

The engine itself only produces backend-neutral fragments (column
references, ``JOIN ... ON`` conditions). Literal quoting for ``IN`` lists
and the temp-table upsert statement differ per backend; those are the only
places a dialect is consulted.

Examples:
    >>> from actor_migration.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.quote("O'Brien")
    "'O''Brien'"
    >>> d.upsert("revision_actor_temp", ["revactor_rev", "revactor_actor"], ["revactor_rev"])
    'INSERT INTO revision_actor_temp (revactor_rev, revactor_actor) VALUES (?, ?) ON CONFLICT (revactor_rev) DO UPDATE SET revactor_actor = excluded.revactor_actor'

Tags:
    dialect, sql, portability, quoting, upsert
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment (string) valid for the target
    database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def quote(self, value: Any) -> str:
        """Render ``value`` as a SQL literal.

        ``None`` becomes ``NULL``; integers and floats are emitted bare;
        strings are single-quoted with embedded quotes doubled.
        """
        ...

    def insert(self, table: str, columns: list[str]) -> str:
        """Plain ``INSERT`` with placeholders."""
        ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """``INSERT … ON CONFLICT (keys) DO UPDATE SET …`` (or equivalent).

        Non-key columns are overwritten on conflict. With no non-key
        columns the statement degrades to insert-or-ignore.
        """
        ...


def _quote_standard(value: Any, *, true: str, false: str, escape_backslash: bool = False) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return true if value else false
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        text = value.replace("\\", "\\\\") if escape_backslash else value
        return "'" + text.replace("'", "''") + "'"
    raise TypeError(f"Cannot render {type(value).__name__} as a SQL literal")


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``ON CONFLICT`` upserts."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def quote(self, value: Any) -> str:
        return _quote_standard(value, true="1", false="0")

    def insert(self, table: str, columns: list[str]) -> str:
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols:
            return f"{self.insert(table, columns)} ON CONFLICT ({', '.join(key_columns)}) DO NOTHING"
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"{self.insert(table, columns)} "
            f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {updates}"
        )


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders (psycopg), ``EXCLUDED`` upserts."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote(self, value: Any) -> str:
        return _quote_standard(value, true="TRUE", false="FALSE")

    def insert(self, table: str, columns: list[str]) -> str:
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        update_cols = [c for c in columns if c not in key_columns]
        if not update_cols:
            return f"{self.insert(table, columns)} ON CONFLICT ({', '.join(key_columns)}) DO NOTHING"
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_cols)
        return (
            f"{self.insert(table, columns)} "
            f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {updates}"
        )


class MySQLDialect:
    """MySQL dialect: ``%s`` placeholders, ``ON DUPLICATE KEY UPDATE``.

    The conflict target is whichever unique key fires; ``key_columns`` only
    decides which columns are left untouched.
    """

    @property
    def name(self) -> str:
        return "mysql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote(self, value: Any) -> str:
        return _quote_standard(value, true="TRUE", false="FALSE", escape_backslash=True)

    def insert(self, table: str, columns: list[str]) -> str:
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        update_cols = [c for c in columns if c not in key_columns] or key_columns[:1]
        updates = ", ".join(f"{c} = VALUES({c})" for c in update_cols)
        return f"{self.insert(table, columns)} ON DUPLICATE KEY UPDATE {updates}"


# Dialects are stateless
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "mysql": MySQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (third-party drivers, test doubles)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
