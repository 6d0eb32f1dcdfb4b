"""
Shared pytest fixtures for actor-migration tests.

This module provides:
- An in-memory SQLite database with legacy tables, the ``actor`` table and
  temp tables
- A SQLite-backed actor store with insert-or-get semantics
- Engine factories for every migration stage

Usage:
    def test_something(make_engine, db, alice):
        engine = make_engine("write-both/read-new")
        engine.build_insert_values(db, "rev_user", alice)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from typing import Any

import pytest
import structlog

from actor_migration import (
    ActorMigrationEngine,
    Database,
    MigrationStage,
    SQLiteDialect,
    UserIdentity,
)

SCHEMA = """
CREATE TABLE actor (
    actor_id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor_user INTEGER UNIQUE,
    actor_name TEXT NOT NULL UNIQUE
);

CREATE TABLE revision (
    rev_id INTEGER PRIMARY KEY AUTOINCREMENT,
    rev_page INTEGER NOT NULL DEFAULT 0,
    rev_timestamp TEXT NOT NULL DEFAULT '',
    rev_user INTEGER NOT NULL DEFAULT 0,
    rev_user_text TEXT NOT NULL DEFAULT '',
    rev_actor INTEGER
);

CREATE TABLE revision_actor_temp (
    revactor_rev INTEGER PRIMARY KEY,
    revactor_actor INTEGER NOT NULL,
    revactor_timestamp TEXT NOT NULL,
    revactor_page INTEGER NOT NULL
);

CREATE TABLE archive (
    ar_id INTEGER PRIMARY KEY AUTOINCREMENT,
    ar_timestamp TEXT NOT NULL DEFAULT '',
    ar_user INTEGER NOT NULL DEFAULT 0,
    ar_user_text TEXT NOT NULL DEFAULT '',
    ar_actor INTEGER
);

CREATE TABLE archive_actor_temp (
    arat_id INTEGER PRIMARY KEY,
    arat_actor INTEGER NOT NULL,
    ar_timestamp TEXT NOT NULL
);

CREATE TABLE ipblocks (
    ipb_id INTEGER PRIMARY KEY AUTOINCREMENT,
    ipb_address TEXT NOT NULL DEFAULT '',
    ipb_by INTEGER NOT NULL DEFAULT 0,
    ipb_by_text TEXT NOT NULL DEFAULT '',
    ipb_by_actor INTEGER
);
"""

# Field table used by most engine tests. rev_user is deliberately plain here;
# the core table in actor_migration.migration routes it through a temp table.
FIELD_INFOS: dict[str, dict[str, Any]] = {
    "rev_user": {},
    "log_user": {},
    "ipb_by": {"textField": "ipb_by_text", "actorField": "ipb_by_actor"},
    "ar_user": {
        "tempTable": {
            "table": "archive_actor_temp",
            "pk": "arat_id",
            "actorField": "arat_actor",
            "joinPk": "ar_id",
            "extra": {"ar_timestamp": "ar_timestamp"},
        }
    },
    "old_user": {"deprecatedVersion": "1.31"},
    "gone_user": {"removedVersion": "1.34"},
    "legacy_user": {"formerTempTableVersion": "1.33"},
}

VALID_STAGES = [
    "write-old/read-old",
    "write-both/read-old",
    "write-both/read-new",
    "write-new/read-new",
]


# =============================================================================
# Actor store
# =============================================================================


class SQLiteActorStore:
    """Insert-or-get actor store over the ``actor`` table.

    Concurrent acquisition of the same name converges on one row through
    the UNIQUE constraint on ``actor_name``.
    """

    def __init__(self, domain_id: str) -> None:
        self.domain_id = domain_id
        self.lookups: list[str] = []

    def find_actor_id(self, user: UserIdentity, db: Database) -> int | None:
        self.lookups.append(user.name)
        row = db.query_one("SELECT actor_id FROM actor WHERE actor_name = ?", (user.name,))
        return row["actor_id"] if row else None

    def acquire_actor_id(self, user: UserIdentity, db: Database) -> int:
        actor_id = self.find_actor_id(user, db)
        if actor_id is not None:
            return actor_id
        db.execute(
            "INSERT OR IGNORE INTO actor (actor_user, actor_name) VALUES (?, ?)",
            (user.id or None, user.name),
        )
        actor_id = self.find_actor_id(user, db)
        assert actor_id is not None
        return actor_id


class SQLiteActorStoreFactory:
    """Hands out one :class:`SQLiteActorStore` per domain and records requests."""

    def __init__(self) -> None:
        self.stores: dict[str, SQLiteActorStore] = {}
        self.requested: list[str] = []

    def get_actor_normalization(self, domain_id: str) -> SQLiteActorStore:
        self.requested.append(domain_id)
        return self.stores.setdefault(domain_id, SQLiteActorStore(domain_id))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory SQLite connection with the test schema."""
    c = sqlite3.connect(":memory:")
    c.executescript(SCHEMA)
    c.commit()
    yield c
    c.close()


@pytest.fixture
def db(conn: sqlite3.Connection) -> Database:
    return Database(conn, SQLiteDialect())


@pytest.fixture
def actor_store_factory() -> SQLiteActorStoreFactory:
    return SQLiteActorStoreFactory()


@pytest.fixture
def make_engine(
    actor_store_factory: SQLiteActorStoreFactory,
) -> Callable[..., ActorMigrationEngine]:
    """Factory building an engine over :data:`FIELD_INFOS` for a stage."""

    def _make(
        stage: MigrationStage | int | str,
        field_infos: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ActorMigrationEngine:
        return ActorMigrationEngine(
            FIELD_INFOS if field_infos is None else field_infos,
            stage,
            actor_store_factory,
            **kwargs,
        )

    return _make


@pytest.fixture
def alice() -> UserIdentity:
    return UserIdentity(7, "Alice")


@pytest.fixture
def bob() -> UserIdentity:
    return UserIdentity(8, "Bob")


@pytest.fixture
def anon() -> UserIdentity:
    return UserIdentity(0, "127.0.0.1")


@pytest.fixture
def row_count(db: Database) -> Callable[[str], int]:
    """Return a function counting the rows of a table."""

    def _count(table: str) -> int:
        row = db.query_one(f"SELECT COUNT(*) AS n FROM {table}")
        return row["n"] if row else 0

    return _count


@pytest.fixture(params=VALID_STAGES)
def any_stage(request: pytest.FixtureRequest) -> str:
    """Each valid migration stage in turn."""
    return request.param
