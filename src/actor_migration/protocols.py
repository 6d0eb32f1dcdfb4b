"""
Protocols for the collaborators the engine consumes.

The engine never opens connections and never owns the ``actor`` table.
Storage arrives through a caller-owned handle built on :class:`Connection`;
actor ids come from an :class:`ActorNormalization` service scoped to the
storage domain of that handle.

Architecture:
    ::

        ActorMigrationEngine
              │  get_actor_normalization(db.domain_id)
              ▼
        ActorStoreFactory ──► ActorNormalization
                                ├── find_actor_id(user, db)    → int | None
                                └── acquire_actor_id(user, db) → int

        Database(conn: Connection, dialect, domain_id)

Guardrails:
    ❌ DON'T: Resolve actors against the user's own domain
    ✅ DO: Resolve against the domain of the handle being written to

    ❌ DON'T: Implement acquire_actor_id as select-then-insert without a
       unique constraint
    ✅ DO: Insert-or-get, letting the storage layer's unique key settle races

Tags:
    protocol, connection, actor-store, collaborator
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from actor_migration.database import Database
    from actor_migration.identity import UserIdentity


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous DB-API style connection.

    ``sqlite3.Connection`` satisfies it natively; other drivers are wrapped.
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


@runtime_checkable
class ActorNormalization(Protocol):
    """Maps a user identity to a stable integer actor id within one domain."""

    def find_actor_id(self, user: UserIdentity, db: Database) -> int | None:
        """Return the existing actor id for ``user``, or ``None``. Read-only."""
        ...

    def acquire_actor_id(self, user: UserIdentity, db: Database) -> int:
        """Return the actor id for ``user``, creating the actor row if needed.

        Must be idempotent and converge to a single id when called
        concurrently for the same identity.
        """
        ...


@runtime_checkable
class ActorStoreFactory(Protocol):
    """Hands out the :class:`ActorNormalization` for a storage domain."""

    def get_actor_normalization(self, domain_id: str) -> ActorNormalization:
        ...


__all__ = [
    "Connection",
    "ActorNormalization",
    "ActorStoreFactory",
]
