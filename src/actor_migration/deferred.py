"""Two-phase temp-table write.

When a field's actor reference lives in a temp table keyed by the main
table's primary key, the reference cannot be written until the main row
exists. :meth:`ActorMigrationEngine.build_insert_values_with_temp_table`
therefore returns the main-row values together with a :class:`DeferredWrite`
that the caller completes once the key is known::

    values, deferred = engine.build_insert_values_with_temp_table(db, "rev_user", user)
    cursor = db.insert("revision", {**row, **values})
    deferred.complete(cursor.lastrowid, {"rev_timestamp": ts, "rev_page": page_id})

Callers must always call :meth:`DeferredWrite.complete`, even for stages
where it does nothing. Missing extra values are reported before anything
is written.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from actor_migration.errors import MissingExtraValueError, UsageError
from actor_migration.fields import TempTableSpec
from actor_migration.logging import get_logger

if TYPE_CHECKING:
    from actor_migration.database import Database

logger = get_logger(__name__)


class DeferredAction(str, Enum):
    """What :meth:`DeferredWrite.complete` does."""

    UPSERT = "upsert"        # write the actor id (and extras) into the temp table
    VALIDATE = "validate"    # temp table exists but is not written at this stage
    NONE = "none"            # nothing to do


@dataclass(frozen=True)
class DeferredWriteResult:
    """Outcome of :meth:`DeferredWrite.complete`."""

    performed: bool
    table: str | None = None
    row: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeferredWrite:
    """Pending temp-table write, completed with the main row's primary key."""

    key: str
    action: DeferredAction = DeferredAction.NONE
    temp_table: TempTableSpec | None = None
    actor_id: int | None = None
    db: Database | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.action is not DeferredAction.NONE and self.temp_table is None:
            raise UsageError(f"{self.action.value} deferred write needs a temp table")
        if self.action is DeferredAction.UPSERT and (self.actor_id is None or self.db is None):
            raise UsageError("upsert deferred write needs an actor id and a database handle")

    # -- Constructors ------------------------------------------------------

    @classmethod
    def noop(cls, key: str) -> DeferredWrite:
        return cls(key)

    @classmethod
    def validate_only(cls, key: str, temp_table: TempTableSpec) -> DeferredWrite:
        return cls(key, DeferredAction.VALIDATE, temp_table)

    @classmethod
    def upsert(
        cls, key: str, temp_table: TempTableSpec, actor_id: int, db: Database
    ) -> DeferredWrite:
        return cls(key, DeferredAction.UPSERT, temp_table, actor_id, db)

    # -- Introspection -----------------------------------------------------

    @property
    def pending(self) -> dict[str, Any]:
        """Temp-table columns already known before completion."""
        if self.action is DeferredAction.UPSERT:
            return {self.temp_table.actor_field: self.actor_id}
        return {}

    @property
    def required_extras(self) -> list[str]:
        """Main-table columns that must be supplied to :meth:`complete`."""
        if self.temp_table is None:
            return []
        return list(self.temp_table.extra.values())

    # -- Completion --------------------------------------------------------

    def complete(self, pk: Any, extras: Mapping[str, Any] | None = None) -> DeferredWriteResult:
        """Finish the write now that the main row's primary key is known.

        Args:
            pk: Primary key of the main-table row.
            extras: Values of the main-table columns copied into the temp
                table, keyed by main-table column name.

        Raises:
            MissingExtraValueError: A configured extra column is absent
                from ``extras``. Nothing is written.
            UsageError: ``pk`` is ``None`` on a write that needs it.
            StorageError: The upsert failed.
        """
        if self.action is DeferredAction.NONE:
            return DeferredWriteResult(performed=False)

        extras = extras or {}
        copied: dict[str, Any] = {}
        for temp_column, source_column in self.temp_table.extra.items():
            if source_column not in extras:
                raise MissingExtraValueError(self.key, source_column)
            copied[temp_column] = extras[source_column]

        if self.action is DeferredAction.VALIDATE:
            return DeferredWriteResult(performed=False, table=self.temp_table.table)

        if pk is None:
            raise UsageError(f"Deferred write for {self.key} needs the main row's primary key")

        row = {self.temp_table.pk: pk, **self.pending, **copied}
        self.db.upsert(self.temp_table.table, row, [self.temp_table.pk])
        logger.debug(
            "temp_table_upserted",
            field=self.key,
            table=self.temp_table.table,
            pk=pk,
            actor_id=self.actor_id,
        )
        return DeferredWriteResult(performed=True, table=self.temp_table.table, row=row)

    def __call__(self, pk: Any, extras: Mapping[str, Any] | None = None) -> DeferredWriteResult:
        return self.complete(pk, extras)


__all__ = [
    "DeferredAction",
    "DeferredWriteResult",
    "DeferredWrite",
]
