"""
Actor migration engine.

Mediates every read and write of a user-reference field while a table
moves from inline ``(user id, user name)`` columns to a reference into the
normalized ``actor`` table. For the configured migration stage it decides
which physical columns to read and write, and builds the SQL fragments
(SELECT fields and joins, WHERE conditions, INSERT/UPDATE value sets) that
are correct for that stage.

Manifesto:
    Migrating a large table in place means both representations coexist for
    months. Callers must not branch on the stage themselves; they ask the
    engine for fragments and splice them into their own queries.

    - **Fragments, not queries:** The engine never executes reads
    - **Stage-driven:** One code path per (write, read) combination
    - **Fail fast:** Invalid stages, unknown or removed fields and wrong
      write paths raise before any SQL runs
    - **Namespaced aliases:** ``temp_{key}`` / ``actor_{key}`` never collide

Architecture:
    ::

        caller (revision store, watchlist store, recent changes, ...)
              │
              ▼
        ActorMigrationEngine ─── check_deprecation(key) ──► FieldConfigRegistry
              │
              ├── build_join(key)                          → JoinDescriptor (cached)
              ├── build_insert_values(db, key, user)       → {column: value}
              ├── build_insert_values_with_temp_table(...) → ({column: value}, DeferredWrite)
              └── build_where(db, key, users)              → WhereDescriptor
                         │
                         ▼
              ActorStoreFactory.get_actor_normalization(db.domain_id)
                  find_actor_id / acquire_actor_id

Examples:
    >>> engine = ActorMigrationEngine(
    ...     {"rev_user": {}}, MigrationStage(WriteMode.BOTH, ReadMode.NEW), factory
    ... )
    >>> engine.build_join("rev_user").fields["rev_user"]
    'actor_rev_user.actor_user'

Tags:
    actor-migration, schema-migration, sql-fragments, dual-write
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from actor_migration.cache import JoinCache
from actor_migration.database import Database, ListMode
from actor_migration.deferred import DeferredWrite
from actor_migration.descriptors import (
    ALWAYS_FALSE,
    JoinCondition,
    JoinDescriptor,
    WhereDescriptor,
)
from actor_migration.errors import InvalidUsersError, TempTableMismatchError
from actor_migration.fields import (
    DEFAULT_COMPONENT,
    FieldConfigRegistry,
    FieldSpec,
    TempTableSpec,
)
from actor_migration.identity import UserIdentity, sanitize_ip
from actor_migration.logging import get_logger
from actor_migration.protocols import ActorNormalization, ActorStoreFactory
from actor_migration.settings import ActorMigrationSettings
from actor_migration.stage import MigrationStage

logger = get_logger(__name__)

ACTOR_TABLE = "actor"


class ActorMigrationEngine:
    """Builds stage-correct SQL fragments for migrated user-reference fields.

    Parameters:
        field_infos: Field key → :class:`FieldSpec` (or raw mapping).
        stage: :class:`MigrationStage`, legacy ``SCHEMA_COMPAT_*`` bitmask
            or stage string.
        actor_store_factory: Source of the domain-scoped
            :class:`ActorNormalization`.
        allow_unknown: Whether keys missing from ``field_infos`` fall back
            to default column names.
        default_component: Component named in deprecation messages.

    Raises:
        InvalidStageError: The stage combination is invalid.
        ConfigError: A field spec is malformed.
    """

    def __init__(
        self,
        field_infos: Mapping[str, FieldSpec | Mapping[str, Any]] | None,
        stage: MigrationStage | int | str,
        actor_store_factory: ActorStoreFactory,
        *,
        allow_unknown: bool = True,
        default_component: str = DEFAULT_COMPONENT,
    ) -> None:
        self._stage = MigrationStage.coerce(stage)
        self._registry = FieldConfigRegistry(
            field_infos,
            allow_unknown=allow_unknown,
            default_component=default_component,
            owner=self.instance_name,
        )
        self._actor_store_factory = actor_store_factory
        self._join_cache: JoinCache[JoinDescriptor] = JoinCache()
        logger.debug(
            "engine_configured",
            owner=self.instance_name,
            stage=self._stage.label,
            fields=len(self._registry),
            allow_unknown=allow_unknown,
        )

    @classmethod
    def from_settings(
        cls,
        field_infos: Mapping[str, FieldSpec | Mapping[str, Any]] | None,
        actor_store_factory: ActorStoreFactory,
        settings: ActorMigrationSettings | None = None,
    ) -> ActorMigrationEngine:
        """Build an engine whose stage and options come from the environment."""
        settings = settings or ActorMigrationSettings()
        return cls(
            field_infos,
            settings.migration_stage(),
            actor_store_factory,
            allow_unknown=settings.allow_unknown,
            default_component=settings.default_component,
        )

    # -- Properties --------------------------------------------------------

    @property
    def instance_name(self) -> str:
        """Name used in error and deprecation messages."""
        return type(self).__name__

    @property
    def stage(self) -> MigrationStage:
        return self._stage

    @property
    def registry(self) -> FieldConfigRegistry:
        return self._registry

    def _normalization(self, db: Database) -> ActorNormalization:
        # Scoped to the handle's domain: the handle may point at a foreign wiki
        return self._actor_store_factory.get_actor_normalization(db.domain_id)

    # -- Anonymity tests ---------------------------------------------------

    def is_anon(self, field: str) -> str:
        """SQL condition testing whether a user field is anonymous."""
        return f"{field} IS NULL" if self._stage.reads_new else f"{field} = 0"

    def is_not_anon(self, field: str) -> str:
        """SQL condition testing whether a user field is registered."""
        return f"{field} IS NOT NULL" if self._stage.reads_new else f"{field} != 0"

    # -- Read path ---------------------------------------------------------

    def _actor_source(
        self, key: str, actor_field: str, temp_table: TempTableSpec | None
    ) -> tuple[dict[str, str], dict[str, JoinCondition], str]:
        """Tables, joins and the column expression supplying the actor id."""
        if temp_table is None:
            return {}, {}, actor_field
        alias = f"temp_{key}"
        return (
            {alias: temp_table.table},
            {alias: JoinCondition("JOIN", f"{alias}.{temp_table.pk} = {temp_table.join_pk}")},
            f"{alias}.{temp_table.actor_field}",
        )

    def _compute_join(self, key: str) -> JoinDescriptor:
        text_field, actor_field = self._registry.field_names(key)

        if self._stage.reads_old:
            descriptor = JoinDescriptor(
                fields={key: key, text_field: text_field, actor_field: "NULL"},
            )
        else:
            tables, joins, join_field = self._actor_source(
                key, actor_field, self._registry.temp_table(key)
            )
            alias = f"actor_{key}"
            tables[alias] = ACTOR_TABLE
            joins[alias] = JoinCondition("JOIN", f"{alias}.actor_id = {join_field}")
            descriptor = JoinDescriptor(
                tables=tables,
                fields={
                    key: f"{alias}.actor_user",
                    text_field: f"{alias}.actor_name",
                    actor_field: join_field,
                },
                joins=joins,
            )
        logger.debug(
            "join_built", field=key, stage=self._stage.label, tables=list(descriptor.tables)
        )
        return descriptor

    def build_join(self, key: str) -> JoinDescriptor:
        """SELECT fields and joins for reading ``key``.

        The ``fields`` mapping always exposes the legacy id column name, the
        legacy text column name and the actor column name as output names,
        whatever the stage. Results are memoized per key.

        Raises:
            UnknownFieldError: ``key`` unknown and unknown keys disallowed.
            FieldRemovedError: ``key`` was removed.
        """
        self._registry.check_deprecation(key)
        return self._join_cache.get_or_compute(key, lambda: self._compute_join(key))

    # -- Write path --------------------------------------------------------

    def _legacy_values(self, key: str, text_field: str, user: UserIdentity) -> dict[str, Any]:
        if not self._stage.writes_old:
            return {}
        return {key: user.id, text_field: user.name}

    def _acquire_actor_id(self, db: Database, key: str, user: UserIdentity) -> int:
        actor_id = self._normalization(db).acquire_actor_id(user, db)
        logger.debug(
            "actor_id_acquired", field=key, domain=db.domain_id, user=user.name, actor_id=actor_id
        )
        return actor_id

    def build_insert_values(self, db: Database, key: str, user: UserIdentity) -> dict[str, Any]:
        """Column values to merge into an INSERT or UPDATE of the owning row.

        May allocate an actor row as a side effect when writing the new
        representation.

        Raises:
            TempTableMismatchError: ``key`` uses a temp table; use
                :meth:`build_insert_values_with_temp_table` instead.
        """
        spec = self._registry.check_deprecation(key)
        if spec.temp_table is not None:
            raise TempTableMismatchError(key, expected="build_insert_values_with_temp_table")

        text_field, actor_field = self._registry.field_names(key)
        values = self._legacy_values(key, text_field, user)
        if self._stage.writes_new:
            values[actor_field] = self._acquire_actor_id(db, key, user)
        return values

    def build_insert_values_with_temp_table(
        self, db: Database, key: str, user: UserIdentity
    ) -> tuple[dict[str, Any], DeferredWrite]:
        """Main-row values plus the deferred temp-table write.

        When the new representation is written and ``key`` has a temp
        table, the actor id goes to the temp table via the returned
        :class:`DeferredWrite` rather than onto the main row. Fields that
        formerly used a temp table are still accepted, with a deprecation
        signal.

        Raises:
            TempTableMismatchError: ``key`` has no temp table and never had
                one; use :meth:`build_insert_values` instead.
        """
        spec = self._registry.check_deprecation(key)
        temp_table = spec.temp_table
        if spec.former_temp_table_version is not None:
            self._registry.warn_deprecated(
                f"build_insert_values_with_temp_table for {key}",
                version=spec.former_temp_table_version,
                component=self._registry.component_for(spec),
                key=key,
            )
        elif temp_table is None:
            raise TempTableMismatchError(key, expected="build_insert_values")

        text_field, actor_field = self._registry.field_names(key)
        values = self._legacy_values(key, text_field, user)

        if self._stage.writes_new:
            actor_id = self._acquire_actor_id(db, key, user)
            if temp_table is not None:
                return values, DeferredWrite.upsert(key, temp_table, actor_id, db)
            values[actor_field] = actor_id
            return values, DeferredWrite.noop(key)
        if temp_table is not None:
            return values, DeferredWrite.validate_only(key, temp_table)
        return values, DeferredWrite.noop(key)

    # -- Predicate ---------------------------------------------------------

    def _normalize_users(self, users: Any) -> list[UserIdentity]:
        if users is None or users is False:
            return []
        if isinstance(users, UserIdentity):
            return [users]
        if isinstance(users, (str, bytes, Mapping)) or not isinstance(users, Iterable):
            raise InvalidUsersError(users)
        result = list(users)
        for user in result:
            if not isinstance(user, UserIdentity):
                raise InvalidUsersError(user)
        return result

    def build_where(
        self,
        db: Database,
        key: str,
        users: UserIdentity | Iterable[UserIdentity] | None,
        include_id_match: bool = True,
    ) -> WhereDescriptor:
        """WHERE condition matching rows whose ``key`` references any of ``users``.

        Args:
            db: Storage handle, used for actor lookup and literal quoting.
            key: Field key.
            users: One identity, a collection of them, or ``None``/empty
                (matches nothing).
            include_id_match: Match registered users by legacy id. Pass
                ``False`` for fields indexed on (name, timestamp) but not
                (id, timestamp); they are then matched by name.

        Raises:
            InvalidUsersError: ``users`` is of an unsupported type.
        """
        self._registry.check_deprecation(key)
        identities = self._normalize_users(users)
        text_field, actor_field = self._registry.field_names(key)

        tables: dict[str, str] = {}
        joins: dict[str, JoinCondition] = {}
        conds: dict[str, str] = {}

        if self._stage.reads_new:
            normalization = self._normalization(db) if identities else None
            actors = []
            for user in identities:
                actor_id = normalization.find_actor_id(user, db)
                if actor_id:
                    actors.append(actor_id)
            if actors:
                tables, joins, join_field = self._actor_source(
                    key, actor_field, self._registry.temp_table(key)
                )
                conds["actor"] = db.make_list({join_field: actors})
        else:
            ids = []
            names = []
            for user in identities:
                if include_id_match and user.id:
                    ids.append(user.id)
                else:
                    names.append(sanitize_ip(user.name))
            if ids:
                conds["userid"] = db.make_list({key: ids})
            if names:
                conds["username"] = db.make_list({text_field: names})

        combined = db.make_list(list(conds.values()), ListMode.OR) if conds else ALWAYS_FALSE
        logger.debug(
            "where_built",
            field=key,
            stage=self._stage.label,
            users=len(identities),
            alternatives=list(conds),
        )
        return WhereDescriptor(tables=tables, conds=combined, orconds=conds, joins=joins)


__all__ = [
    "ACTOR_TABLE",
    "ActorMigrationEngine",
]
