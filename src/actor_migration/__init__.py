"""Actor migration -- stage-aware SQL fragments for user-reference fields.

Manifesto:
    Moving a user-reference field from inline ``(user id, user name)``
    columns to a reference into the normalized ``actor`` table is done in
    place, on live tables, over several deploys. During that window every
    query touching the field must agree on which columns exist and which
    are authoritative. This package owns that decision.

    - **One switch:** The migration stage is configuration, not code
    - **Fragments, not queries:** Callers splice descriptors into their SQL
    - **Protocol-first:** Actor storage is a protocol; callers own connections

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Structured error hierarchy
        stage.py           WriteMode / ReadMode / MigrationStage + legacy flags
        identity.py        UserIdentity, sanitize_ip

    Layer 2 -- Configuration
        fields.py          FieldSpec / TempTableSpec / FieldConfigRegistry
        settings.py        ActorMigrationSettings (pydantic-settings)
        logging.py         structlog configuration

    Layer 3 -- Storage boundary
        protocols.py       Connection, ActorNormalization, ActorStoreFactory
        dialect.py         SQLite / PostgreSQL / MySQL dialects
        database.py        Database handle (connection + dialect + domain)

    Layer 4 -- Engine
        descriptors.py     JoinDescriptor / WhereDescriptor
        cache.py           JoinCache
        deferred.py        DeferredWrite (two-phase temp-table write)
        engine.py          ActorMigrationEngine
        migration.py       ActorMigration (core field table)

Tags:
    actor-migration, schema-migration, structlog, pydantic
"""

from actor_migration.database import Database, ListMode
from actor_migration.deferred import DeferredAction, DeferredWrite, DeferredWriteResult
from actor_migration.descriptors import (
    ALWAYS_FALSE,
    JoinCondition,
    JoinDescriptor,
    WhereDescriptor,
)
from actor_migration.dialect import (
    Dialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
)
from actor_migration.engine import ActorMigrationEngine
from actor_migration.errors import (
    ActorMigrationError,
    ConfigError,
    ErrorCategory,
    FieldDeprecationWarning,
    FieldRemovedError,
    InvalidStageError,
    InvalidUsersError,
    MissingExtraValueError,
    StorageError,
    TempTableMismatchError,
    UnknownFieldError,
    UsageError,
)
from actor_migration.fields import FieldConfigRegistry, FieldSpec, TempTableSpec
from actor_migration.identity import UserIdentity, sanitize_ip
from actor_migration.migration import ActorMigration
from actor_migration.protocols import ActorNormalization, ActorStoreFactory, Connection
from actor_migration.settings import ActorMigrationSettings
from actor_migration.stage import (
    SCHEMA_COMPAT_NEW,
    SCHEMA_COMPAT_OLD,
    SCHEMA_COMPAT_READ_NEW,
    SCHEMA_COMPAT_READ_OLD,
    SCHEMA_COMPAT_WRITE_BOTH,
    SCHEMA_COMPAT_WRITE_NEW,
    SCHEMA_COMPAT_WRITE_OLD,
    MigrationStage,
    ReadMode,
    WriteMode,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ActorMigrationEngine",
    "ActorMigration",
    # Stage
    "MigrationStage",
    "WriteMode",
    "ReadMode",
    "SCHEMA_COMPAT_WRITE_OLD",
    "SCHEMA_COMPAT_READ_OLD",
    "SCHEMA_COMPAT_WRITE_NEW",
    "SCHEMA_COMPAT_READ_NEW",
    "SCHEMA_COMPAT_WRITE_BOTH",
    "SCHEMA_COMPAT_OLD",
    "SCHEMA_COMPAT_NEW",
    # Fields
    "FieldConfigRegistry",
    "FieldSpec",
    "TempTableSpec",
    # Identity
    "UserIdentity",
    "sanitize_ip",
    # Storage
    "Database",
    "ListMode",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "get_dialect",
    "Connection",
    "ActorNormalization",
    "ActorStoreFactory",
    # Descriptors
    "ALWAYS_FALSE",
    "JoinCondition",
    "JoinDescriptor",
    "WhereDescriptor",
    "DeferredAction",
    "DeferredWrite",
    "DeferredWriteResult",
    # Settings
    "ActorMigrationSettings",
    # Errors
    "ActorMigrationError",
    "ConfigError",
    "ErrorCategory",
    "FieldDeprecationWarning",
    "FieldRemovedError",
    "InvalidStageError",
    "InvalidUsersError",
    "MissingExtraValueError",
    "StorageError",
    "TempTableMismatchError",
    "UnknownFieldError",
    "UsageError",
]
