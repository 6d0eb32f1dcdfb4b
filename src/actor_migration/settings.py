"""Environment-driven configuration for the actor migration layer.

The migration stage is a deployment decision: operators move a wiki from
``write-old/read-old`` through the dual-write stages to ``write-new/read-new``
by changing configuration, not code.

Examples:
    >>> import os
    >>> os.environ["ACTOR_MIGRATION_STAGE"] = "write-both/read-new"
    >>> ActorMigrationSettings().migration_stage().label
    'write-both/read-new'

Environment variables (prefix ``ACTOR_MIGRATION_``):

    STAGE              Combined stage string; overrides WRITE_MODE/READ_MODE
    WRITE_MODE         old | new | both
    READ_MODE          old | new
    ALLOW_UNKNOWN      Accept field keys that are not configured
    DEFAULT_COMPONENT  Component named in deprecation messages
    LOG_LEVEL          structlog level, applied by apply_logging()
    JSON_LOGS          JSON output (unset: auto-detect from TTY)
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from actor_migration.logging import configure_logging
from actor_migration.stage import MigrationStage, ReadMode, WriteMode


class ActorMigrationSettings(BaseSettings):
    """Settings for building an engine.

    Fields
    ──────
    stage             : Combined stage string, e.g. ``write-both/read-old``
    write_mode        : Representation(s) written when ``stage`` is unset
    read_mode         : Representation read when ``stage`` is unset
    allow_unknown     : Whether unconfigured field keys fall back to defaults
    default_component : Component named in deprecation/removal messages
    log_level         : Structlog log level
    json_logs         : JSON log output (None → auto-detect)
    """

    model_config = SettingsConfigDict(
        env_prefix="ACTOR_MIGRATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Migration ────────────────────────────────────────────────
    stage: str | None = Field(default=None, description="Combined stage string")
    write_mode: WriteMode = WriteMode.BOTH
    read_mode: ReadMode = ReadMode.OLD
    allow_unknown: bool = True
    default_component: str = "core"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    def migration_stage(self) -> MigrationStage:
        """Return the validated stage.

        Raises:
            InvalidStageError: For an invalid combination.
        """
        if self.stage:
            return MigrationStage.parse(self.stage)
        return MigrationStage(self.write_mode, self.read_mode)

    def apply_logging(self, service: str = "actor-migration") -> None:
        """Configure structlog from ``log_level`` and ``json_logs``."""
        configure_logging(level=self.log_level, json_format=self.json_logs, service=service)


__all__ = ["ActorMigrationSettings"]
