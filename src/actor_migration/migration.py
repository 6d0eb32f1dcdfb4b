"""Concrete actor migration for the core schema.

``ActorMigration`` is the engine pre-loaded with the field table of the core
tables. Extensions that migrate their own tables build an
:class:`ActorMigrationEngine` with their own table instead.

Example:
    >>> migration = ActorMigration.from_settings(factory)
    >>> join = migration.build_join("rev_user")
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from actor_migration.engine import ActorMigrationEngine
from actor_migration.fields import FieldSpec, TempTableSpec
from actor_migration.protocols import ActorStoreFactory
from actor_migration.settings import ActorMigrationSettings
from actor_migration.stage import MigrationStage

# rev_user keeps its actor id in a temp table keyed by rev_id, so existing
# revision rows need not be rewritten to gain the new column.
REVISION_ACTOR_TEMP = TempTableSpec(
    table="revision_actor_temp",
    pk="revactor_rev",
    actor_field="revactor_actor",
    join_pk="rev_id",
    extra={
        "revactor_timestamp": "rev_timestamp",
        "revactor_page": "rev_page",
    },
)

FIELD_INFOS: Mapping[str, FieldSpec] = MappingProxyType(
    {
        "rev_user": FieldSpec(temp_table=REVISION_ACTOR_TEMP),
        "ar_user": FieldSpec(),
        "img_user": FieldSpec(),
        "oi_user": FieldSpec(),
        "fa_user": FieldSpec(),
        "rc_user": FieldSpec(),
        "log_user": FieldSpec(),
        "us_user": FieldSpec(),
        "ipb_by": FieldSpec(text_field="ipb_by_text", actor_field="ipb_by_actor"),
    }
)


class ActorMigration(ActorMigrationEngine):
    """Engine for the core schema's user-reference fields.

    Unknown keys are rejected: every core field is listed in
    :data:`FIELD_INFOS`.
    """

    def __init__(
        self,
        stage: MigrationStage | int | str,
        actor_store_factory: ActorStoreFactory,
        *,
        field_infos: Mapping[str, FieldSpec | Mapping[str, Any]] | None = None,
        default_component: str = "core",
    ) -> None:
        super().__init__(
            FIELD_INFOS if field_infos is None else field_infos,
            stage,
            actor_store_factory,
            allow_unknown=False,
            default_component=default_component,
        )

    @classmethod
    def from_settings(  # type: ignore[override]
        cls,
        actor_store_factory: ActorStoreFactory,
        settings: ActorMigrationSettings | None = None,
    ) -> ActorMigration:
        """Build the core migration with the stage read from the environment."""
        settings = settings or ActorMigrationSettings()
        return cls(
            settings.migration_stage(),
            actor_store_factory,
            default_component=settings.default_component,
        )


__all__ = [
    "FIELD_INFOS",
    "REVISION_ACTOR_TEMP",
    "ActorMigration",
]
