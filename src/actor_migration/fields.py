"""
Field configuration registry.

Holds, per logical field key (``"rev_user"``, ``"ar_user"``, ...), the
metadata describing how that field's legacy columns are named, whether an
intermediate temp table links the owning table to the actor table, and any
deprecation or removal markers.

Manifesto:
    Field metadata is supplied once, validated once, and never changes for
    the lifetime of an engine. Raw mappings from configuration files are
    normalized through pydantic models so a typo (``tmpTable``) fails at
    construction instead of silently reading the wrong columns.

    - **Immutable:** Specs are frozen models
    - **Explicit lookup:** Known / UnknownAllowed / UnknownRejected
    - **Loud removal:** Removed fields raise on every operation
    - **Soft deprecation:** Deprecated fields warn, then proceed

Architecture:
    ::

        FieldConfigRegistry
        ├── lookup(key)            → Known | UnknownAllowed | UnknownRejected
        ├── resolve(key)           → FieldSpec (raises UnknownFieldError)
        ├── field_names(key)       → (text_field, actor_field)
        ├── temp_table(key)        → TempTableSpec | None
        └── check_deprecation(key) → FieldSpec (raises FieldRemovedError)

Examples:
    >>> registry = FieldConfigRegistry({
    ...     "rev_user": {
    ...         "tempTable": {
    ...             "table": "revision_actor_temp",
    ...             "pk": "revactor_rev",
    ...             "actorField": "revactor_actor",
    ...             "joinPk": "rev_id",
    ...             "extra": {"revactor_timestamp": "rev_timestamp"},
    ...         }
    ...     },
    ... })
    >>> registry.field_names("rev_user")
    ('rev_user_text', 'rev_actor')

Tags:
    configuration, registry, deprecation, pydantic, actor-migration
"""

from __future__ import annotations

import warnings
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from actor_migration.errors import (
    ConfigError,
    FieldDeprecationWarning,
    FieldRemovedError,
    UnknownFieldError,
)
from actor_migration.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COMPONENT = "core"


class TempTableSpec(BaseModel):
    """Bridging table mapping the owning table's primary key to an actor id."""

    model_config = ConfigDict(
        extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    table: str = Field(..., min_length=1, description="Temp table name")
    pk: str = Field(..., min_length=1, description="Temp column referring to the main table's primary key")
    actor_field: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("actor_field", "actorField", "field"),
        description="Temp column referring to actor.actor_id",
    )
    join_pk: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("join_pk", "joinPk", "joinPK"),
        description="Main table's primary key column",
    )
    extra: dict[str, str] = Field(
        default_factory=dict,
        description="Indexed copy columns: temp column name -> main table column name",
    )


class FieldSpec(BaseModel):
    """Configuration of a single migrated user-reference field.

    All attributes are optional; an empty spec means "default column names,
    no temp table, not deprecated".
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    text_field: str | None = Field(default=None, description="Override for {key}_text")
    actor_field: str | None = Field(default=None, description="Override for {key without _user}_actor")
    temp_table: TempTableSpec | None = Field(default=None, description="Temp table indirection")
    deprecated_version: str | None = Field(default=None, description="Version the field was deprecated in")
    removed_version: str | None = Field(default=None, description="Version the field was removed in")
    former_temp_table_version: str | None = Field(
        default=None,
        description="Version in which the field last used a temp table",
    )
    component: str | None = Field(default=None, description="Owner of the version markers")


# =============================================================================
# Lookup results
# =============================================================================


@dataclass(frozen=True)
class Known:
    """The key is configured."""

    key: str
    spec: FieldSpec

    def unwrap(self) -> FieldSpec:
        return self.spec


@dataclass(frozen=True)
class UnknownAllowed:
    """The key is not configured; defaults apply."""

    key: str
    spec: FieldSpec

    def unwrap(self) -> FieldSpec:
        return self.spec


@dataclass(frozen=True)
class UnknownRejected:
    """The key is not configured and unknown keys are disallowed."""

    key: str
    error: UnknownFieldError

    def unwrap(self) -> FieldSpec:
        raise self.error


FieldLookup = Union[Known, UnknownAllowed, UnknownRejected]

_EMPTY_SPEC = FieldSpec()


def default_actor_field(key: str) -> str:
    """``rev_user`` → ``rev_actor``; keys without a ``_user`` suffix get ``{key}_actor``."""
    if key.endswith("_user"):
        return key[: -len("_user")] + "_actor"
    return f"{key}_actor"


def normalize_field_spec(key: str, raw: FieldSpec | Mapping[str, Any]) -> FieldSpec:
    """Validate a raw mapping into a :class:`FieldSpec`."""
    if isinstance(raw, FieldSpec):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigError(
            f"Field info for {key!r} must be a mapping, got {type(raw).__name__}"
        ).with_context(key=key)
    try:
        return FieldSpec.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigError(f"Invalid field info for {key!r}", cause=exc).with_context(key=key) from exc


class FieldConfigRegistry:
    """Immutable mapping of field key → :class:`FieldSpec`.

    Parameters:
        field_infos: Mapping of key to ``FieldSpec`` or raw mapping.
        allow_unknown: Whether keys absent from ``field_infos`` fall back to
            an empty spec (default) or raise :class:`UnknownFieldError`.
        default_component: Component named in deprecation/removal messages
            when a spec does not set its own.
        owner: Name of the owning engine, used in error messages.
    """

    def __init__(
        self,
        field_infos: Mapping[str, FieldSpec | Mapping[str, Any]] | None = None,
        *,
        allow_unknown: bool = True,
        default_component: str = DEFAULT_COMPONENT,
        owner: str = "ActorMigrationEngine",
    ) -> None:
        self._specs: dict[str, FieldSpec] = {
            key: normalize_field_spec(key, raw) for key, raw in (field_infos or {}).items()
        }
        self._allow_unknown = allow_unknown
        self._default_component = default_component
        self._owner = owner

    @property
    def allow_unknown(self) -> bool:
        return self._allow_unknown

    @property
    def owner(self) -> str:
        return self._owner

    def keys(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    # -- Lookup ------------------------------------------------------------

    def lookup(self, key: str) -> FieldLookup:
        spec = self._specs.get(key)
        if spec is not None:
            return Known(key, spec)
        if self._allow_unknown:
            return UnknownAllowed(key, _EMPTY_SPEC)
        return UnknownRejected(key, UnknownFieldError(key, owner=self._owner))

    def resolve(self, key: str) -> FieldSpec:
        """Return the spec for ``key`` or raise :class:`UnknownFieldError`."""
        return self.lookup(key).unwrap()

    def component_for(self, spec: FieldSpec) -> str:
        return spec.component or self._default_component

    def field_names(self, key: str) -> tuple[str, str]:
        """Return ``(text_field, actor_field)`` for ``key``."""
        spec = self.resolve(key)
        text_field = spec.text_field or f"{key}_text"
        actor_field = spec.actor_field or default_actor_field(key)
        return text_field, actor_field

    def temp_table(self, key: str) -> TempTableSpec | None:
        return self.resolve(key).temp_table

    # -- Deprecation gate --------------------------------------------------

    def check_deprecation(self, key: str) -> FieldSpec:
        """Reject removed fields and signal deprecated ones.

        Returns:
            The resolved spec, so callers need only one lookup.

        Raises:
            UnknownFieldError: Key unknown and unknown keys are disallowed.
            FieldRemovedError: The field carries a ``removed_version`` marker.
        """
        spec = self.resolve(key)
        if spec.removed_version is not None:
            raise FieldRemovedError(
                key,
                version=spec.removed_version,
                component=self.component_for(spec),
                owner=self._owner,
            )
        if spec.deprecated_version is not None:
            self.warn_deprecated(
                f"{self._owner} for '{key}'",
                version=spec.deprecated_version,
                component=self.component_for(spec),
                key=key,
            )
        return spec

    def warn_deprecated(self, what: str, *, version: str, component: str, key: str) -> None:
        """Emit the non-fatal deprecation signal (warning + log event)."""
        logger.warning(
            "field_deprecated",
            field=key,
            owner=self._owner,
            version=version,
            component=component,
        )
        warnings.warn(
            f"Use of {what} was deprecated in {component} {version}.",
            FieldDeprecationWarning,
            stacklevel=4,
        )


__all__ = [
    "DEFAULT_COMPONENT",
    "TempTableSpec",
    "FieldSpec",
    "Known",
    "UnknownAllowed",
    "UnknownRejected",
    "FieldLookup",
    "default_actor_field",
    "normalize_field_spec",
    "FieldConfigRegistry",
]
