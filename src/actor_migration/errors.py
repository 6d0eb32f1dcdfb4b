"""
Structured error types for the actor migration layer.

Every failure raised by the engine is detected synchronously, at the point
of misuse, before any SQL reaches storage. The hierarchy lets callers tell a
broken deployment (configuration), broken calling code (usage, removed
field) and a broken database (storage) apart without parsing messages.

Manifesto:
    - **Typed hierarchy:** One subclass per failure mode
    - **Fail fast:** Configuration errors surface at construction time
    - **Rich context:** Errors carry the field key, stage and owner
    - **Compatible:** Usage and config errors are also ``ValueError``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                   ActorMigrationError                        │
        │            (category, context, cause, to_dict)               │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigError           UsageError           FieldRemovedError│
        │  (CONFIG)              (USAGE)              (REMOVED)        │
        │       │                     │                                │
        │  InvalidStageError     UnknownFieldError    StorageError     │
        │                        TempTableMismatchError (STORAGE)      │
        │                        InvalidUsersError                     │
        │                        MissingExtraValueError                │
        └─────────────────────────────────────────────────────────────┘

        FieldDeprecationWarning(DeprecationWarning)  -- non-fatal signal

Examples:
    >>> err = UnknownFieldError("xx_user", owner="ActorMigration")
    >>> err.category
    <ErrorCategory.USAGE: 'USAGE'>
    >>> err.to_dict()["context"]["key"]
    'xx_user'

Tags:
    error-handling, exception-hierarchy, actor-migration, usage-errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and alert routing."""

    CONFIG = "CONFIG"       # Invalid stage or field configuration
    USAGE = "USAGE"         # Caller violated an operation contract
    REMOVED = "REMOVED"     # Field migration finalized and removed
    STORAGE = "STORAGE"     # Underlying database failure
    INTERNAL = "INTERNAL"   # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        key: Logical field key (e.g. ``"rev_user"``)
        stage: Migration stage label at the time of the error
        owner: Name of the engine class that raised the error
        operation: Public operation being executed
        metadata: Additional key-value pairs
    """

    key: str | None = None
    stage: str | None = None
    owner: str | None = None
    operation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["key", "stage", "owner", "operation"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ActorMigrationError(Exception):
    """
    Base exception for all actor migration errors.

    Subclasses set ``default_category``. Instances carry a message, a
    category, an :class:`ErrorContext` and an optional chained cause.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ActorMigrationError:
        """
        Add context to this error (fluent API).

        Usage:
            raise UsageError("bad call").with_context(key="rev_user")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(ActorMigrationError, ValueError):
    """
    Configuration error.

    Raised while constructing an engine or a field registry. Never
    recoverable at runtime; the deployment configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidStageError(ConfigError):
    """The migration stage combination is not allowed."""

    def __init__(self, message: str, *, stage: Any = None):
        self.stage = stage
        super().__init__(message)
        if stage is not None:
            self.context.stage = str(stage)


# =============================================================================
# USAGE ERRORS
# =============================================================================


class UsageError(ActorMigrationError, ValueError):
    """An operation was called in a way its contract does not allow."""

    default_category = ErrorCategory.USAGE


class UnknownFieldError(UsageError):
    """Field key is not configured and unknown keys are disallowed."""

    def __init__(self, key: str, *, owner: str):
        self.key = key
        super().__init__(f"{owner}: unknown key {key}")
        self.context.key = key
        self.context.owner = owner


class TempTableMismatchError(UsageError):
    """The write path does not match the field's temp-table configuration."""

    def __init__(self, key: str, *, expected: str):
        self.key = key
        self.expected = expected
        super().__init__(f"Must use {expected}() for {key}")
        self.context.key = key
        self.context.operation = expected


class InvalidUsersError(UsageError):
    """The ``users`` argument is neither an identity nor a collection of them."""

    def __init__(self, value: Any, *, operation: str = "build_where"):
        self.value_type = type(value).__name__
        super().__init__(
            f"{operation}: value for users must be a UserIdentity or a collection "
            f"of them, got {self.value_type}"
        )
        self.context.operation = operation


class MissingExtraValueError(UsageError):
    """A deferred temp-table write was completed without a required extra value."""

    def __init__(self, key: str, source_column: str):
        self.key = key
        self.source_column = source_column
        super().__init__(
            f"Deferred write for {key}: extras[{source_column!r}] is not provided"
        )
        self.context.key = key
        self.context.operation = "complete"


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class FieldRemovedError(ActorMigrationError, ValueError):
    """The field's migration was finalized and the field removed."""

    default_category = ErrorCategory.REMOVED

    def __init__(self, key: str, *, version: str, component: str, owner: str):
        self.key = key
        self.version = version
        self.component = component
        super().__init__(
            f"Use of {owner} for '{key}' was removed in {component} {version}"
        )
        self.context.key = key
        self.context.owner = owner


class FieldDeprecationWarning(DeprecationWarning):
    """Emitted when an operation touches a field scheduled for removal."""


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(ActorMigrationError):
    """A statement issued through the storage handle failed."""

    default_category = ErrorCategory.STORAGE


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ActorMigrationError",
    "ConfigError",
    "InvalidStageError",
    "UsageError",
    "UnknownFieldError",
    "TempTableMismatchError",
    "InvalidUsersError",
    "MissingExtraValueError",
    "FieldRemovedError",
    "FieldDeprecationWarning",
    "StorageError",
]
