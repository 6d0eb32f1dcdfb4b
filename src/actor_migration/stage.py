"""Migration stage: which representation is written and which one is read.

A stage is the pair ``(WriteMode, ReadMode)``. Only combinations where the
read representation is also being written are valid::

    write   read    valid
    -----   ----    -----
    OLD     OLD     yes      (before migration)
    BOTH    OLD     yes      (dual write, still reading legacy columns)
    BOTH    NEW     yes      (dual write, reading actor table)
    NEW     NEW     yes      (after migration)
    OLD     NEW     no
    NEW     OLD     no

Deployments that still configure the stage as an integer bitmask go through
:meth:`MigrationStage.from_flags`, which applies the same rules to the raw
bits and rejects every invalid pattern with :class:`InvalidStageError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from actor_migration.errors import InvalidStageError

# Legacy bitmask flags
SCHEMA_COMPAT_WRITE_OLD = 0x01
SCHEMA_COMPAT_READ_OLD = 0x02
SCHEMA_COMPAT_WRITE_NEW = 0x10
SCHEMA_COMPAT_READ_NEW = 0x20
SCHEMA_COMPAT_WRITE_BOTH = SCHEMA_COMPAT_WRITE_OLD | SCHEMA_COMPAT_WRITE_NEW
SCHEMA_COMPAT_READ_BOTH = SCHEMA_COMPAT_READ_OLD | SCHEMA_COMPAT_READ_NEW
SCHEMA_COMPAT_OLD = SCHEMA_COMPAT_WRITE_OLD | SCHEMA_COMPAT_READ_OLD
SCHEMA_COMPAT_NEW = SCHEMA_COMPAT_WRITE_NEW | SCHEMA_COMPAT_READ_NEW
SCHEMA_COMPAT_WRITE_BOTH_READ_OLD = SCHEMA_COMPAT_WRITE_BOTH | SCHEMA_COMPAT_READ_OLD
SCHEMA_COMPAT_WRITE_BOTH_READ_NEW = SCHEMA_COMPAT_WRITE_BOTH | SCHEMA_COMPAT_READ_NEW


class WriteMode(str, Enum):
    """Representation(s) written on every insert/update."""

    OLD = "old"
    NEW = "new"
    BOTH = "both"

    @property
    def writes_old(self) -> bool:
        return self in (WriteMode.OLD, WriteMode.BOTH)

    @property
    def writes_new(self) -> bool:
        return self in (WriteMode.NEW, WriteMode.BOTH)


class ReadMode(str, Enum):
    """Representation consulted by reads. Exactly one."""

    OLD = "old"
    NEW = "new"


@dataclass(frozen=True)
class MigrationStage:
    """Validated (write, read) pair.

    Raises:
        InvalidStageError: If ``read`` names a representation that
            ``write`` does not produce.
    """

    write: WriteMode
    read: ReadMode

    def __post_init__(self) -> None:
        # Accept plain strings ("both", "old") from configuration
        try:
            write = WriteMode(self.write)
            read = ReadMode(self.read)
        except ValueError as exc:
            raise InvalidStageError(
                f"Unknown stage component: {exc}", stage=f"{self.write}/{self.read}"
            ) from exc
        object.__setattr__(self, "write", write)
        object.__setattr__(self, "read", read)

        if read is ReadMode.OLD and not write.writes_old:
            raise InvalidStageError(
                "Cannot read the old schema without also writing it", stage=self.label
            )
        if read is ReadMode.NEW and not write.writes_new:
            raise InvalidStageError(
                "Cannot read the new schema without also writing it", stage=self.label
            )

    # -- Constructors ------------------------------------------------------

    @classmethod
    def from_flags(cls, flags: int) -> MigrationStage:
        """Build a stage from a legacy ``SCHEMA_COMPAT_*`` bitmask."""
        if isinstance(flags, bool) or not isinstance(flags, int):
            raise InvalidStageError(
                f"Stage flags must be an integer, got {type(flags).__name__}", stage=flags
            )
        write_bits = flags & SCHEMA_COMPAT_WRITE_BOTH
        read_bits = flags & SCHEMA_COMPAT_READ_BOTH

        if write_bits == 0:
            raise InvalidStageError("Stage must include a write mode", stage=hex(flags))
        if read_bits == 0:
            raise InvalidStageError("Stage must include a read mode", stage=hex(flags))
        if read_bits == SCHEMA_COMPAT_READ_BOTH:
            raise InvalidStageError("Cannot read both schemas", stage=hex(flags))

        if write_bits == SCHEMA_COMPAT_WRITE_BOTH:
            write = WriteMode.BOTH
        elif write_bits == SCHEMA_COMPAT_WRITE_OLD:
            write = WriteMode.OLD
        else:
            write = WriteMode.NEW
        read = ReadMode.OLD if read_bits == SCHEMA_COMPAT_READ_OLD else ReadMode.NEW
        return cls(write, read)

    @classmethod
    def parse(cls, text: str) -> MigrationStage:
        """Parse ``"write-both/read-old"`` (also ``+`` or ``,`` separated).

        The shorthand ``"old"`` and ``"new"`` mean write+read of that
        representation only.
        """
        value = text.strip().lower()
        if value in ("old", "new"):
            return cls(WriteMode(value), ReadMode(value))

        parts = [p.strip() for p in value.replace("+", "/").replace(",", "/").split("/")]
        write: str | None = None
        read: str | None = None
        for part in parts:
            if part.startswith("write-"):
                write = part[len("write-"):]
            elif part.startswith("read-"):
                read = part[len("read-"):]
            elif part:
                raise InvalidStageError(f"Unrecognised stage component {part!r}", stage=text)
        if write is None:
            raise InvalidStageError("Stage must include a write mode", stage=text)
        if read is None:
            raise InvalidStageError("Stage must include a read mode", stage=text)
        if read == "both":
            raise InvalidStageError("Cannot read both schemas", stage=text)
        return cls(write, read)  # type: ignore[arg-type]

    @classmethod
    def coerce(cls, value: MigrationStage | int | str) -> MigrationStage:
        """Accept a stage, a legacy bitmask or a stage string."""
        if isinstance(value, MigrationStage):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        return cls.from_flags(value)

    # -- Introspection -----------------------------------------------------

    @property
    def writes_old(self) -> bool:
        return self.write.writes_old

    @property
    def writes_new(self) -> bool:
        return self.write.writes_new

    @property
    def reads_old(self) -> bool:
        return self.read is ReadMode.OLD

    @property
    def reads_new(self) -> bool:
        return self.read is ReadMode.NEW

    @property
    def flags(self) -> int:
        """Equivalent legacy bitmask."""
        bits = 0
        if self.writes_old:
            bits |= SCHEMA_COMPAT_WRITE_OLD
        if self.writes_new:
            bits |= SCHEMA_COMPAT_WRITE_NEW
        bits |= SCHEMA_COMPAT_READ_OLD if self.reads_old else SCHEMA_COMPAT_READ_NEW
        return bits

    @property
    def label(self) -> str:
        return f"write-{self.write.value}/read-{self.read.value}"

    def __str__(self) -> str:
        return self.label


__all__ = [
    "SCHEMA_COMPAT_WRITE_OLD",
    "SCHEMA_COMPAT_READ_OLD",
    "SCHEMA_COMPAT_WRITE_NEW",
    "SCHEMA_COMPAT_READ_NEW",
    "SCHEMA_COMPAT_WRITE_BOTH",
    "SCHEMA_COMPAT_READ_BOTH",
    "SCHEMA_COMPAT_OLD",
    "SCHEMA_COMPAT_NEW",
    "SCHEMA_COMPAT_WRITE_BOTH_READ_OLD",
    "SCHEMA_COMPAT_WRITE_BOTH_READ_NEW",
    "WriteMode",
    "ReadMode",
    "MigrationStage",
]
