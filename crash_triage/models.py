"""
Core dataclasses for the crash triage system.

Defines RawDump, Dump, Bucket and IngestResult models with validation.
"""

import math
from dataclasses import dataclass

from .exceptions import ValidationError

PropertyValue = str | int | float | bool
PropertySet = dict[str, PropertyValue]


@dataclass(frozen=True)
class RawDump:
    """An unparsed crash dump record as it arrived."""

    payload: bytes | str
    payload_ref: str = ""


@dataclass(frozen=True)
class Dump:
    """A single crash report with its extracted properties. Immutable."""

    dump_id: str
    timestamp: float
    properties: PropertySet
    payload_ref: str = ""

    def __post_init__(self) -> None:
        """Validate dump data."""
        if not self.dump_id:
            raise ValidationError("dump_id cannot be empty")
        if not math.isfinite(self.timestamp):
            raise ValidationError(f"timestamp must be finite: {self.timestamp}")
        if self.timestamp < 0:
            raise ValidationError(f"timestamp cannot be negative: {self.timestamp}")


@dataclass
class Bucket:
    """A cluster of dumps sharing one canonical signature."""

    name: str
    signature: str
    created_at: float
    updated_at: float
    dump_count: int = 0

    def __post_init__(self) -> None:
        """Validate bucket data."""
        if not self.name:
            raise ValidationError("bucket name cannot be empty")
        if not self.signature:
            raise ValidationError("signature cannot be empty")
        if self.updated_at < self.created_at:
            raise ValidationError(
                f"updated_at ({self.updated_at}) precedes created_at ({self.created_at})"
            )

    @property
    def bucket_id(self) -> str:
        """Buckets are identified by name."""
        return self.name


@dataclass
class IngestResult:
    """Outcome of ingesting one raw dump."""

    payload_ref: str
    dump_id: str | None = None
    bucket_id: str | None = None
    created_bucket: bool = False
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.error is None
