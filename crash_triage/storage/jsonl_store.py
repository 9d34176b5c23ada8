"""
JSONL triage store implementation.

Durable variant of the in-memory store: every write is appended to a JSONL
journal before it is applied, and the journal is replayed on open.
"""

import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, ValidationError as PydanticValidationError
from typing_extensions import TypedDict, override

from ..exceptions import StoreUnavailableError, TriageError
from ..logging_config import get_logger
from ..models import Bucket, Dump
from .memory_store import DEFAULT_LOCK_TIMEOUT, MemoryTriageStore

# Module-level logger
logger = get_logger("jsonl_store")


class DumpRecord(TypedDict):
    dump_id: str
    timestamp: float
    payload_ref: str
    properties: dict[str, str | bool | int | float]


class BucketRecord(TypedDict):
    name: str
    signature: str
    created_at: float
    updated_at: float
    dump_count: int


class PutDumpEntry(TypedDict):
    op: Literal["put_dump"]
    dump: DumpRecord


class PutBucketEntry(TypedDict):
    op: Literal["put_bucket"]
    bucket: BucketRecord


class AssociateEntry(TypedDict):
    op: Literal["associate"]
    dump_id: str
    bucket_id: str


JournalEntry = Annotated[
    PutDumpEntry | PutBucketEntry | AssociateEntry,
    Field(discriminator="op"),
]

_entry_adapter = TypeAdapter(JournalEntry)


class JSONLTriageStore(MemoryTriageStore):
    """
    JSONL-backed triage store.

    Uses an append-only JSONL journal of put_dump, put_bucket and associate
    operations. Indexes live in memory and are rebuilt from the journal when
    the store is opened; corrupt or contradictory lines are skipped.
    """

    journal_path: Path

    def __init__(self, journal_path: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        """
        Initialize JSONL store and replay its journal.

        Args:
            journal_path: Path to the JSONL journal file
            lock_timeout: Seconds to wait for the store lock before failing
        """
        super().__init__(lock_timeout=lock_timeout)
        self.journal_path = Path(journal_path)
        self._replaying: bool = False

        try:
            self.journal_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create store directory {self.journal_path.parent}: {e}") from e

        replayed = self._replay()
        logger.info(f"JSONL triage store initialized: journal={self.journal_path}, replayed {replayed} entries")

    @classmethod
    def in_directory(cls, store_dir: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> "JSONLTriageStore":
        """Open the store kept in `store_dir/triage.jsonl`."""
        return cls(Path(store_dir) / "triage.jsonl", lock_timeout=lock_timeout)

    @override
    def _write_journal(self, entry: dict[str, Any]) -> None:  # pyright: ignore[reportExplicitAny]
        """Append one entry to the journal."""
        if self._replaying:
            return
        try:
            with open(self.journal_path, "a", encoding="utf-8") as f:
                json.dump(entry, f, ensure_ascii=False, sort_keys=True)
                f.write("\n")
        except OSError as e:
            raise StoreUnavailableError(f"Failed to append to {self.journal_path}: {e}") from e

    def _replay(self) -> int:
        """Rebuild in-memory indexes from the journal."""
        if not self.journal_path.exists():
            return 0

        replayed = 0
        self._replaying = True
        try:
            with open(self.journal_path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = _entry_adapter.validate_json(line)
                    except PydanticValidationError as e:
                        logger.warning(
                            f"Skipping invalid journal line {line_no} in {self.journal_path}: {e.error_count()} errors"
                        )
                        continue

                    try:
                        self._apply(entry)
                    except TriageError as e:
                        logger.warning(f"Skipping journal line {line_no} in {self.journal_path}: {e}")
                        continue
                    replayed += 1
        except OSError as e:
            raise StoreUnavailableError(f"Failed to read {self.journal_path}: {e}") from e
        finally:
            self._replaying = False
        return replayed

    def _apply(self, entry: PutDumpEntry | PutBucketEntry | AssociateEntry) -> None:
        if entry["op"] == "put_dump":
            record = entry["dump"]
            self.put_dump(Dump(
                dump_id=record["dump_id"],
                timestamp=record["timestamp"],
                payload_ref=record["payload_ref"],
                properties=dict(record["properties"]),
            ))
        elif entry["op"] == "put_bucket":
            record = entry["bucket"]
            _ = self.put_bucket(Bucket(
                name=record["name"],
                signature=record["signature"],
                created_at=record["created_at"],
                updated_at=record["updated_at"],
            ))
        else:
            self.associate_dump_with_bucket(entry["dump_id"], entry["bucket_id"])

    def get_journal_entry_count(self) -> int:
        """Get number of lines in the journal."""
        if not self.journal_path.exists():
            return 0

        count = 0
        with open(self.journal_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    count += 1
        return count
