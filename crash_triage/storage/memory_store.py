"""
In-memory triage store implementation.

Keeps buckets, dumps and associations in indexed dicts guarded by a single
lock. Writes are idempotent; reads hand out copies.
"""

import threading
from bisect import insort
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from typing_extensions import override

from ..exceptions import ConflictError, NotFoundError, StoreUnavailableError
from ..interfaces import TriageStore
from ..logging_config import get_logger
from ..models import Bucket, Dump, PropertySet

# Module-level logger
logger = get_logger("memory_store")

DEFAULT_LOCK_TIMEOUT = 5.0


def _copy_dump(dump: Dump) -> Dump:
    return replace(dump, properties=dict(dump.properties))


class MemoryTriageStore(TriageStore):
    """
    Indexed in-memory triage store.

    Indexes: bucket id -> bucket, signature -> bucket id, dump id -> dump,
    dump id -> bucket id, bucket id -> member dump ids sorted by
    (timestamp, dump id).

    Thread Safety: every operation holds the store lock for the duration of
    one index update or one read. Lock acquisition is bounded by
    `lock_timeout` and raises StoreUnavailableError when exceeded.

    `dump_count`, `created_at` and `updated_at` of stored buckets are
    maintained by the store as dumps are associated.
    """

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        """
        Initialize in-memory store.

        Args:
            lock_timeout: Seconds to wait for the store lock before failing
        """
        self.lock_timeout: float = lock_timeout
        self._lock: threading.Lock = threading.Lock()

        self._buckets = dict[str, Bucket]()
        self._signatures = dict[str, str]()
        self._dumps = dict[str, Dump]()
        self._assignments = dict[str, str]()
        self._members = dict[str, list[tuple[float, str]]]()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise StoreUnavailableError(
                f"Timed out after {self.lock_timeout}s waiting for triage store lock"
            )
        try:
            yield
        finally:
            self._lock.release()

    def _write_journal(self, entry: dict[str, Any]) -> None:  # pyright: ignore[reportExplicitAny]
        """Persist a write before it is applied. No-op for the in-memory store."""
        pass

    @override
    def put_dump(self, dump: Dump) -> None:
        """Store a dump. Identical re-puts are no-ops; differing ones conflict."""
        with self._locked():
            existing = self._dumps.get(dump.dump_id)
            if existing is not None:
                if existing == dump:
                    logger.debug(f"Dump {dump.dump_id} already stored")
                    return
                raise ConflictError(f"Dump {dump.dump_id} already stored with different content")

            self._write_journal({
                "op": "put_dump",
                "dump": {
                    "dump_id": dump.dump_id,
                    "timestamp": dump.timestamp,
                    "payload_ref": dump.payload_ref,
                    "properties": dump.properties,
                },
            })
            self._dumps[dump.dump_id] = _copy_dump(dump)

    @override
    def put_bucket(self, bucket: Bucket) -> Bucket:
        """Store a bucket if absent and return the stored copy."""
        with self._locked():
            existing = self._buckets.get(bucket.name)
            if existing is not None:
                if existing.signature != bucket.signature:
                    raise ConflictError(
                        f"Bucket {bucket.name} already exists with signature {existing.signature}"
                    )
                return replace(existing)

            owner = self._signatures.get(bucket.signature)
            if owner is not None:
                raise ConflictError(f"Signature {bucket.signature} already belongs to bucket {owner}")

            stored = replace(bucket, dump_count=0)
            self._write_journal({
                "op": "put_bucket",
                "bucket": {
                    "name": stored.name,
                    "signature": stored.signature,
                    "created_at": stored.created_at,
                    "updated_at": stored.updated_at,
                    "dump_count": stored.dump_count,
                },
            })
            self._buckets[stored.name] = stored
            self._signatures[stored.signature] = stored.name
            self._members[stored.name] = []
            return replace(stored)

    @override
    def associate_dump_with_bucket(self, dump_id: str, bucket_id: str) -> None:
        """
        Assign a dump to a bucket.

        The bucket record is replaced as a whole, so readers see either the
        old or the new membership, never a mix.

        Raises:
            NotFoundError: if the dump or bucket does not exist
            ConflictError: if the dump already belongs to another bucket
        """
        with self._locked():
            dump = self._dumps.get(dump_id)
            if dump is None:
                raise NotFoundError(f"Dump not found: {dump_id}")
            bucket = self._buckets.get(bucket_id)
            if bucket is None:
                raise NotFoundError(f"Bucket not found: {bucket_id}")

            current = self._assignments.get(dump_id)
            if current == bucket_id:
                return
            if current is not None:
                raise ConflictError(f"Dump {dump_id} already assigned to bucket {current}")

            self._write_journal({"op": "associate", "dump_id": dump_id, "bucket_id": bucket_id})
            self._assignments[dump_id] = bucket_id
            insort(self._members[bucket_id], (dump.timestamp, dump_id))
            self._buckets[bucket_id] = replace(
                bucket,
                created_at=min(bucket.created_at, dump.timestamp),
                updated_at=max(bucket.updated_at, dump.timestamp),
                dump_count=bucket.dump_count + 1,
            )

    @override
    def get_bucket(self, bucket_id: str) -> Bucket:
        with self._locked():
            bucket = self._buckets.get(bucket_id)
            if bucket is None:
                raise NotFoundError(f"Bucket not found: {bucket_id}")
            return replace(bucket)

    @override
    def find_bucket_by_signature(self, signature: str) -> Bucket | None:
        with self._locked():
            name = self._signatures.get(signature)
            if name is None:
                return None
            return replace(self._buckets[name])

    @override
    def get_dump(self, dump_id: str) -> Dump:
        with self._locked():
            dump = self._dumps.get(dump_id)
            if dump is None:
                raise NotFoundError(f"Dump not found: {dump_id}")
            return _copy_dump(dump)

    @override
    def get_buckets_in_range(self, start: float, end: float) -> Sequence[Bucket]:
        """Buckets with start <= updated_at < end, newest first, ties by name."""
        with self._locked():
            matches = [replace(b) for b in self._buckets.values() if start <= b.updated_at < end]
        matches.sort(key=lambda b: b.name)
        matches.sort(key=lambda b: b.updated_at, reverse=True)
        return matches

    @override
    def get_dumps_for_bucket(self, bucket_id: str) -> Sequence[Dump]:
        with self._locked():
            members = self._members.get(bucket_id)
            if members is None:
                raise NotFoundError(f"Bucket not found: {bucket_id}")
            return [_copy_dump(self._dumps[dump_id]) for _, dump_id in members]

    @override
    def get_properties(self, dump_id: str) -> PropertySet:
        with self._locked():
            dump = self._dumps.get(dump_id)
            if dump is None:
                raise NotFoundError(f"Dump not found: {dump_id}")
            return dict(dump.properties)

    def get_bucket_for_dump(self, dump_id: str) -> str | None:
        """Bucket a dump is assigned to, if any."""
        with self._locked():
            return self._assignments.get(dump_id)

    def get_counts(self) -> dict[str, int]:
        """Number of stored buckets, dumps and associations."""
        with self._locked():
            return {
                "buckets": len(self._buckets),
                "dumps": len(self._dumps),
                "associations": len(self._assignments),
            }
