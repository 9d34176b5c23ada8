"""
Signature classifier implementation.

Derives a canonical signature from an ordered subset of dump properties and
maps it onto exactly one bucket, creating the bucket on first sight.
"""

import threading
from collections.abc import Sequence

from typing_extensions import override

from ..exceptions import ConfigurationError
from ..interfaces import Classifier, FuzzyMatchPolicy, TriageStore
from ..logging_config import get_logger
from ..models import Bucket, PropertySet

# Module-level logger
logger = get_logger("signature_classifier")

DEFAULT_SIGNATURE_FIELDS = ("stack_hash", "exception_code")
UNKNOWN_SIGNATURE = "unknown"
SIGNATURE_SEPARATOR = "|"


class SignatureClassifier(Classifier):
    """
    Exact-signature classifier.

    Thread Safety: bucket creation is serialized per signature, so concurrent
    classification of dumps sharing a new signature creates one bucket.
    Classifications of different signatures never wait on each other beyond
    the short critical section that hands out per-signature locks.
    """

    def __init__(
        self,
        store: TriageStore,
        signature_fields: Sequence[str] = DEFAULT_SIGNATURE_FIELDS,
        fuzzy_policy: FuzzyMatchPolicy | None = None,
    ):
        """
        Initialize classifier.

        Args:
            store: Triage store used for bucket lookup and creation
            signature_fields: Ordered property names that make up the signature
            fuzzy_policy: Optional near-match policy, consulted on exact-match miss
        """
        if not signature_fields:
            raise ConfigurationError("signature_fields cannot be empty")
        self.store: TriageStore = store
        self.signature_fields: tuple[str, ...] = tuple(signature_fields)
        self.fuzzy_policy: FuzzyMatchPolicy | None = fuzzy_policy

        self._signature_locks = dict[str, threading.Lock]()
        self._locks_guard: threading.Lock = threading.Lock()

    @override
    def signature_for(self, properties: PropertySet) -> str:
        """Join the present signature fields in their configured order."""
        parts = [
            str(properties[name])
            for name in self.signature_fields
            if name in properties and properties[name] != ""
        ]
        if not parts:
            return UNKNOWN_SIGNATURE
        return SIGNATURE_SEPARATOR.join(parts)

    @override
    def assign(self, properties: PropertySet) -> tuple[str, bool]:
        """
        Return the bucket id for these properties and whether it was created.

        The bucket's timestamps are seeded from the dump's timestamp when it
        is created; association with the dump happens separately.
        """
        signature = self.signature_for(properties)

        existing = self.store.find_bucket_by_signature(signature)
        if existing is not None:
            return existing.name, False

        with self._lock_for(signature):
            # Re-check under the lock, another ingest may have created it
            existing = self.store.find_bucket_by_signature(signature)
            if existing is not None:
                self._release_lock(signature)
                return existing.name, False

            if self.fuzzy_policy is not None:
                match = self.fuzzy_policy.find_match(signature, properties)
                if match is not None:
                    self._release_lock(signature)
                    logger.debug(f"Fuzzy policy matched signature {signature} to bucket {match}")
                    return match, False

            timestamp = float(properties.get("timestamp", 0.0))
            bucket = self.store.put_bucket(
                Bucket(
                    name=signature,
                    signature=signature,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
            )
            # Once the bucket exists the exact lookup above answers every later caller
            self._release_lock(signature)
            logger.info(f"Created bucket {bucket.name}")
            return bucket.name, True

    def _lock_for(self, signature: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._signature_locks.get(signature)
            if lock is None:
                lock = threading.Lock()
                self._signature_locks[signature] = lock
            return lock

    def _release_lock(self, signature: str) -> None:
        with self._locks_guard:
            _ = self._signature_locks.pop(signature, None)

    def get_pending_lock_count(self) -> int:
        """Get number of per-signature creation locks currently tracked."""
        with self._locks_guard:
            return len(self._signature_locks)
