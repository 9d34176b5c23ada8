"""
Tests for SignatureClassifier implementation.

Focus on signature determinism and single bucket creation under concurrency.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from crash_triage.classifiers.signature_classifier import SignatureClassifier, UNKNOWN_SIGNATURE
from crash_triage.exceptions import ConfigurationError
from crash_triage.interfaces import FuzzyMatchPolicy
from crash_triage.models import PropertySet
from crash_triage.storage.memory_store import MemoryTriageStore


class PrefixMatchPolicy(FuzzyMatchPolicy):
    """Matches any signature starting with a known bucket's stack hash."""

    def __init__(self, bucket_id: str):
        self.bucket_id = bucket_id

    def find_match(self, signature: str, properties: PropertySet) -> str | None:
        if signature.startswith(self.bucket_id):
            return self.bucket_id
        return None


class TestSignatureClassifier:
    """Test SignatureClassifier behavior through public interface."""

    def test_signature_uses_ordered_fields(self) -> None:
        """Present signature fields should be joined in configured order."""
        classifier = SignatureClassifier(MemoryTriageStore())

        assert classifier.signature_for({"stack_hash": "H1"}) == "H1"
        assert classifier.signature_for({"exception_code": "c0000005", "stack_hash": "H1"}) == "H1|c0000005"
        assert classifier.signature_for({"module": "app.exe"}) == UNKNOWN_SIGNATURE
        assert classifier.signature_for({"stack_hash": "", "exception_code": "c0000005"}) == "c0000005"

    def test_custom_signature_fields(self) -> None:
        classifier = SignatureClassifier(MemoryTriageStore(), signature_fields=("module", "fault_offset"))

        assert classifier.signature_for({"module": "app.exe", "fault_offset": "0x10", "stack_hash": "H"}) == "app.exe|0x10"

    def test_first_dump_creates_bucket(self) -> None:
        """A new signature should create a bucket named after it."""
        # Arrange
        store = MemoryTriageStore()
        classifier = SignatureClassifier(store)

        # Act
        bucket_id, created = classifier.assign({"dump_id": "D1", "timestamp": 100.0, "stack_hash": "H1"})

        # Assert
        assert bucket_id == "H1"
        assert created is True
        bucket = store.get_bucket("H1")
        assert bucket.signature == "H1"
        assert bucket.created_at == 100.0
        assert bucket.updated_at == 100.0

    def test_equal_signatures_map_to_same_bucket(self) -> None:
        """Dumps that differ outside the signature fields should share a bucket."""
        # Arrange
        store = MemoryTriageStore()
        classifier = SignatureClassifier(store)
        first: PropertySet = {"dump_id": "D1", "timestamp": 1.0, "stack_hash": "H1", "module": "a.dll"}
        second: PropertySet = {"dump_id": "D2", "timestamp": 2.0, "stack_hash": "H1", "module": "b.dll"}

        # Act
        first_id, first_created = classifier.assign(first)
        second_id, second_created = classifier.assign(second)

        # Assert
        assert first_id == second_id == classifier.classify(first)
        assert first_created is True
        assert second_created is False
        assert store.get_counts()["buckets"] == 1

    def test_different_signatures_map_to_different_buckets(self) -> None:
        store = MemoryTriageStore()
        classifier = SignatureClassifier(store)

        assert classifier.classify({"timestamp": 1.0, "stack_hash": "H1"}) != classifier.classify(
            {"timestamp": 1.0, "stack_hash": "H2"}
        )
        assert store.get_counts()["buckets"] == 2

    def test_concurrent_classification_creates_one_bucket(self) -> None:
        """N threads classifying the same new signature should create exactly one bucket."""
        # Arrange
        store = MemoryTriageStore()
        classifier = SignatureClassifier(store)
        workers = 16
        barrier = threading.Barrier(workers)

        def classify(i: int) -> tuple[str, bool]:
            _ = barrier.wait()
            return classifier.assign({"dump_id": f"D{i}", "timestamp": float(i), "stack_hash": "HOT"})

        # Act
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(classify, range(workers)))

        # Assert
        assert {bucket_id for bucket_id, _ in results} == {"HOT"}
        assert sum(1 for _, created in results if created) == 1, "Only one caller creates the bucket"
        assert store.get_counts()["buckets"] == 1
        assert classifier.get_pending_lock_count() == 0

    def test_creation_locks_released_once_buckets_exist(self) -> None:
        """Per-signature locks should not accumulate after their buckets are created."""
        store = MemoryTriageStore()
        classifier = SignatureClassifier(store)

        for i in range(20):
            _ = classifier.classify({"dump_id": f"D{i}", "timestamp": float(i), "stack_hash": f"H{i % 4}"})

        assert store.get_counts()["buckets"] == 4
        assert classifier.get_pending_lock_count() == 0

    def test_fuzzy_policy_consulted_on_miss(self) -> None:
        """An enabled near-match policy should reuse an existing bucket."""
        store = MemoryTriageStore()
        seed = SignatureClassifier(store)
        _ = seed.classify({"timestamp": 1.0, "stack_hash": "H1"})
        classifier = SignatureClassifier(store, fuzzy_policy=PrefixMatchPolicy("H1"))

        bucket_id, created = classifier.assign({"timestamp": 2.0, "stack_hash": "H1", "exception_code": "c0000005"})

        assert bucket_id == "H1"
        assert created is False
        assert store.get_counts()["buckets"] == 1

    def test_empty_signature_fields_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            _ = SignatureClassifier(MemoryTriageStore(), signature_fields=())
