"""
Tests for QueryService.

Focus on window validation, error surfacing and serialization stability.
"""

import json

import pytest

from crash_triage.exceptions import ConfigurationError, InvalidRangeError, NotFoundError, StoreUnavailableError
from crash_triage.models import Bucket, Dump, PropertySet
from crash_triage.query_service import QueryService, serialize_properties
from crash_triage.storage.memory_store import MemoryTriageStore


class CountingStore(MemoryTriageStore):
    """Memory store that counts property reads."""

    def __init__(self):
        super().__init__()
        self.property_reads = 0

    def get_properties(self, dump_id: str) -> PropertySet:
        self.property_reads += 1
        return super().get_properties(dump_id)


def seeded(store: MemoryTriageStore) -> MemoryTriageStore:
    store.put_dump(Dump(
        dump_id="D1",
        timestamp=100.0,
        properties={"timestamp": 100.0, "dump_id": "D1", "stack_hash": "H1", "module": "é.dll", "ok": True},
    ))
    _ = store.put_bucket(Bucket(name="H1", signature="H1", created_at=100.0, updated_at=100.0))
    store.associate_dump_with_bucket("D1", "H1")
    return store


class TestQueryService:
    """Test QueryService behavior through public interface."""

    @pytest.mark.parametrize("start, end", [(10.0, 10.0), (20.0, 10.0)])
    def test_invalid_window_rejected(self, start: float, end: float) -> None:
        service = QueryService(seeded(MemoryTriageStore()))

        with pytest.raises(InvalidRangeError):
            _ = service.list_active_buckets(start, end)

    def test_lists_active_buckets(self) -> None:
        service = QueryService(seeded(MemoryTriageStore()))

        assert [b.name for b in service.list_active_buckets(0.0, 101.0)] == ["H1"]
        assert service.list_active_buckets(101.0, 200.0) == []

    def test_unknown_bucket_lists_no_dumps(self) -> None:
        """List operations should surface a missing bucket as an empty result."""
        service = QueryService(seeded(MemoryTriageStore()))

        assert service.list_dumps("missing") == []
        assert [d.dump_id for d in service.list_dumps("H1")] == ["D1"]

    def test_unknown_dump_properties_raise(self) -> None:
        """Single-entity lookups should propagate NotFoundError."""
        service = QueryService(seeded(MemoryTriageStore()))

        with pytest.raises(NotFoundError):
            _ = service.get_properties_json("missing")

    def test_properties_json_is_sorted_and_compact(self) -> None:
        service = QueryService(seeded(MemoryTriageStore()))

        output = service.get_properties_json("D1")

        assert output == '{"dump_id":"D1","module":"é.dll","ok":true,"stack_hash":"H1","timestamp":100.0}'
        assert json.loads(output)["ok"] is True

    def test_properties_json_is_byte_identical_across_calls(self) -> None:
        """Repeated calls, cached or not, should produce identical output."""
        store = seeded(MemoryTriageStore())
        cached = QueryService(store)
        uncached = QueryService(store, cache_size=0)

        outputs = {
            cached.get_properties_json("D1"),
            cached.get_properties_json("D1"),
            uncached.get_properties_json("D1"),
            uncached.get_properties_json("D1"),
        }

        assert len(outputs) == 1

    def test_properties_are_cached_per_dump(self) -> None:
        store = seeded(CountingStore())
        service = QueryService(store)

        _ = service.get_properties_json("D1")
        _ = service.get_properties_json("D1")

        assert store.property_reads == 1

    def test_cache_can_be_disabled(self) -> None:
        store = seeded(CountingStore())
        service = QueryService(store, cache_size=0)

        _ = service.get_properties_json("D1")
        _ = service.get_properties_json("D1")

        assert store.property_reads == 2

    def test_cache_is_bounded(self) -> None:
        """Least recently served dumps should be evicted once the cache is full."""
        # Arrange
        store = CountingStore()
        for i in range(3):
            store.put_dump(Dump(dump_id=f"D{i}", timestamp=float(i), properties={"dump_id": f"D{i}"}))
        service = QueryService(store, cache_size=2)

        # Act
        for dump_id in ("D0", "D1", "D2"):
            _ = service.get_properties_json(dump_id)
        reads_before = store.property_reads
        _ = service.get_properties_json("D2")
        _ = service.get_properties_json("D0")

        # Assert
        assert service.get_cached_count() == 2
        assert store.property_reads == reads_before + 1, "D2 still cached, D0 evicted"

    def test_negative_cache_size_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            _ = QueryService(MemoryTriageStore(), cache_size=-1)

    def test_non_finite_properties_are_not_serialized(self) -> None:
        with pytest.raises(ValueError):
            _ = serialize_properties({"dump_id": "D1", "ratio": float("nan")})

    def test_store_unavailable_propagates(self) -> None:
        """Transient store failures should reach the caller untouched."""
        store = seeded(MemoryTriageStore(lock_timeout=0.05))
        service = QueryService(store)
        assert store._lock.acquire()
        try:
            with pytest.raises(StoreUnavailableError):
                _ = service.list_active_buckets(0.0, 200.0)
            with pytest.raises(StoreUnavailableError):
                _ = service.list_dumps("H1")
        finally:
            store._lock.release()

    def test_serialize_properties_ignores_insertion_order(self) -> None:
        assert serialize_properties({"b": 1, "a": "x"}) == serialize_properties({"a": "x", "b": 1})
