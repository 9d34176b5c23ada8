"""
Query service for crash triage.

Read-only facade over a triage store answering the three dashboard queries:
active buckets in a window, dumps of a bucket, properties of a dump.
"""

import json
import threading
from collections import OrderedDict
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from .exceptions import ConfigurationError, InvalidRangeError, NotFoundError
from .interfaces import TriageStore
from .logging_config import get_logger
from .models import Bucket, Dump, PropertySet

DEFAULT_CACHE_SIZE = 4096


def serialize_properties(properties: PropertySet) -> str:
    """Deterministic JSON: sorted keys, compact separators."""
    return json.dumps(properties, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


class QueryService:
    """
    Read-only query facade.

    Thread Safety: safe to call from any number of threads. The properties
    cache is keyed by dump id and bounded, least recently served first out;
    dumps are immutable so entries never go stale.
    StoreUnavailableError from the store is not retried here.
    """

    def __init__(self, store: TriageStore, cache_size: int = DEFAULT_CACHE_SIZE):
        """
        Initialize query service.

        Args:
            store: Store handle acquired by the caller
            cache_size: Most recently served dumps whose serialized properties
                are kept; 0 disables caching
        """
        if cache_size < 0:
            raise ConfigurationError(f"cache_size cannot be negative, got {cache_size}")
        self.store: TriageStore = store
        self.cache_size: int = cache_size
        self._properties_cache = OrderedDict[str, str]()
        self._cache_lock: threading.Lock = threading.Lock()
        self.logger: Logger = get_logger("query_service")

    def list_active_buckets(self, window_start: float, window_end: float) -> Sequence[Bucket]:
        """
        Buckets last updated in [window_start, window_end), most recent first.

        Raises:
            InvalidRangeError: if window_start is not before window_end
        """
        if not window_start < window_end:
            raise InvalidRangeError(
                f"window_start ({window_start}) must be before window_end ({window_end})"
            )
        buckets = self.store.get_buckets_in_range(window_start, window_end)
        self.logger.debug(f"{len(buckets)} active buckets in [{window_start}, {window_end})")
        return buckets

    def list_dumps(self, bucket_id: str) -> Sequence[Dump]:
        """Dumps assigned to a bucket; empty for an unknown bucket."""
        try:
            return self.store.get_dumps_for_bucket(bucket_id)
        except NotFoundError:
            self.logger.debug(f"list_dumps for unknown bucket {bucket_id}")
            return []

    def get_properties_json(self, dump_id: str) -> str:
        """
        Serialized properties of a dump.

        Raises:
            NotFoundError: if the dump does not exist
        """
        if self.cache_size:
            with self._cache_lock:
                cached = self._properties_cache.get(dump_id)
                if cached is not None:
                    self._properties_cache.move_to_end(dump_id)
            if cached is not None:
                return cached

        serialized = serialize_properties(self.store.get_properties(dump_id))

        if self.cache_size:
            with self._cache_lock:
                self._properties_cache[dump_id] = serialized
                self._properties_cache.move_to_end(dump_id)
                while len(self._properties_cache) > self.cache_size:
                    _ = self._properties_cache.popitem(last=False)
        return serialized

    def get_cached_count(self) -> int:
        """Get number of dumps whose serialized properties are cached."""
        with self._cache_lock:
            return len(self._properties_cache)
