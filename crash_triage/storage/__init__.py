"""
Storage implementations.

Provides implementations of the TriageStore interface for persisting buckets,
dumps and their associations.

Available implementations:
- MemoryTriageStore: Indexed in-memory store, for tests and single runs
- JSONLTriageStore: Durable store backed by an append-only JSONL journal
"""

from .jsonl_store import JSONLTriageStore
from .memory_store import MemoryTriageStore

__all__ = ["JSONLTriageStore", "MemoryTriageStore"]
