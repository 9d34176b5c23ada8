"""
Abstract base classes defining the interfaces for the crash triage system.

All interfaces are synchronous; callers that want concurrency run them in a
thread pool.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence

from .models import Bucket, Dump, PropertySet, RawDump


class DumpFetcher(ABC):
    """Interface for fetching raw dumps from a source."""

    @abstractmethod
    def list_dumps(self) -> Iterable[RawDump]:
        """Return all available raw dumps."""
        pass


class PropertyExtractor(ABC):
    """Interface for turning a raw dump into a normalized property set."""

    @abstractmethod
    def extract(self, raw: RawDump | bytes | str | Mapping[str, object]) -> PropertySet:
        """
        Extract normalized properties.

        Raises:
            MalformedDumpError: if the dump id or timestamp cannot be parsed
        """
        pass


class FuzzyMatchPolicy(ABC):
    """Optional near-match policy consulted when no exact signature matches."""

    @abstractmethod
    def find_match(self, signature: str, properties: PropertySet) -> str | None:
        """Return the id of an existing bucket to reuse, or None."""
        pass


class Classifier(ABC):
    """Interface for assigning dumps to buckets."""

    @abstractmethod
    def signature_for(self, properties: PropertySet) -> str:
        """Compute the canonical signature of a property set."""
        pass

    @abstractmethod
    def assign(self, properties: PropertySet) -> tuple[str, bool]:
        """Return (bucket id, whether this call created the bucket)."""
        pass

    def classify(self, properties: PropertySet) -> str:
        """Return the id of the bucket these properties belong to, creating it if needed."""
        bucket_id, _ = self.assign(properties)
        return bucket_id


class TriageStore(ABC):
    """
    Interface for persisting buckets, dumps and their associations.

    Writes are idempotent. Reads return copies and never observe a partially
    applied association.
    """

    @abstractmethod
    def put_dump(self, dump: Dump) -> None:
        """Store a dump. Re-storing an identical dump is a no-op."""
        pass

    @abstractmethod
    def put_bucket(self, bucket: Bucket) -> Bucket:
        """Store a bucket if absent and return the stored bucket."""
        pass

    @abstractmethod
    def associate_dump_with_bucket(self, dump_id: str, bucket_id: str) -> None:
        """Assign a dump to a bucket. Re-applying the same pair is a no-op."""
        pass

    @abstractmethod
    def get_bucket(self, bucket_id: str) -> Bucket:
        """Get a bucket by id."""
        pass

    @abstractmethod
    def find_bucket_by_signature(self, signature: str) -> Bucket | None:
        """Exact signature lookup."""
        pass

    @abstractmethod
    def get_dump(self, dump_id: str) -> Dump:
        """Get a dump by id."""
        pass

    @abstractmethod
    def get_buckets_in_range(self, start: float, end: float) -> Sequence[Bucket]:
        """Buckets updated in [start, end), most recently updated first."""
        pass

    @abstractmethod
    def get_dumps_for_bucket(self, bucket_id: str) -> Sequence[Dump]:
        """Member dumps of a bucket, oldest first."""
        pass

    @abstractmethod
    def get_properties(self, dump_id: str) -> PropertySet:
        """Properties of a dump."""
        pass
