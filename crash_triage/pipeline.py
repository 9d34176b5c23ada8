"""
Ingest pipeline for crash triage.

Coordinates extractor, classifier and store: dumps arrive, properties are
extracted, the dump is persisted, classified into a bucket and associated.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from .classifiers.signature_classifier import DEFAULT_SIGNATURE_FIELDS
from .exceptions import ConfigurationError, ConflictError, MalformedDumpError, ValidationError
from .interfaces import Classifier, PropertyExtractor, TriageStore
from .logging_config import get_logger
from .models import Dump, IngestResult, RawDump


@dataclass
class IngestConfig:
    """Configuration for ingest runs."""

    max_workers: int = 4  # thread pool size for ingest_many
    stack_depth: int = 10  # top frames feeding the stack hash
    signature_fields: tuple[str, ...] = DEFAULT_SIGNATURE_FIELDS

    def __post_init__(self):
        """Validate configuration."""
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")
        if self.stack_depth <= 0:
            raise ConfigurationError(f"stack_depth must be positive, got {self.stack_depth}")
        if not self.signature_fields:
            raise ConfigurationError("signature_fields cannot be empty")


@dataclass
class IngestReport:
    """Summary of an ingest_many run."""

    accepted: list[IngestResult] = field(default_factory=list)
    rejected: list[IngestResult] = field(default_factory=list)

    @property
    def buckets_created(self) -> int:
        return sum(1 for r in self.accepted if r.created_bucket)

    @property
    def total(self) -> int:
        return len(self.accepted) + len(self.rejected)


class IngestPipeline:
    """Runs raw dumps through extraction, persistence and classification."""

    def __init__(
        self,
        extractor: PropertyExtractor,
        classifier: Classifier,
        store: TriageStore,
        config: IngestConfig | None = None,
    ):
        """Initialize pipeline with all components."""
        self.extractor: PropertyExtractor = extractor
        self.classifier: Classifier = classifier
        self.store: TriageStore = store
        self.config: IngestConfig = config or IngestConfig()
        self.logger: Logger = get_logger("pipeline")

    def ingest(self, raw: RawDump) -> IngestResult:
        """
        Ingest one raw dump.

        Malformed dumps are rejected and reported in the result; they are not
        stored and not retried. Store failures propagate.
        """
        try:
            properties = self.extractor.extract(raw)
            dump = Dump(
                dump_id=str(properties["dump_id"]),
                timestamp=float(properties["timestamp"]),
                payload_ref=raw.payload_ref,
                properties=properties,
            )
        except (MalformedDumpError, ValidationError) as e:
            self.logger.bind(rejected=True).warning(
                f"Rejected malformed dump {raw.payload_ref or '<inline>'}: {e}"
            )
            return IngestResult(payload_ref=raw.payload_ref, error=str(e))

        try:
            self.store.put_dump(dump)
        except ConflictError as e:
            self.logger.bind(rejected=True).warning(f"Rejected dump {dump.dump_id}: {e}")
            return IngestResult(payload_ref=raw.payload_ref, dump_id=dump.dump_id, error=str(e))

        bucket_id, created = self.classifier.assign(properties)
        self.store.associate_dump_with_bucket(dump.dump_id, bucket_id)

        self.logger.debug(f"Dump {dump.dump_id} -> bucket {bucket_id}")
        return IngestResult(
            payload_ref=raw.payload_ref,
            dump_id=dump.dump_id,
            bucket_id=bucket_id,
            created_bucket=created,
        )

    def ingest_many(self, raws: Iterable[RawDump]) -> IngestReport:
        """Ingest dumps concurrently on a thread pool."""
        report = IngestReport()

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = [executor.submit(self.ingest, raw) for raw in raws]
            self.logger.info(f"Submitted {len(futures)} dumps with {self.config.max_workers} workers")

            for future in as_completed(futures):
                result = future.result()
                if result.accepted:
                    report.accepted.append(result)
                else:
                    report.rejected.append(result)

        self.logger.info(
            f"Ingest complete: {len(report.accepted)} accepted, {len(report.rejected)} rejected, "
            f"{report.buckets_created} buckets created"
        )
        return report
