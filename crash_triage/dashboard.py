"""
Dashboard view model for crash triage.

Assembles the trailing-window triage view: active buckets, their dumps, and
each dump's serialized properties, as typed entries in display order.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone

from .exceptions import ConfigurationError
from .logging_config import get_logger
from .models import Bucket
from .query_service import QueryService

# Module-level logger
logger = get_logger("dashboard")


@dataclass
class DashboardConfig:
    """Configuration for the dashboard window and read fan-out."""

    window_days: int = 30  # days before the start of today
    lookahead_days: int = 1  # days after now, tolerates clock skew in dump timestamps
    max_workers: int = 4  # parallel per-bucket reads

    def __post_init__(self):
        """Validate configuration."""
        if self.window_days < 0:
            raise ConfigurationError(f"window_days cannot be negative, got {self.window_days}")
        if self.lookahead_days < 0:
            raise ConfigurationError(f"lookahead_days cannot be negative, got {self.lookahead_days}")
        if self.window_days == 0 and self.lookahead_days == 0:
            raise ConfigurationError("window_days and lookahead_days cannot both be zero")
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")


@dataclass(frozen=True)
class DumpEntry:
    dump_id: str
    timestamp: float
    payload_ref: str
    properties_json: str


@dataclass(frozen=True)
class BucketEntry:
    bucket: Bucket
    dumps: list[DumpEntry]


@dataclass
class DashboardView:
    """Buckets most recently active first, each with its dumps oldest first."""

    window_start: float
    window_end: float
    buckets: list[BucketEntry] = field(default_factory=list)
    title: str = "crash triage"

    @property
    def total_dumps(self) -> int:
        return sum(len(entry.dumps) for entry in self.buckets)


def dashboard_window(now: datetime, window_days: int = 30, lookahead_days: int = 1) -> tuple[float, float]:
    """[start of today - window_days, now + lookahead_days) as epoch seconds."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    start = start_of_day - timedelta(days=window_days)
    end = now + timedelta(days=lookahead_days)
    return start.timestamp(), end.timestamp()


def build_dashboard(
    query_service: QueryService,
    now: datetime | None = None,
    config: DashboardConfig | None = None,
) -> DashboardView:
    """
    Build the dashboard view for the window ending around `now`.

    Args:
        query_service: Query facade over the triage store
        now: Reference time (default: current UTC time)
        config: Window and fan-out settings

    Returns:
        DashboardView with one entry per active bucket
    """
    config = config or DashboardConfig()
    now = now or datetime.now(timezone.utc)
    start, end = dashboard_window(now, config.window_days, config.lookahead_days)

    buckets = query_service.list_active_buckets(start, end)

    def bucket_entry(bucket: Bucket) -> BucketEntry:
        dumps = [
            DumpEntry(
                dump_id=dump.dump_id,
                timestamp=dump.timestamp,
                payload_ref=dump.payload_ref,
                properties_json=query_service.get_properties_json(dump.dump_id),
            )
            for dump in query_service.list_dumps(bucket.name)
        ]
        return BucketEntry(bucket=bucket, dumps=dumps)

    # Reads need no coordination, map keeps bucket order
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        entries = list(executor.map(bucket_entry, buckets))

    view = DashboardView(window_start=start, window_end=end, buckets=entries)
    logger.info(f"Dashboard built: {len(view.buckets)} buckets, {view.total_dumps} dumps")
    return view
