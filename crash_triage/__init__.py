"""
Crash Triage - Crash Dump Bucketing and Triage Queries

Extracts normalized properties from raw crash dumps, clusters dumps into
buckets by canonical signature, and serves the windowed bucket, dump and
property queries behind a triage dashboard.
"""

from .models import Bucket, Dump, IngestResult, PropertySet, RawDump
from .interfaces import Classifier, DumpFetcher, PropertyExtractor, TriageStore
from .pipeline import IngestConfig, IngestPipeline, IngestReport
from .query_service import QueryService
from .dashboard import DashboardConfig, DashboardView, build_dashboard

__version__ = "0.1.0"
__all__ = [
    "Bucket",
    "Dump",
    "IngestResult",
    "PropertySet",
    "RawDump",
    "Classifier",
    "DumpFetcher",
    "PropertyExtractor",
    "TriageStore",
    "IngestConfig",
    "IngestPipeline",
    "IngestReport",
    "QueryService",
    "DashboardConfig",
    "DashboardView",
    "build_dashboard",
]
