"""
Dump fetcher implementations.

Provides implementations of the DumpFetcher interface for loading raw dumps
from various sources.

Available implementations:
- DirectoryDumpFetcher: Loads raw dump files from a directory tree
"""

from .directory_fetcher import DirectoryDumpFetcher

__all__ = ["DirectoryDumpFetcher"]
