"""
Directory dump fetcher implementation.

Reads raw dump files from a directory tree.
"""

from collections.abc import Iterable
from pathlib import Path

from typing_extensions import override

from ..interfaces import DumpFetcher
from ..logging_config import get_logger
from ..models import RawDump


class DirectoryDumpFetcher(DumpFetcher):
    """
    Dump fetcher that reads from a directory tree.

    Payloads are returned unparsed; extraction happens in the pipeline.
    """

    def __init__(self, dumps_dir: Path, pattern: str = "*.json"):
        """
        Initialize directory dump fetcher.

        Args:
            dumps_dir: Directory containing dump files
            pattern: File pattern to match (default: "*.json")
        """
        self.dumps_dir: Path = Path(dumps_dir)
        self.pattern: str = pattern

        self.logger = get_logger("directory_fetcher")

        if not self.dumps_dir.exists():
            raise FileNotFoundError(f"Dumps directory does not exist: {self.dumps_dir}")

        if not self.dumps_dir.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {self.dumps_dir}")

    def list_paths(self) -> list[Path]:
        """Matching dump files inside the directory, sorted for stable order."""
        root = self.dumps_dir.resolve()
        paths = list[Path]()

        for dump_file in sorted(self.dumps_dir.rglob(self.pattern)):
            # Symlinks may point outside the dumps directory
            try:
                dump_file.resolve().relative_to(root)
            except ValueError:
                self.logger.warning(f"Skipping file outside dumps directory: {dump_file}")
                continue
            if dump_file.is_dir():
                continue
            paths.append(dump_file)

        if not paths:
            self.logger.warning(f"No files matching pattern '{self.pattern}' found in {self.dumps_dir}")
        return paths

    @override
    def list_dumps(self) -> Iterable[RawDump]:
        """Yield raw dumps; unreadable files are logged and skipped."""
        for dump_file in self.list_paths():
            try:
                payload = dump_file.read_bytes()
            except OSError as e:
                self.logger.error(f"Failed to read {dump_file}: {e}")
                continue
            yield RawDump(payload=payload, payload_ref=str(dump_file.resolve()))
