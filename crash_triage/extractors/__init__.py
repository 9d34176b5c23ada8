"""
Property extractor implementations.

Available implementations:
- DumpPropertyExtractor: JSON records and debugger-style text headers
"""

from .dump_extractor import DumpPropertyExtractor, compute_stack_hash, normalize_frame

__all__ = ["DumpPropertyExtractor", "compute_stack_hash", "normalize_frame"]
