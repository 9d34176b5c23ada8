"""
Classifier implementations.

Provides implementations of the Classifier interface for assigning dumps to
buckets.

Available implementations:
- SignatureClassifier: Exact match on a canonical signature string
"""

from .signature_classifier import SignatureClassifier, UNKNOWN_SIGNATURE

__all__ = ["SignatureClassifier", "UNKNOWN_SIGNATURE"]
