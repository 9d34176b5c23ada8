"""
Exception classes for the crash triage system.

Centralized location for all custom exceptions to avoid circular imports.
"""


class TriageError(Exception):
    """Base exception for all crash triage errors."""
    pass


class ValidationError(TriageError):
    """Raised when a model is constructed with invalid data."""
    pass


class ConfigurationError(TriageError):
    """Raised for invalid runtime configuration."""
    pass


class MalformedDumpError(TriageError):
    """Raised when a raw dump is missing or has unparseable mandatory fields."""
    pass


class NotFoundError(TriageError):
    """Raised when a referenced bucket or dump does not exist."""
    pass


class InvalidRangeError(TriageError):
    """Raised for a time window whose start is not before its end."""
    pass


class StoreUnavailableError(TriageError):
    """Raised on backing store failure or timeout. Callers may retry."""
    pass


class ConflictError(TriageError):
    """Raised when a write contradicts data already in the store."""
    pass
