"""
Error hierarchy for study material generation.

Every error carries a human-readable ``message`` and the HTTP ``status_code``
the blueprint answers with when the error reaches a request boundary.
"""

from typing import Optional


class StudyGenError(Exception):
    """Base exception for all generator errors."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ConfigurationError(StudyGenError):
    """Provider credentials or model name missing or rejected. Never retried."""


class ValidationError(StudyGenError):
    """Upload or transcript rejected before any job or generation work starts."""

    status_code = 400


class ParseError(StudyGenError):
    """Model output could not be reduced to JSON by any recovery tier."""

    status_code = 502


class TransportError(StudyGenError):
    """Network or provider failure while calling the model."""

    status_code = 502


class CorruptedDataError(StudyGenError):
    """A stored value exists but cannot be decoded."""


class StoreUnavailableError(StudyGenError):
    """The job store is not configured or not reachable."""

    status_code = 503
