"""Custom exception hierarchy for practice sessions."""

from errors.exceptions import (
    Busy,
    PermissionDenied,
    PersistenceError,
    PracticeError,
    ProviderError,
    ReportUnavailable,
    SessionNotFound,
    Unsupported,
)

__all__ = [
    "Busy",
    "PermissionDenied",
    "PersistenceError",
    "PracticeError",
    "ProviderError",
    "ReportUnavailable",
    "SessionNotFound",
    "Unsupported",
]
