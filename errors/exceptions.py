"""Domain-specific exceptions for the practice conversation stack.

Adapters, response providers and session stores raise these.  The
conversation engine catches them at its boundary and turns them into
user-facing notices, so callers of the engine see results rather than
tracebacks.
"""

from __future__ import annotations


class PracticeError(Exception):
    """Base class for every recoverable practice-session failure."""

    code = "practice_error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class PermissionDenied(PracticeError):
    """The capture device refused access (e.g. microphone permission)."""

    code = "permission_denied"


class Unsupported(PracticeError):
    """The platform lacks the requested speech capability."""

    code = "unsupported"


class ProviderError(PracticeError):
    """The response provider failed to produce the next utterance."""

    code = "provider_error"


class PersistenceError(PracticeError):
    """Reading or writing a session record failed."""

    code = "persistence_error"


class SessionNotFound(PracticeError):
    """No session is stored under the requested identifier."""

    code = "not_found"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"session '{session_id}' not found")


class ReportUnavailable(PracticeError):
    """A report cannot be produced for the requested session.

    Raised for unknown identifiers, unreadable records and sessions whose
    transcript is empty.  Scores are never fabricated in that case.
    """

    code = "report_unavailable"

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"report unavailable for '{session_id}': {reason}")


class Busy(PracticeError):
    """An operation was attempted in a state that does not allow it."""

    code = "busy"
