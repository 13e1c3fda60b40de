"""Exceptions raised by the Netflix session client.

Two layers live here. The ``ApiError`` family is the internal taxonomy: each
class names one way a call can fail and carries the data needed to log the
root cause. ``SessionError`` subclasses are the coarse errors raised at
orchestration boundaries (login, bootstrap, a single domain operation); they
only keep the ``kind`` of the original failure and a message a user can act on.
"""
from enum import Enum


class ErrorKind(str, Enum):
    HTTP = "http"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    STRUCTURAL_MISMATCH = "structural_mismatch"
    INACTIVE_ACCOUNT = "inactive_account"
    MISSING_PROFILE = "missing_profile"
    LOGIN_REJECTED = "login_rejected"
    APPLICATION = "application"
    CONSISTENCY = "consistency"
    TRANSPORT = "transport"
    # Outside the taxonomy
    UNEXPECTED = "unexpected"


class NetflixError(Exception):
    """Base exception for all client errors."""

    pass


class ApiError(NetflixError):
    """Base of the failure taxonomy."""

    kind: ErrorKind = ErrorKind.HTTP


class HttpError(ApiError):
    """Raised for an unexpected HTTP status."""

    kind = ErrorKind.HTTP

    def __init__(self, status_code: int, reason: str | None = None):
        self.status_code = status_code
        self.reason = reason or ""
        super().__init__(f"{status_code}: {self.reason}")


class TooManyAttemptsOrBadCredentials(HttpError):
    """The login page answered 403; retrying right away will not help."""

    kind = ErrorKind.TOO_MANY_ATTEMPTS


class StructuralMismatch(ApiError):
    """Upstream data did not match any known shape."""

    kind = ErrorKind.STRUCTURAL_MISMATCH


class InactiveAccountError(ApiError):
    """Bootstrap state is well formed but the account is not a current member."""

    kind = ErrorKind.INACTIVE_ACCOUNT


class MissingProfileError(ApiError):
    """Bootstrap state is well formed but carries no member context."""

    kind = ErrorKind.MISSING_PROFILE


class LoginRejected(ApiError):
    """The login form was refused."""

    kind = ErrorKind.LOGIN_REJECTED

    def __init__(self, message: str = "Login failed"):
        self.message = message
        super().__init__(message)


class ApplicationError(ApiError):
    """HTTP 500 carrying a structured upstream error code."""

    kind = ErrorKind.APPLICATION

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Application error: {code}")


class ConsistencyError(ApiError):
    """The server echoed a mutation result that disagrees with the request."""

    kind = ErrorKind.CONSISTENCY

    def __init__(self, message: str, expected=None, actual=None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class TransportError(ApiError):
    """The request never produced an HTTP response."""

    kind = ErrorKind.TRANSPORT


class SessionError(NetflixError):
    """Coarse error surfaced to callers."""

    def __init__(self, message: str, operation: str, kind: ErrorKind):
        self.operation = operation
        self.kind = kind
        super().__init__(message)


class LoginError(SessionError):
    pass


class BootstrapError(SessionError):
    pass


class OperationError(SessionError):
    pass


_HINTS = {
    ErrorKind.TOO_MANY_ATTEMPTS: "too many login attempts or bad credentials; wait before trying again",
    ErrorKind.LOGIN_REJECTED: "the credentials were rejected",
    ErrorKind.INACTIVE_ACCOUNT: "the account is not an active member",
    ErrorKind.MISSING_PROFILE: "no profile is selected for this account",
    ErrorKind.STRUCTURAL_MISMATCH: "the service returned a page layout this client does not recognize",
    ErrorKind.TRANSPORT: "the service could not be reached",
    ErrorKind.APPLICATION: "the service rejected the request",
    ErrorKind.CONSISTENCY: "the service did not apply the change as requested",
    ErrorKind.HTTP: "the service answered with an unexpected status",
    ErrorKind.UNEXPECTED: "an unexpected error occurred; see the log for details",
}


def describe(operation: str, error: Exception) -> str:
    """Short, user-facing summary of ``error`` for ``operation``."""
    hint = _HINTS.get(error_kind(error), "unexpected failure")
    return f"{operation} failed: {hint}"


def error_kind(error: Exception) -> ErrorKind:
    """Kind of a taxonomy error; ``UNEXPECTED`` for anything else."""
    if isinstance(error, ApiError):
        return error.kind
    return ErrorKind.UNEXPECTED
