"""
Error taxonomy for the social data-access layer.

Two families:

- ``StoreError``: raised by document store backends. Carries a normalized
  ``code`` so callers can tell permission problems and missing indexes apart
  from transient failures without knowing which backend is configured.
- ``SocialError``: raised by the services for invariant violations
  (self-friending, duplicate requests, self-notification, illegal state
  transitions, broken comment threads).

Nothing in this package retries; classification helpers below let the
caller decide what to show.
"""
import enum
from typing import List, Optional


class StoreErrorCode(str, enum.Enum):
    PERMISSION_DENIED = "permission-denied"
    UNAUTHENTICATED = "unauthenticated"
    FAILED_PRECONDITION = "failed-precondition"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class StoreError(Exception):
    """A failure reported by the document store."""

    def __init__(self, code: StoreErrorCode, message: str = ""):
        self.code = StoreErrorCode(code)
        self.message = message or self.code.value
        super().__init__(f"[{self.code.value}] {self.message}")


class SocialError(Exception):
    """Base class for invariant violations raised by the services."""


class ValidationError(SocialError):
    """Candidate record failed validation. Raised before any write."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "validation failed")


class SelfReferenceError(SocialError):
    """A user tried to friend themselves."""


class SelfNotificationError(SocialError):
    """A notification would be delivered to its own actor."""


class AlreadyExistsError(SocialError):
    """A pending or accepted friend request (or friendship) already exists."""


class InvalidTransitionError(SocialError):
    """Friend request state change not allowed from the current state or by this user."""


class InvalidThreadError(SocialError):
    """A reply does not point at an existing root comment of the same event."""


class OwnershipError(SocialError):
    """Mutation attempted by someone other than the owner."""


class NotFoundError(SocialError):
    """A document the operation depends on does not exist."""


# User-facing copy per error category
PERMISSION_DENIED_MESSAGE = "You do not have permission to perform this action. Please verify your email."
UNAUTHENTICATED_MESSAGE = "Please sign in to continue."
FAILED_PRECONDITION_MESSAGE = "This query is not supported yet. Please try again later."
GENERIC_MESSAGE = "An unexpected error occurred. Please try again."


def _store_code(error: BaseException) -> Optional[StoreErrorCode]:
    if isinstance(error, StoreError):
        return error.code
    return None


def is_permission_denied(error: BaseException) -> bool:
    """True for permission-denied and unauthenticated store failures."""
    return _store_code(error) in (StoreErrorCode.PERMISSION_DENIED, StoreErrorCode.UNAUTHENTICATED)


def is_unauthenticated(error: BaseException) -> bool:
    return _store_code(error) == StoreErrorCode.UNAUTHENTICATED


def is_failed_precondition(error: BaseException) -> bool:
    """True when the store rejected a query, typically for a missing composite index."""
    return _store_code(error) == StoreErrorCode.FAILED_PRECONDITION


def is_actionable(error: BaseException) -> bool:
    """Errors that must be surfaced rather than degraded into an empty result."""
    return is_permission_denied(error) or is_failed_precondition(error)


def error_message(error: BaseException) -> str:
    """Map an error to the copy shown to the user."""
    if is_unauthenticated(error):
        return UNAUTHENTICATED_MESSAGE
    if is_permission_denied(error):
        return PERMISSION_DENIED_MESSAGE
    if is_failed_precondition(error):
        return FAILED_PRECONDITION_MESSAGE
    if isinstance(error, ValidationError):
        return "; ".join(error.errors)
    if isinstance(error, SocialError):
        return str(error)
    return GENERIC_MESSAGE
