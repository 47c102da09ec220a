# EVALSYNC Errors
# Failure taxonomy for queued mutation delivery

from typing import Optional


class SyncError(Exception):
    """
    Base class for offline sync failures.

    Retryable errors are background state and never reach the user.
    Non-retryable errors always carry a user-facing message.
    """

    retryable: bool = False
    user_message: str = "An unexpected error occurred. Please try again."

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message or self.user_message)
        self.status_code = status_code

    @property
    def kind(self) -> str:
        """Stable name used when persisting failure info."""
        return type(self).__name__


class NetworkUnavailable(SyncError):
    """Transport failure: no route, DNS, refused connection or timeout."""

    retryable = True
    user_message = "Network error. Your data will sync when you're back online."


class ServerTransient(SyncError):
    """Server-side 5xx response."""

    retryable = True
    user_message = "Service is temporarily unavailable. Please try again later."


class CredentialRejected(SyncError):
    """The server rejected the bearer credential (401/403)."""

    user_message = "Your session has expired. Please sign in again."


class PayloadRejected(SyncError):
    """The server refused the payload itself (4xx other than auth)."""

    user_message = "The server rejected an offline change."

    def __init__(self, reason: str = "", *, status_code: Optional[int] = None):
        super().__init__(reason or self.user_message, status_code=status_code)
        self.reason = reason or self.user_message


class MalformedLocalState(SyncError):
    """A queued item can no longer be replayed (structurally invalid credential)."""

    user_message = "One offline item could not be recovered."


class StorageFull(SyncError):
    """Local storage is exhausted; the new action was not queued."""

    user_message = "Unable to save data locally. Please free up space and try again."
