"""
Exception hierarchy for the sync system.

Fatal errors stop a pass (and the scheduler loop). Everything else is
reported and the pass carries on.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync errors."""


class ApiError(SyncError):
    """The remote API could not be reached or returned an error."""

    def __init__(self, message: str, error_type: Optional[str] = None):
        self.error_type = error_type
        if error_type:
            message = f"{message}: {error_type}"
        super().__init__(message)


class AuthenticationError(ApiError):
    """Access token could not be acquired."""


class StoreError(SyncError):
    """The persistent store could not be read or written."""


class NotificationError(SyncError):
    """A notification could not be delivered."""


class FatalSyncError(SyncError):
    """A pass cannot continue. Always chained to the underlying error."""
