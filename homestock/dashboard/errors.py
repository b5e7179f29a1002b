"""Error taxonomy for the dashboard engine.

Every error carries a ``user_message`` suitable for display as-is.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for engine errors."""

    recoverable = False

    def __init__(self, user_message: str) -> None:
        super().__init__(user_message)
        self.user_message = user_message


class AuthError(DashboardError):
    """Bad client configuration, denied consent, or a provider token error."""

    @classmethod
    def failed(cls, detail: str) -> AuthError:
        return cls(f"Authentication failed: {detail}")


class SessionExpiredError(DashboardError):
    """The backing store rejected the credential (HTTP 401)."""

    def __init__(self, user_message: str = "Session expired. Please sign in again.") -> None:
        super().__init__(user_message)


class NetworkError(DashboardError):
    """Non-2xx, non-401 response or a transport failure."""

    recoverable = True


class DataFormatError(DashboardError):
    """The sheet returned no rows."""

    recoverable = True


class WriteError(DashboardError):
    """A quantity write failed after the local update was applied."""

    def __init__(self, user_message: str = "Failed to update. Please try again.") -> None:
        super().__init__(user_message)
