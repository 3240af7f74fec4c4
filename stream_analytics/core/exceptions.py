"""Exception hierarchy for the stream analytics backend.

Hierarchy::

    StreamAnalyticsError
    ├── PlatformError
    │   ├── AuthExpiredError
    │   └── TransientFetchError
    ├── InconsistentStateError
    └── ApiError             (status_code, error)
"""

from __future__ import annotations


class StreamAnalyticsError(Exception):
    """Base class for all application-specific exceptions."""


# ---------------------------------------------------------------------------
# Platform (Twitch) failures
# ---------------------------------------------------------------------------


class PlatformError(StreamAnalyticsError):
    """Raised when a Twitch API call does not produce a usable result.

    Args:
        message: Human-readable description of the failure.
        endpoint: Helix path that failed (e.g. ``"streams"``).
        status_code: HTTP status returned by Twitch, if any.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class AuthExpiredError(PlatformError):
    """Twitch rejected the access token (HTTP 401/403)."""


class TransientFetchError(PlatformError):
    """Network error, timeout, 5xx or malformed response. Retry next tick."""


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


class InconsistentStateError(StreamAnalyticsError):
    """A session store operation was called in a state that forbids it.

    Indicates a logic bug in the caller, e.g. ``finalize`` with no
    in-progress session or ``begin`` while one is already running.
    """

    def __init__(self, message: str, channel_id: str | None = None) -> None:
        super().__init__(message)
        self.channel_id = channel_id


# ---------------------------------------------------------------------------
# HTTP-facing errors
# ---------------------------------------------------------------------------


class ApiError(StreamAnalyticsError):
    """Error returned to HTTP clients as ``{"error": ...}`` JSON.

    Args:
        status_code: HTTP status code of the response.
        error: Message placed in the ``error`` field.
    """

    def __init__(self, status_code: int, error: str) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
