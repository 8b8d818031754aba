"""Error taxonomy for the Home Assistant WebSocket session.

Every failure raised by the session layer derives from HassWsError so
tool handlers can catch one base class. Connection and timeout failures
also subclass the matching builtins.
"""

from __future__ import annotations

from typing import Any


class HassWsError(Exception):
    """Base class for all session errors."""

    pass


class MissingCredentialError(HassWsError):
    """Raised at construction when no access token is configured."""

    pass


class ConnectionFailedError(HassWsError, ConnectionError):
    """Raised when the endpoint cannot be reached during connect()."""

    pass


class AuthenticationError(HassWsError):
    """Raised when the upstream rejects the access token."""

    pass


class NotConnectedError(HassWsError):
    """Raised when a frame is sent while the connection is not authenticated."""

    pass


class ConnectionClosed(HassWsError):
    """Raised to callers whose request was pending when the connection closed."""

    pass


class CommandTimeoutError(HassWsError, TimeoutError):
    """Raised when no response arrives within the configured window."""

    pass


class RemoteError(HassWsError):
    """The upstream reported that a command failed.

    Attributes:
        code: Upstream error code (e.g. "not_found", "invalid_format")
        message: Upstream human-readable message
        details: The raw error object as received
    """

    def __init__(
        self,
        code: str | None,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"{code}: {message}" if code else message)
        self.code = code
        self.message = message
        self.details = details or {}
