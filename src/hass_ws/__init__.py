"""Home Assistant WebSocket session.

One authenticated connection, many concurrent commands correlated by id,
and any number of event subscriptions multiplexed over the same socket.
"""

from .config import SessionConfig
from .connection import Connection, ConnectionState
from .correlator import Correlator
from .errors import (
    AuthenticationError,
    CommandTimeoutError,
    ConnectionClosed,
    ConnectionFailedError,
    HassWsError,
    MissingCredentialError,
    NotConnectedError,
    RemoteError,
)
from .session import HomeAssistantSession
from .subscriptions import Subscription, SubscriptionMultiplexer

__all__ = [
    "AuthenticationError",
    "CommandTimeoutError",
    "Connection",
    "ConnectionClosed",
    "ConnectionFailedError",
    "ConnectionState",
    "Correlator",
    "HassWsError",
    "HomeAssistantSession",
    "MissingCredentialError",
    "NotConnectedError",
    "RemoteError",
    "SessionConfig",
    "Subscription",
    "SubscriptionMultiplexer",
]
