"""Session configuration.

Read once at construction. The access token is mandatory; the endpoint
falls back to the conventional local Home Assistant address.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_WEBSOCKET_URL = "ws://localhost:8123/api/websocket"
WEBSOCKET_PATH = "/api/websocket"


def websocket_url_from_base(base_url: str) -> str:
    """Derive the WebSocket endpoint from a REST base URL.

    http://homeassistant.local:8123 -> ws://homeassistant.local:8123/api/websocket
    """
    url = base_url.rstrip("/")
    if url.startswith("https://"):
        url = "wss://" + url[len("https://") :]
    elif url.startswith("http://"):
        url = "ws://" + url[len("http://") :]
    if not url.endswith(WEBSOCKET_PATH):
        url = f"{url}{WEBSOCKET_PATH}"
    return url


def _optional_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class SessionConfig:
    """Configuration for a HomeAssistantSession."""

    url: str = DEFAULT_WEBSOCKET_URL
    access_token: str | None = None

    # None waits for a response forever
    request_timeout: float | None = None
    connect_timeout: float = 10.0

    # WebSocket keepalive
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SessionConfig:
        """Build a config from HA_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ (for tests)
        """
        env = os.environ if environ is None else environ

        url = env.get("HA_WEBSOCKET_URL")
        if not url:
            base_url = env.get("HA_URL")
            url = websocket_url_from_base(base_url) if base_url else DEFAULT_WEBSOCKET_URL

        return cls(
            url=url,
            access_token=env.get("HA_TOKEN") or None,
            request_timeout=_optional_float(env.get("HA_REQUEST_TIMEOUT")),
        )
