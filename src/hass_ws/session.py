"""Home Assistant WebSocket session.

The one object tool handlers use. Wires the pieces together:

    HomeAssistantSession
      -> Connection (auth handshake, reader, serialised send)
      -> Correlator (command id -> waiting caller)
      -> SubscriptionMultiplexer (subscription id -> callback)

Every operation goes through _ensure_ready(), which connects on first use
and reconnects after a drop. Errors propagate unchanged; turning them into
user-facing text is the tool layer's job.

Usage:
    config = SessionConfig.from_env()
    async with HomeAssistantSession(config) as session:
        states = await session.get_all_states()

        unsubscribe = await session.subscribe_events(print, "state_changed")
        ...
        await unsubscribe()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .config import SessionConfig
from .connection import Connection, ConnectionState
from .correlator import Correlator
from .errors import HassWsError, MissingCredentialError
from .protocol import Command, CommandType, EventMessage, ResultMessage, parse_frame
from .subscriptions import EventCallback, EventFilter, Subscription, SubscriptionMultiplexer
from .transport import FrameTransport, WebSocketFrameTransport

logger = logging.getLogger(__name__)


class HomeAssistantSession:
    """Session facade over one upstream WebSocket connection."""

    def __init__(
        self,
        config: SessionConfig,
        transport: FrameTransport | None = None,
    ) -> None:
        """
        Args:
            config: Endpoint, credential and timeouts
            transport: Frame transport to use (WebSocket to config.url when None)

        Raises:
            MissingCredentialError: If config has no access token
        """
        if not config.access_token:
            raise MissingCredentialError("HA_TOKEN is required to connect to Home Assistant")

        self.config = config
        self._transport = transport or WebSocketFrameTransport(
            config.url,
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
            open_timeout=config.connect_timeout,
        )
        self._connection = Connection(
            self._transport,
            config.access_token,
            connect_timeout=config.connect_timeout,
        )
        self._correlator = Correlator(
            self._connection.send,
            default_timeout=config.request_timeout,
        )
        self._subscriptions = SubscriptionMultiplexer(self._correlator)

        self._connection.set_frame_handler(self._route_frame)
        self._connection.set_close_handler(self._handle_closed)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        transport: FrameTransport | None = None,
    ) -> HomeAssistantSession:
        """Create a session configured from HA_* environment variables."""
        return cls(SessionConfig.from_env(environ), transport=transport)

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        """Check if the session is authenticated."""
        return self._connection.is_authenticated

    @property
    def ha_version(self) -> str | None:
        """Home Assistant version reported during the handshake."""
        return self._connection.ha_version

    @property
    def pending_count(self) -> int:
        """Number of commands awaiting a response."""
        return self._correlator.pending_count

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return self._subscriptions.active_count

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Connect and authenticate (no-op when already connected)."""
        await self._connection.connect()

    async def close(self) -> None:
        """Close the connection; pending calls fail with ConnectionClosed."""
        await self._connection.close()

    async def _ensure_ready(self) -> None:
        await self._connection.connect()

    async def __aenter__(self) -> HomeAssistantSession:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Inbound routing
    # =========================================================================

    def _route_frame(self, frame: dict[str, Any]) -> None:
        """Demultiplex one inbound frame to the correlator or a subscription."""
        message = parse_frame(frame)
        if isinstance(message, EventMessage):
            self._subscriptions.dispatch(message)
        elif isinstance(message, ResultMessage):
            self._correlator.resolve(message)
        else:
            logger.warning(f"Dropping unrecognised frame: type={frame.get('type')!r}")

    def _handle_closed(self, reason: HassWsError) -> None:
        self._correlator.fail_all(reason)
        self._subscriptions.deactivate_all()

    # =========================================================================
    # Commands
    # =========================================================================

    async def call(self, command: Command, *, timeout: float | None = None) -> Any:
        """Send any command and return its result payload."""
        await self._ensure_ready()
        return await self._correlator.call(command, timeout=timeout)

    async def get_all_states(self) -> list[dict[str, Any]]:
        """Return the state objects of every entity."""
        return await self.call(Command.create(CommandType.GET_STATES))

    async def get_state(self, entity_id: str) -> dict[str, Any] | None:
        """Return one entity's state object, or None if it does not exist."""
        states = await self.get_all_states()
        for state in states or []:
            if state.get("entity_id") == entity_id:
                return state
        return None

    async def get_config(self) -> dict[str, Any]:
        """Return the core configuration (location, units, version...)."""
        return await self.call(Command.create(CommandType.GET_CONFIG))

    async def get_services(self) -> dict[str, Any]:
        """Return available services keyed by domain."""
        return await self.call(Command.create(CommandType.GET_SERVICES))

    async def call_service(
        self,
        domain: str,
        service: str,
        service_data: dict[str, Any] | None = None,
        target: dict[str, Any] | None = None,
    ) -> Any:
        """Call a service.

        Args:
            domain: Service domain (e.g. "light")
            service: Service name (e.g. "turn_on")
            service_data: Optional service fields
            target: Optional entity_id / device_id / area_id selection

        Returns:
            The upstream acknowledgment (context and optional response)
        """
        return await self.call(Command.call_service(domain, service, service_data, target))

    async def fire_event(self, event_type: str, event_data: dict[str, Any] | None = None) -> Any:
        """Fire a custom event. One round trip, nothing stays registered."""
        return await self.call(Command.fire_event(event_type, event_data))

    async def validate_config(self) -> dict[str, Any]:
        """Run the upstream configuration check."""
        return await self.call(Command.create(CommandType.CHECK_CONFIG))

    async def ping(self) -> None:
        """Round-trip an application-level ping."""
        await self.call(Command.create(CommandType.PING))

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def subscribe_events(
        self,
        callback: EventCallback,
        event_type: str | None = None,
        *,
        event_filter: EventFilter | None = None,
    ) -> Subscription:
        """Subscribe to bus events.

        Args:
            callback: Called with each event payload
            event_type: Upstream filter (all events when None)
            event_filter: Optional local predicate applied before callback

        Returns:
            Subscription; ``await subscription()`` unsubscribes
        """
        await self._ensure_ready()
        return await self._subscriptions.subscribe(
            Command.subscribe_events(event_type),
            callback,
            event_filter=event_filter,
        )

    async def subscribe_trigger(
        self,
        callback: EventCallback,
        trigger: dict[str, Any] | list[dict[str, Any]],
    ) -> Subscription:
        """Subscribe to an automation trigger; callback gets trigger variables."""
        await self._ensure_ready()
        return await self._subscriptions.subscribe(Command.subscribe_trigger(trigger), callback)

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription (best effort, never raises)."""
        await self._subscriptions.unsubscribe(subscription)
