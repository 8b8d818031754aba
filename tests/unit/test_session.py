"""Tests for the HomeAssistantSession facade over the mock transport."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from hass_ws import (
    AuthenticationError,
    CommandTimeoutError,
    ConnectionClosed,
    ConnectionState,
    HomeAssistantSession,
    RemoteError,
    SessionConfig,
)
from hass_ws.protocol import Command
from hass_ws.transport import MockFrameTransport


async def flush() -> None:
    """Let the reader task drain injected frames."""
    await asyncio.sleep(0.01)


class SlowCloseTransport(MockFrameTransport):
    """Mock upstream whose close() keeps yielding after the channel is gone."""

    async def close(self) -> None:
        await super().close()
        await asyncio.sleep(0.05)


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Test connect-on-demand, close and the context manager."""

    @pytest.mark.asyncio
    async def test_first_command_connects(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("get_config", {})

        assert session.state == ConnectionState.DISCONNECTED
        await session.get_config()

        assert session.is_connected
        assert session.ha_version == "2024.1.0"
        assert transport.open_count == 1

    @pytest.mark.asyncio
    async def test_commands_share_one_connection(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("get_config", {})
        transport.set_result("get_services", {})

        await asyncio.gather(session.get_config(), session.get_services(), session.get_config())

        assert transport.open_count == 1
        assert transport.auth_attempts == 1

    @pytest.mark.asyncio
    async def test_context_manager(
        self, config: SessionConfig, transport: MockFrameTransport
    ) -> None:
        async with HomeAssistantSession(config, transport=transport) as session:
            assert session.is_connected

        assert session.state == ConnectionState.DISCONNECTED
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_bad_token_surfaces_authentication_error(
        self, transport: MockFrameTransport
    ) -> None:
        config = SessionConfig(url="ws://ha.test/api/websocket", access_token="wrong")
        session = HomeAssistantSession(config, transport=transport)

        with pytest.raises(AuthenticationError):
            await session.get_config()

        assert transport.commands == []

    @pytest.mark.asyncio
    async def test_from_env(self, transport: MockFrameTransport) -> None:
        session = HomeAssistantSession.from_env(
            {"HA_URL": "http://ha.test:8123", "HA_TOKEN": "abc"}, transport=transport
        )

        assert session.config.url == "ws://ha.test:8123/api/websocket"
        assert session.config.access_token == "abc"


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    """Test request/response commands."""

    @pytest.mark.asyncio
    async def test_get_config_round_trip(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("get_config", {"version": "2024.1.0", "location_name": "Home"})

        result = await session.get_config()

        assert result == {"version": "2024.1.0", "location_name": "Home"}
        assert transport.commands == [{"type": "get_config", "id": 1}]
        assert session.pending_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_calls_resolved_out_of_order(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        await session.connect()

        first = asyncio.create_task(session.get_config())
        await flush()
        second = asyncio.create_task(session.get_services())
        await flush()

        assert [c["id"] for c in transport.commands] == [1, 2]

        transport.push_result(2, {"light": {}})
        transport.push_result(1, {"version": "2024.1.0"})

        assert await first == {"version": "2024.1.0"}
        assert await second == {"light": {}}

    @pytest.mark.asyncio
    async def test_stray_result_is_ignored(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        """A result for an id nobody waits on leaves pending calls alone."""
        await session.connect()
        task = asyncio.create_task(session.get_config())
        await flush()

        transport.push_result(999, "stray")
        await flush()

        assert not task.done()
        assert session.pending_count == 1

        transport.push_result(1, {"version": "x"})
        assert await task == {"version": "x"}

    @pytest.mark.asyncio
    async def test_unrecognised_frame_is_dropped(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        await session.connect()
        transport.inject({"type": "something_new"})
        transport.set_result("get_config", {"ok": True})

        assert await session.get_config() == {"ok": True}

    @pytest.mark.asyncio
    async def test_remote_error(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_error("call_service", "not_found", "Service light.explode not found.")

        with pytest.raises(RemoteError) as exc_info:
            await session.call_service("light", "explode")

        assert exc_info.value.code == "not_found"

    @pytest.mark.asyncio
    async def test_call_service_frame(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("call_service", {"context": {"id": "abc"}})

        result = await session.call_service(
            "light",
            "turn_on",
            service_data={"brightness": 128},
            target={"entity_id": "light.kitchen"},
        )

        assert result == {"context": {"id": "abc"}}
        assert transport.commands[0] == {
            "type": "call_service",
            "id": 1,
            "domain": "light",
            "service": "turn_on",
            "service_data": {"brightness": 128},
            "target": {"entity_id": "light.kitchen"},
        }

    @pytest.mark.asyncio
    async def test_get_state(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        states: list[dict[str, Any]] = [
            {"entity_id": "light.kitchen", "state": "on"},
            {"entity_id": "sun.sun", "state": "above_horizon"},
        ]
        transport.set_result("get_states", states)

        assert await session.get_state("sun.sun") == states[1]
        assert await session.get_state("light.missing") is None

    @pytest.mark.asyncio
    async def test_get_all_states(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("get_states", [{"entity_id": "sun.sun"}])

        assert await session.get_all_states() == [{"entity_id": "sun.sun"}]

    @pytest.mark.asyncio
    async def test_fire_event_registers_nothing(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("fire_event", {"context": {"id": "ctx"}})

        await session.fire_event("custom_event", {"answer": 42})

        assert transport.commands[0] == {
            "type": "fire_event",
            "id": 1,
            "event_type": "custom_event",
            "event_data": {"answer": 42},
        }
        assert session.pending_count == 0
        assert session.subscription_count == 0

    @pytest.mark.asyncio
    async def test_validate_config(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("core/check_config", {"result": "valid", "errors": None})

        result = await session.validate_config()

        assert result["result"] == "valid"
        assert transport.commands[0]["type"] == "core/check_config"

    @pytest.mark.asyncio
    async def test_ping(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        assert await session.ping() is None
        assert transport.commands == [{"type": "ping", "id": 1}]

    @pytest.mark.asyncio
    async def test_per_call_timeout(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        with pytest.raises(CommandTimeoutError):
            await session.call(Command.create("get_config"), timeout=0.01)

        assert session.pending_count == 0
        assert session.is_connected


# =============================================================================
# Connection loss
# =============================================================================


class TestConnectionLoss:
    """Test close and upstream drops with work in flight."""

    @pytest.mark.asyncio
    async def test_close_fails_all_pending(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        await session.connect()
        tasks = [asyncio.create_task(session.get_config()) for _ in range(3)]
        await flush()
        assert session.pending_count == 3

        await session.close()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, ConnectionClosed) for r in results)
        assert session.pending_count == 0

    @pytest.mark.asyncio
    async def test_drop_fails_pending_then_reconnects(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        await session.connect()
        task = asyncio.create_task(session.get_config())
        await flush()

        transport.drop()
        await flush()

        with pytest.raises(ConnectionClosed):
            await task
        assert not session.is_connected

        transport.set_result("get_config", {"version": "2024.1.0"})
        assert await session.get_config() == {"version": "2024.1.0"}
        assert transport.open_count == 2

    @pytest.mark.asyncio
    async def test_ids_keep_increasing_across_reconnect(
        self, session: HomeAssistantSession, transport: MockFrameTransport
    ) -> None:
        transport.set_result("get_config", {})
        await session.get_config()

        transport.drop()
        await flush()
        await session.get_config()

        assert [c["id"] for c in transport.commands] == [1, 2]

    @pytest.mark.asyncio
    async def test_reconnect_during_close_keeps_new_calls(self, config: SessionConfig) -> None:
        """A call made on the next connection survives the old one's teardown."""
        transport = SlowCloseTransport()
        session = HomeAssistantSession(config, transport=transport)
        await session.connect()

        closing = asyncio.create_task(session.close())
        while session.state != ConnectionState.DISCONNECTED:
            await asyncio.sleep(0)

        call = asyncio.create_task(session.get_config())
        await flush()
        assert session.is_connected
        assert session.pending_count == 1

        await closing

        transport.push_result(1, {"version": "2024.1.0"})
        assert await call == {"version": "2024.1.0"}
        assert transport.open_count == 2

        await session.close()

    @pytest.mark.asyncio
    async def test_reconnect_during_drop_keeps_new_subscriptions(
        self, config: SessionConfig
    ) -> None:
        """A subscription made on the next connection keeps receiving events."""
        transport = SlowCloseTransport()
        transport.set_result("subscribe_events")
        session = HomeAssistantSession(config, transport=transport)
        await session.connect()
        received: list[dict[str, Any]] = []

        transport.drop()
        while session.state != ConnectionState.DISCONNECTED:
            await asyncio.sleep(0)

        subscription = await session.subscribe_events(received.append)
        assert session.subscription_count == 1

        # Let the old teardown finish
        await asyncio.sleep(0.1)

        transport.push_event(subscription.id, {"event_type": "after_teardown"})
        await flush()

        assert subscription.active
        assert received == [{"event_type": "after_teardown"}]

        await session.close()
