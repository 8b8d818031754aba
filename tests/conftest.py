"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio

from hass_ws import HomeAssistantSession, SessionConfig
from hass_ws.transport import MockFrameTransport

TEST_TOKEN = "test-long-lived-token"


@pytest.fixture
def config() -> SessionConfig:
    """Config pointing at a fake endpoint with a valid token."""
    return SessionConfig(url="ws://ha.test/api/websocket", access_token=TEST_TOKEN)


@pytest.fixture
def transport() -> MockFrameTransport:
    """In-memory upstream that accepts TEST_TOKEN."""
    return MockFrameTransport(accept_token=TEST_TOKEN)


@pytest_asyncio.fixture
async def session(config: SessionConfig, transport: MockFrameTransport):
    """Session over the mock transport, closed after the test."""
    session = HomeAssistantSession(config, transport=transport)
    yield session
    await session.close()
