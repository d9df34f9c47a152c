"""Shared fixtures: an in-memory realtime server and mocked aiohttp objects."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from agnost.errors import TransportError
from agnost.realtime import RealtimeManager
from agnost.types import RealtimeOptions, Session


class FakeTransport:
    """Transport that records frames and lets tests play the server side."""

    def __init__(self, server: FakeServer) -> None:
        self.server = server
        self.on_message = None
        self.on_close = None
        self.on_error = None
        self.url: Optional[str] = None
        self.headers: dict[str, str] = {}
        self.sent: list[dict[str, Any]] = []
        self.opened = False
        self.closed = False

    async def open(self, url: str, headers: dict[str, str], timeout: float) -> None:
        self.url = url
        self.headers = headers
        self.server.connections.append(self)
        if self.server.failures:
            raise self.server.failures.pop(0)
        self.opened = True
        if self.server.respond:
            connection_id = f"conn-{len(self.server.connections)}"
            loop = asyncio.get_running_loop()
            loop.call_soon(self.deliver, {"type": "connected", "connection_id": connection_id})
            if self.server.drop_after_welcome:
                self.server.drop_after_welcome -= 1
                loop.call_soon(self.drop)

    async def send(self, frame: str) -> None:
        if self.server.send_delay:
            await asyncio.sleep(self.server.send_delay)
        if self.closed:
            raise TransportError("Websocket is not open")
        self.sent.append(json.loads(frame))

    async def close(self) -> None:
        self.closed = True
        if self.server.close_error is not None:
            raise self.server.close_error

    def deliver(self, data: dict[str, Any]) -> None:
        if not self.closed and self.on_message:
            self.on_message(json.dumps(data))

    def drop(self, code: Optional[int] = 1006, reason: str = "") -> None:
        self.closed = True
        if self.on_close:
            self.on_close(code, reason)


class FakeServer:
    def __init__(self) -> None:
        self.connections: list[FakeTransport] = []
        self.failures: list[Exception] = []
        self.respond = True
        # connections still to be closed right after their welcome frame
        self.drop_after_welcome = 0
        self.send_delay = 0.0
        self.close_error: Optional[Exception] = None

    def transport(self) -> FakeTransport:
        return FakeTransport(self)

    @property
    def current(self) -> FakeTransport:
        return self.connections[-1]


class StaticSessionProvider:
    def __init__(self, session: Optional[Session] = None) -> None:
        self.session = session
        self.calls = 0

    def current_session(self) -> Optional[Session]:
        self.calls += 1
        return self.session


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def sessions() -> StaticSessionProvider:
    return StaticSessionProvider()


@pytest_asyncio.fixture
async def make_realtime(server: FakeServer, sessions: StaticSessionProvider):
    managers: list[RealtimeManager] = []

    def factory(**options: Any) -> RealtimeManager:
        options.setdefault("reconnection_delay", 20)
        options.setdefault("reconnection_delay_max", 40)
        options.setdefault("timeout", 500)
        manager = RealtimeManager(
            "https://api.example.test/env-1",
            "test-key",
            RealtimeOptions(**options),
            session_provider=sessions,
            transport_factory=server.transport,
        )
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        await manager.disconnect()


async def wait_for_state(manager: RealtimeManager, state: str, timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while manager.state != state:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: Optional[str] = None,
    reason: str = "OK",
) -> AsyncMock:
    """Create a configured aiohttp response mock usable as an async context manager."""
    response = AsyncMock()
    response.status = status
    response.reason = reason
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("no json body")
    response.text.return_value = text_data or ""
    response.__aenter__.return_value = response
    response.__aexit__.return_value = None
    return response
