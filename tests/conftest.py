"""Pytest configuration and fixtures for pogr_intake tests."""

from __future__ import annotations

import asyncio
import json
import socket
import threading
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pogr_intake import PogrClient, PogrConfig
from pogr_intake.transport import IntakeRequest, IntakeResponse, IntakeTransport


class StubTransport(IntakeTransport):
    """Deterministic transport returning queued responses.

    The last queued item is repeated once the queue is down to one entry.
    Exceptions in the queue are raised instead of returned.
    """

    def __init__(self, *responses: IntakeResponse | BaseException) -> None:
        self.responses: list[IntakeResponse | BaseException] = list(responses)
        self.requests: list[IntakeRequest] = []
        self.closed = False

    async def send(self, request: IntakeRequest) -> IntakeResponse:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class HangingTransport(IntakeTransport):
    """Transport whose requests never complete."""

    def __init__(self) -> None:
        self.requests: list[IntakeRequest] = []
        self.cancelled = False

    async def send(self, request: IntakeRequest) -> IntakeResponse:
        self.requests.append(request)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


def envelope_response(status: int = 200, **fields: Any) -> IntakeResponse:
    """Build a response whose body is the JSON of ``fields``."""
    return IntakeResponse(
        status=status,
        body=json.dumps(fields).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def init_ok(session_id: str = "sess-123") -> IntakeResponse:
    return envelope_response(success=True, payload={"session_id": session_id})


def data_ok(data_id: str = "abc123") -> IntakeResponse:
    return envelope_response(success=True, payload={"data_id": data_id})


def make_client(transport: IntakeTransport, **overrides: Any) -> PogrClient:
    """Create a client with client/build keys and the given transport."""
    values: dict[str, Any] = {
        "client_key": "client-key",
        "build_key": "build-key",
        "base_url": "https://intake.test/v1",
    }
    values.update(overrides)
    return PogrClient(PogrConfig(transport=transport, **values))


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    return session


def create_mock_response(
    status: int = 200,
    read_data: bytes = b"",
    headers: dict[str, str] | None = None,
) -> AsyncMock:
    """Create a configured mock aiohttp response.

    Args:
        status: HTTP status code
        read_data: Data to return from read() call
        headers: Response headers

    Returns:
        Configured AsyncMock response usable as an async context manager
    """
    response = AsyncMock()
    response.status = status
    response.read.return_value = read_data
    response.headers = headers or {}

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


@pytest.fixture
def intake_server() -> Iterator[str]:
    """Run a local intake server on its own loop and thread.

    Every POST to ``/v1/data`` answers with data id ``abc123``.

    Yields:
        Base URL of the server.
    """
    from aiohttp import web

    async def handle_data(request: web.Request) -> web.Response:
        return web.json_response({"success": True, "payload": {"data_id": "abc123"}})

    app = web.Application()
    app.router.add_post("/v1/data", handle_data)
    runner = web.AppRunner(app)

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]

    loop = asyncio.new_event_loop()
    loop.run_until_complete(runner.setup())
    loop.run_until_complete(web.SockSite(runner, sock).start())
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{port}/v1"

    asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=5)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5)
    loop.close()
