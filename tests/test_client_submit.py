"""Tests for PogrClient submissions, auth selection and deadlines."""

from __future__ import annotations

import asyncio
import json
import time

import pytest

from pogr_intake import Tags
from pogr_intake.errors import (
    PogrConnectionError,
    PogrDecodeError,
    PogrEncodeError,
    PogrNoAuthMethod,
    PogrRejectedError,
    PogrResponseError,
    PogrTimeout,
    PogrTransportError,
)
from pogr_intake.transport import IntakeRequest, IntakeResponse

from .conftest import (
    HangingTransport,
    StubTransport,
    data_ok,
    envelope_response,
    init_ok,
    make_client,
)

SUBMISSIONS = {
    "send_data": lambda client: client.send_data({"k": "v"}),
    "send_event": lambda client: client.send_event("match_start"),
    "send_log": lambda client: client.send_log(
        "matchmaker", "prod", "info", "audit", "queue drained"
    ),
    "send_metrics": lambda client: client.send_metrics("api", "prod", {"fps": 60}),
    "send_monitor_data": lambda client: client.send_monitor_data(
        10.0, 256.0, ["a.dll"], {"quality": "high"}
    ),
}

PATHS = {
    "send_data": "/data",
    "send_event": "/event",
    "send_log": "/logs",
    "send_metrics": "/metrics",
    "send_monitor_data": "/monitor",
}


class TestSendData:
    """send_data request construction and result."""

    async def test_returns_data_id(self) -> None:
        """Test send_data posts the JSON body and returns the data id."""
        transport = StubTransport(
            envelope_response(success=True, payload={"data_id": "abc123"})
        )
        client = make_client(transport)

        assert await client.send_data({"k": "v"}, None) == "abc123"

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url == "https://intake.test/v1/data"
        assert json.loads(request.body) == {"data": {"k": "v"}}
        assert request.headers["Content-Type"] == "application/json"

    async def test_tags_are_embedded(self) -> None:
        """Test tags are embedded next to the data."""
        transport = StubTransport(data_ok())
        client = make_client(transport)

        await client.send_data([1, 2, 3], Tags(steam_id="765", twitch_id="tw"))

        assert json.loads(transport.requests[0].body) == {
            "data": [1, 2, 3],
            "tags": {"steam_id": "765", "twitch_id": "tw"},
        }

    async def test_unknown_tag_keys_are_not_rejected(self) -> None:
        """Test unknown tag keys pass through unchanged."""
        transport = StubTransport(data_ok())
        client = make_client(transport)

        await client.send_data("x", {"custom_id": "c-1"})

        assert json.loads(transport.requests[0].body)["tags"] == {"custom_id": "c-1"}

    async def test_unserializable_data_sends_nothing(self) -> None:
        """Test an encoding failure raises before any request."""
        transport = StubTransport(data_ok())
        client = make_client(transport)

        with pytest.raises(PogrEncodeError):
            await client.send_data({"when": object()})

        assert transport.requests == []


class TestSubmissionPayloads:
    """Endpoint-specific bodies."""

    async def test_send_event(self) -> None:
        """Test send_event builds the event body."""
        transport = StubTransport(data_ok("evt-1"))
        client = make_client(transport)

        data_id = await client.send_event(
            "match",
            sub_event="round_end",
            event_type="game",
            event_flag="final",
            event_key="r3",
            event_data={"winner": "blue"},
            tags=Tags(pogr_player_id="p-1"),
        )

        assert data_id == "evt-1"
        assert json.loads(transport.requests[0].body) == {
            "event": "match",
            "sub_event": "round_end",
            "event_type": "game",
            "event_flag": "final",
            "event_key": "r3",
            "event_data": {"winner": "blue"},
            "tags": {"pogr_player_id": "p-1"},
        }

    async def test_send_log(self) -> None:
        """Test send_log builds the log body with its type key."""
        transport = StubTransport(data_ok("log-1"))
        client = make_client(transport)

        data_id = await client.send_log(
            "matchmaker", "prod", "error", "exception", "boom", data={"line": 12}
        )

        assert data_id == "log-1"
        body = json.loads(transport.requests[0].body)
        assert body["type"] == "exception"
        assert body["log"] == "boom"
        assert body["data"] == {"line": 12}

    async def test_send_metrics(self) -> None:
        """Test send_metrics builds the metrics body."""
        transport = StubTransport(data_ok("met-1"))
        client = make_client(transport)

        await client.send_metrics("api", "dev", {"latency_ms": 12.5})

        assert json.loads(transport.requests[0].body) == {
            "service": "api",
            "environment": "dev",
            "metrics": {"latency_ms": 12.5},
            "tags": {},
        }

    async def test_send_monitor_data(self) -> None:
        """Test send_monitor_data builds the monitor body."""
        transport = StubTransport(data_ok("mon-1"))
        client = make_client(transport)

        await client.send_monitor_data(55.5, 1024.0, ["d3d11.dll"], {"vsync": False})

        assert json.loads(transport.requests[0].body) == {
            "cpu_usage": 55.5,
            "memory_usage": 1024.0,
            "dlls_loaded": ["d3d11.dll"],
            "settings": {"vsync": False},
        }

    @pytest.mark.parametrize("name", sorted(SUBMISSIONS))
    async def test_paths(self, name) -> None:
        """Test each submission posts to its endpoint."""
        transport = StubTransport(data_ok())
        client = make_client(transport)

        await SUBMISSIONS[name](client)

        assert transport.requests[0].url == f"https://intake.test/v1{PATHS[name]}"


class TestSubmissionAuth:
    """Auth headers follow session, access key, client key priority."""

    @pytest.mark.parametrize("name", sorted(SUBMISSIONS))
    async def test_session_header_after_init(self, name) -> None:
        """Test an active session id replaces static credentials."""
        transport = StubTransport(init_ok("sess-9"), data_ok())
        client = make_client(transport, access_key="ak", secret_key="sk")
        await client.init_with_user_jwt("jwt")

        await SUBMISSIONS[name](client)

        assert transport.requests[1].headers == {
            "INTAKE_SESSION_ID": "sess-9",
            "Content-Type": "application/json",
        }

    async def test_access_keys_without_session(self) -> None:
        """Test access keys are used when no session is active."""
        transport = StubTransport(data_ok())
        client = make_client(transport, access_key="ak", secret_key="sk")

        await client.send_data(1)

        assert transport.requests[0].headers == {
            "ACCESS_KEY": "ak",
            "SECRET_KEY": "sk",
            "Content-Type": "application/json",
        }

    async def test_client_keys_without_session(self) -> None:
        """Test client keys are the last fallback."""
        transport = StubTransport(data_ok())
        client = make_client(transport)

        await client.send_data(1)

        assert transport.requests[0].headers == {
            "POGR_CLIENT": "client-key",
            "POGR_BUILD": "build-key",
            "Content-Type": "application/json",
        }

    async def test_falls_back_after_end_session(self) -> None:
        """Test submissions use static credentials after end_session."""
        transport = StubTransport(
            init_ok("sess-1"), envelope_response(success=True), data_ok()
        )
        client = make_client(transport)
        await client.init_with_user_jwt("jwt")
        await client.end_session()

        await client.send_data(1)

        assert "INTAKE_SESSION_ID" not in transport.requests[2].headers
        assert transport.requests[2].headers["POGR_CLIENT"] == "client-key"

    @pytest.mark.parametrize("name", sorted(SUBMISSIONS))
    async def test_no_auth_fails_before_network(self, name) -> None:
        """Test missing credentials raise before any request."""
        transport = StubTransport(data_ok())
        client = make_client(transport, client_key="", build_key="")

        with pytest.raises(PogrNoAuthMethod):
            await SUBMISSIONS[name](client)

        assert transport.requests == []


class TestSubmissionErrors:
    """Envelope and transport failures surface to the caller."""

    @pytest.mark.parametrize("name", sorted(SUBMISSIONS))
    async def test_rejection_carries_server_message(self, name) -> None:
        """Test a rejected submission carries the server message."""
        client = make_client(
            StubTransport(envelope_response(success=False, error="bad input"))
        )

        with pytest.raises(PogrRejectedError) as exc_info:
            await SUBMISSIONS[name](client)

        assert exc_info.value.message == "bad input"

    async def test_decode_failure(self) -> None:
        """Test a malformed body raises PogrDecodeError."""
        client = make_client(StubTransport(IntakeResponse(status=200, body=b"{")))
        with pytest.raises(PogrDecodeError):
            await client.send_data(1)

    async def test_unexpected_status(self) -> None:
        """Test a non-2xx status raises PogrResponseError."""
        client = make_client(
            StubTransport(
                envelope_response(status=404, success=True, payload={"data_id": "x"})
            )
        )
        with pytest.raises(PogrResponseError) as exc_info:
            await client.send_data(1)
        assert exc_info.value.status == 404

    async def test_transport_failure_propagates(self) -> None:
        """Test transport errors reach the caller unchanged."""
        client = make_client(StubTransport(PogrConnectionError("dns failure")))
        with pytest.raises(PogrTransportError, match="dns failure"):
            await client.send_event("e")


class TestDeadlines:
    """Per-call deadlines bound every request."""

    async def test_send_data_times_out(self) -> None:
        """Test send_data is bounded by the configured timeout."""
        transport = HangingTransport()
        client = make_client(transport, timeout=0.001)

        started = time.monotonic()
        with pytest.raises(PogrTimeout):
            await client.send_data({"k": "v"}, None)

        assert time.monotonic() - started < 2.0
        assert transport.cancelled is True

    @pytest.mark.parametrize("name", sorted(SUBMISSIONS))
    async def test_every_submission_times_out(self, name) -> None:
        """Test every submission honors the configured timeout."""
        client = make_client(HangingTransport(), timeout=0.001)
        with pytest.raises(PogrTimeout):
            await SUBMISSIONS[name](client)

    async def test_init_and_end_time_out_without_state_change(self) -> None:
        """Test timed-out init and end leave the session untouched."""
        client = make_client(StubTransport(init_ok("sess-1")), timeout=None)
        await client.init_with_user_jwt("jwt")

        client._transport = HangingTransport()
        with pytest.raises(PogrTimeout):
            await client.init_with_association_id("assoc", timeout=0.001)
        with pytest.raises(PogrTimeout):
            await client.end_session(timeout=0.001)
        assert client.session_id == "sess-1"

    async def test_timeout_carried_on_request(self) -> None:
        """Test the deadline is passed to the transport."""
        transport = StubTransport(data_ok())
        client = make_client(transport, timeout=7.5)

        await client.send_data(1)

        assert transport.requests[0].timeout == 7.5

    async def test_per_call_override(self) -> None:
        """Test a per-call timeout replaces the configured one."""
        transport = StubTransport(data_ok())
        client = make_client(transport, timeout=7.5)

        await client.send_data(1, timeout=2.0)
        await client.send_metrics("s", "e", {}, timeout=None)

        assert transport.requests[0].timeout == 2.0
        assert transport.requests[1].timeout is None

    async def test_per_call_override_bounds_hanging_call(self) -> None:
        """Test a per-call timeout bounds a call with none configured."""
        client = make_client(HangingTransport(), timeout=None)
        with pytest.raises(PogrTimeout):
            await client.send_log("s", "e", "info", "t", "l", timeout=0.001)

    async def test_disabled_timeout_does_not_interrupt(self) -> None:
        """Test a zero timeout disables the deadline."""
        transport = StubTransport(data_ok("slow-ok"))
        client = make_client(transport, timeout=0)

        assert await client.send_data(1) == "slow-ok"
        assert transport.requests[0].timeout is None


class TestConcurrentSubmissions:
    """Concurrent sends do not block each other."""

    async def test_sends_run_concurrently(self) -> None:
        """Test concurrent sends are in flight at the same time."""
        release = asyncio.Event()
        in_flight = 0
        peak = 0

        class GatedTransport(StubTransport):
            async def send(self, request: IntakeRequest) -> IntakeResponse:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await release.wait()
                in_flight -= 1
                return await super().send(request)

        client = make_client(GatedTransport(data_ok("d")))

        tasks = [asyncio.create_task(client.send_data(i)) for i in range(5)]
        await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*tasks)

        assert peak == 5
        assert results == ["d"] * 5
