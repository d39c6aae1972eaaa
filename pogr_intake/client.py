"""High-level client for the POGR intake API.

This module provides the API games and services use to report telemetry.
It handles:
- Session lifecycle (JWT, association id and Steam ticket init, end)
- Auth header selection for every submission
- Request construction and per-call deadlines
- Envelope interpretation

Usage:
    config = PogrConfig(client_key="...", build_key="...")
    async with PogrClient(config) as client:
        await client.init_with_user_jwt(jwt)
        data_id = await client.send_data({"score": 10}, Tags(steam_id="123"))
        await client.end_session()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Final, TypeVar
from urllib.parse import urlencode

from .auth import client_key_headers, resolve_auth_headers
from .config import PogrConfig
from .envelope import parse_data_response, parse_generic_response, parse_init_response
from .errors import PogrClientError, PogrNoActiveSession, PogrTimeout
from .http import PogrHttpTransport
from .protocol import (
    CONTENT_TYPE_JSON,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    HEADER_SESSION_ID,
    PATH_DATA,
    PATH_END,
    PATH_EVENT,
    PATH_INIT,
    PATH_LOGS,
    PATH_METRICS,
    PATH_MONITOR,
    JsonValue,
    TagsLike,
    build_data_payload,
    build_event_payload,
    build_log_payload,
    build_metrics_payload,
    build_monitor_payload,
    encode_body,
    validate_tag,
)
from .session import SessionState
from .transport import IntakeRequest, IntakeResponse

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

# Sentinel value meaning "use the configured timeout"
_CONFIG_TIMEOUT: Final = object()


def _short_id(session_id: str) -> str:
    return f"{session_id[:8]}..." if len(session_id) > 8 else session_id


class PogrClient:
    """Async client for the POGR intake API.

    Each instance owns its own session state, so several clients in one
    process have independent session lifecycles. All methods may be
    called concurrently; only session state is shared between calls.
    """

    def __init__(self, config: PogrConfig) -> None:
        """Initialize client.

        Args:
            config: Credentials and transport settings. When
                ``config.transport`` is None a ``PogrHttpTransport`` is
                created and closed together with the client.
        """
        self._config = config
        self._state = SessionState()
        if config.transport is not None:
            self._transport = config.transport
            self._owns_transport = False
        else:
            self._transport = PogrHttpTransport.from_config(config)
            self._owns_transport = True

    async def __aenter__(self) -> PogrClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the transport if the client created it."""
        if self._owns_transport:
            await self._transport.close()

    # -------------------------------------------------------------------------
    # Public API: Session State
    # -------------------------------------------------------------------------

    @property
    def config(self) -> PogrConfig:
        return self._config

    @property
    def is_initialized(self) -> bool:
        """Whether a session is active."""
        return self._state.initialized

    @property
    def session_id(self) -> str:
        """Active session id, or "" when none."""
        return self._state.session_id

    @staticmethod
    def validate_tag(key: str) -> bool:
        """Return True if ``key`` is a recognized tag name."""
        return validate_tag(key)

    def describe_config(self) -> str:
        """Human-readable configuration summary with secrets masked."""
        return self._config.describe()

    # -------------------------------------------------------------------------
    # Public API: Session Lifecycle
    # -------------------------------------------------------------------------

    async def init_with_user_jwt(
        self, user_jwt: str, *, timeout: float | None | object = _CONFIG_TIMEOUT
    ) -> str:
        """Start a session authenticated by a user JWT.

        Returns:
            The new session id.
        """
        headers = client_key_headers(self._config)
        headers[HEADER_AUTHORIZATION] = f"Bearer {user_jwt}"
        headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON
        request = self._build_request(self._url(PATH_INIT), headers, None, timeout)
        return await self._start_session(request, "jwt")

    async def init_with_association_id(
        self, association_id: str, *, timeout: float | None | object = _CONFIG_TIMEOUT
    ) -> str:
        """Start a session for a previously associated player.

        Returns:
            The new session id.
        """
        body = encode_body({"association_id": association_id})
        headers = client_key_headers(self._config)
        headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON
        request = self._build_request(self._url(PATH_INIT), headers, body, timeout)
        return await self._start_session(request, "association_id")

    async def init_with_steam_ticket(
        self, steam_ticket: str, *, timeout: float | None | object = _CONFIG_TIMEOUT
    ) -> str:
        """Start a session from a Steam authentication ticket.

        Returns:
            The new session id.
        """
        url = f"{self._url(PATH_INIT)}?{urlencode({'steam_ticket': steam_ticket})}"
        headers = client_key_headers(self._config)
        request = self._build_request(url, headers, None, timeout)
        return await self._start_session(request, "steam_ticket")

    async def end_session(
        self, *, timeout: float | None | object = _CONFIG_TIMEOUT
    ) -> None:
        """End the active session.

        Raises:
            PogrNoActiveSession: If no session is active. No request is sent.
        """
        session_id, initialized = self._state.snapshot()
        if not initialized:
            raise PogrNoActiveSession("no active session")

        request = self._build_request(
            self._url(PATH_END), {HEADER_SESSION_ID: session_id}, None, timeout
        )
        await self._call(request, parse_generic_response)

        if self._state.clear_if(session_id):
            _LOGGER.info("Session ended: %s", _short_id(session_id))
        else:
            _LOGGER.debug(
                "Session %s ended after being replaced; keeping newer session",
                _short_id(session_id),
            )

    # -------------------------------------------------------------------------
    # Public API: Submissions
    # -------------------------------------------------------------------------

    async def send_data(
        self,
        data: JsonValue,
        tags: TagsLike | None = None,
        *,
        timeout: float | None | object = _CONFIG_TIMEOUT,
    ) -> str:
        """Submit free-form JSON data.

        Returns:
            The data id assigned by the intake service.
        """
        return await self._submit(PATH_DATA, build_data_payload(data, tags), timeout)

    async def send_event(
        self,
        event: str,
        *,
        sub_event: str = "",
        event_type: str = "",
        event_flag: str = "",
        event_key: str = "",
        event_data: JsonValue = None,
        tags: TagsLike | None = None,
        timeout: float | None | object = _CONFIG_TIMEOUT,
    ) -> str:
        """Submit a game event."""
        payload = build_event_payload(
            event=event,
            sub_event=sub_event,
            event_type=event_type,
            event_flag=event_flag,
            event_key=event_key,
            event_data=event_data,
            tags=tags,
        )
        return await self._submit(PATH_EVENT, payload, timeout)

    async def send_log(
        self,
        service: str,
        environment: str,
        severity: str,
        log_type: str,
        log: str,
        *,
        data: JsonValue = None,
        tags: TagsLike | None = None,
        timeout: float | None | object = _CONFIG_TIMEOUT,
    ) -> str:
        """Submit a log line."""
        payload = build_log_payload(
            service=service,
            environment=environment,
            severity=severity,
            log_type=log_type,
            log=log,
            data=data,
            tags=tags,
        )
        return await self._submit(PATH_LOGS, payload, timeout)

    async def send_metrics(
        self,
        service: str,
        environment: str,
        metrics: Mapping[str, JsonValue],
        *,
        tags: TagsLike | None = None,
        timeout: float | None | object = _CONFIG_TIMEOUT,
    ) -> str:
        """Submit a set of named metric values."""
        payload = build_metrics_payload(
            service=service, environment=environment, metrics=metrics, tags=tags
        )
        return await self._submit(PATH_METRICS, payload, timeout)

    async def send_monitor_data(
        self,
        cpu_usage: float,
        memory_usage: float,
        dlls_loaded: Sequence[str],
        settings: Mapping[str, JsonValue],
        *,
        timeout: float | None | object = _CONFIG_TIMEOUT,
    ) -> str:
        """Submit a process monitoring sample."""
        payload = build_monitor_payload(
            cpu_usage=cpu_usage,
            memory_usage=memory_usage,
            dlls_loaded=dlls_loaded,
            settings=settings,
        )
        return await self._submit(PATH_MONITOR, payload, timeout)

    # -------------------------------------------------------------------------
    # Internal: Request Dispatch
    # -------------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    def _resolve_timeout(self, timeout: float | None | object) -> float | None:
        if timeout is _CONFIG_TIMEOUT:
            return self._config.effective_timeout
        if timeout is None:
            return None
        if not isinstance(timeout, (int, float)):
            raise TypeError("timeout must be a number or None")
        return float(timeout) if timeout > 0 else None

    def _build_request(
        self,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout: float | None | object,
    ) -> IntakeRequest:
        return IntakeRequest(
            method="POST",
            url=url,
            headers=headers,
            body=body,
            timeout=self._resolve_timeout(timeout),
        )

    async def _start_session(self, request: IntakeRequest, method: str) -> str:
        session_id = await self._call(request, parse_init_response)
        if self._state.initialized:
            _LOGGER.debug("Replacing active session with new %s session", method)
        self._state.set(session_id, True)
        _LOGGER.info("Session started via %s: %s", method, _short_id(session_id))
        return session_id

    async def _submit(
        self, path: str, payload: dict[str, Any], timeout: float | None | object
    ) -> str:
        body = encode_body(payload)
        headers = resolve_auth_headers(self._state.session_id, self._config)
        headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON
        request = self._build_request(self._url(path), headers, body, timeout)
        return await self._call(request, parse_data_response)

    async def _call(
        self, request: IntakeRequest, parse: Callable[[IntakeResponse], _T]
    ) -> _T:
        """Dispatch ``request`` within its deadline and parse the envelope."""
        path = request.url.removeprefix(self._config.base_url).split("?", 1)[0]
        _LOGGER.debug("POST %s (timeout=%s)", path, request.timeout)
        try:
            if request.timeout:
                response = await asyncio.wait_for(
                    self._transport.send(request), timeout=request.timeout
                )
            else:
                response = await self._transport.send(request)
        except TimeoutError as err:
            _LOGGER.warning("POST %s timed out after %ss", path, request.timeout)
            raise PogrTimeout(f"Request to {path} timed out") from err

        try:
            return parse(response)
        except PogrClientError as err:
            _LOGGER.warning("POST %s failed (status %d): %s", path, response.status, err)
            raise
