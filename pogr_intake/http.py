"""Default aiohttp transport for the POGR intake API."""

from __future__ import annotations

import asyncio
import logging
import threading

import aiohttp

from .config import ConnectionPoolConfig, PogrConfig, default_pool_config
from .errors import PogrConnectionError, PogrTimeout
from .transport import IntakeRequest, IntakeResponse, IntakeTransport

_LOGGER = logging.getLogger(__name__)


class PogrHttpTransport(IntakeTransport):
    """aiohttp-backed transport with an optional tuned connection pool.

    When ``session`` is given it is used as-is and left open on ``close()``.
    It is bound to the event loop that first uses it. Otherwise the
    transport owns one session per event loop, created on first use from
    that loop, so callers may drive it from several threads or from
    successive ``asyncio.run`` calls.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        timeout: float | None = None,
        enable_connection_pool: bool = False,
        pool_config: ConnectionPoolConfig | None = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._session_loop: asyncio.AbstractEventLoop | None = None
        self._sessions: dict[asyncio.AbstractEventLoop, aiohttp.ClientSession] = {}
        self._lock = threading.Lock()
        self._timeout = timeout
        self._enable_connection_pool = enable_connection_pool
        self._pool_config = pool_config

    @classmethod
    def from_config(cls, config: PogrConfig) -> PogrHttpTransport:
        """Create a transport from client configuration."""
        return cls(
            timeout=config.effective_timeout,
            enable_connection_pool=config.enable_connection_pool,
            pool_config=config.pool_config,
        )

    def _build_connector(self) -> aiohttp.TCPConnector:
        if not self._enable_connection_pool:
            return aiohttp.TCPConnector()
        pool = self._pool_config or default_pool_config()
        per_host = [
            limit
            for limit in (pool.max_conns_per_host, pool.max_idle_conns_per_host)
            if limit > 0
        ]
        return aiohttp.TCPConnector(
            limit=pool.max_idle_conns,
            limit_per_host=min(per_host) if per_host else 0,
            keepalive_timeout=pool.idle_conn_timeout,
        )

    def _ensure_session(self) -> aiohttp.ClientSession:
        loop = asyncio.get_running_loop()
        if not self._owns_session:
            return self._external_session(loop)

        with self._lock:
            for owner in [owner for owner in self._sessions if owner.is_closed()]:
                # Its loop is gone, so the session can no longer be closed.
                self._sessions.pop(owner).detach()
                _LOGGER.debug("Dropped HTTP session of a closed event loop")

            session = self._sessions.get(loop)
            if session is None or session.closed:
                session = aiohttp.ClientSession(connector=self._build_connector())
                self._sessions[loop] = session
                _LOGGER.debug(
                    "Created HTTP session (connection pool tuning: %s)",
                    self._enable_connection_pool,
                )
            return session

    def _external_session(
        self, loop: asyncio.AbstractEventLoop
    ) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            raise PogrConnectionError("HTTP session is closed")
        with self._lock:
            if self._session_loop is None:
                self._session_loop = loop
            elif self._session_loop is not loop:
                raise PogrConnectionError(
                    "HTTP session belongs to a different event loop"
                )
        return self._session

    async def send(self, request: IntakeRequest) -> IntakeResponse:
        """Send the request and return the raw response."""
        session = self._ensure_session()
        total = request.timeout if request.timeout else self._timeout
        try:
            async with session.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                timeout=aiohttp.ClientTimeout(total=total),
            ) as resp:
                body = await resp.read()
                headers = {key: resp.headers[key] for key in resp.headers}
                return IntakeResponse(status=resp.status, body=body, headers=headers)
        except TimeoutError as err:
            raise PogrTimeout(f"{request.method} request timed out") from err
        except aiohttp.ClientError as err:
            raise PogrConnectionError(f"{request.method} request failed: {err}") from err

    async def close(self) -> None:
        """Close every HTTP session this transport created.

        The session of the calling loop is closed in place. Sessions of
        loops still open in other threads are closed on their own loop.
        """
        if not self._owns_session:
            return
        loop = asyncio.get_running_loop()
        with self._lock:
            sessions, self._sessions = self._sessions, {}

        for owner, session in sessions.items():
            if session.closed:
                continue
            if owner is loop:
                await session.close()
            elif owner.is_closed():
                session.detach()
            else:
                asyncio.run_coroutine_threadsafe(session.close(), owner)
