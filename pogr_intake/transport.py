"""Transport abstraction for POGR intake requests.

The client never talks to an HTTP stack directly. It hands an
``IntakeRequest`` to an ``IntakeTransport`` and receives an
``IntakeResponse`` back, so tests and callers can substitute any
implementation (a stub, a recording proxy, another HTTP library).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class IntakeRequest:
    """Outbound request handed to a transport.

    Attributes:
        method: HTTP method (always "POST" for the intake API).
        url: Fully qualified URL including any query string.
        headers: Header mapping to send.
        body: Raw request body, or None for an empty body.
        timeout: Per-call deadline in seconds, or None for no deadline.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=lambda: {})
    body: bytes | None = None
    timeout: float | None = None


@dataclass(frozen=True)
class IntakeResponse:
    """Response returned by a transport."""

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=lambda: {})


class IntakeTransport(ABC):
    """Abstract capability: execute one request, return one response.

    Implementations raise ``PogrTimeout`` or ``PogrConnectionError`` when
    no response could be obtained. Any status code, including errors, is
    returned as a normal ``IntakeResponse``.
    """

    @abstractmethod
    async def send(self, request: IntakeRequest) -> IntakeResponse:
        """Send the request and return the raw response."""

    async def close(self) -> None:
        """Release transport resources."""
