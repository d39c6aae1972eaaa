"""Client error types for POGR intake interactions."""

from __future__ import annotations


class PogrClientError(Exception):
    """Base error for POGR intake client failures."""


class PogrConfigError(PogrClientError, ValueError):
    """Client configuration is invalid."""


class PogrNoActiveSession(PogrClientError):
    """Operation requires an active session but none exists."""


class PogrNoAuthMethod(PogrClientError):
    """No credential set is available to authenticate the request."""


class PogrEncodeError(PogrClientError):
    """Request payload could not be serialized to JSON."""


class PogrTransportError(PogrClientError):
    """Request never produced a response from the intake service."""


class PogrTimeout(PogrTransportError):
    """Timeout while communicating with the intake service."""


class PogrConnectionError(PogrTransportError):
    """Network connection to the intake service failed."""


class PogrDecodeError(PogrClientError):
    """Response body is not a well-formed intake envelope."""


class PogrRejectedError(PogrClientError):
    """Intake service answered with ``success: false``."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class PogrResponseError(PogrClientError):
    """HTTP response error from the intake service."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
