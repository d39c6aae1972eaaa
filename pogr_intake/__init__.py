"""Async client for the POGR telemetry intake API."""

__version__ = "0.1.0"

from .auth import client_key_headers, resolve_auth_headers
from .client import PogrClient
from .config import (
    DEFAULT_BASE_URL,
    ConnectionPoolConfig,
    PogrConfig,
    default_pool_config,
)
from .envelope import IntakeEnvelope
from .errors import (
    PogrClientError,
    PogrConfigError,
    PogrConnectionError,
    PogrDecodeError,
    PogrEncodeError,
    PogrNoActiveSession,
    PogrNoAuthMethod,
    PogrRejectedError,
    PogrResponseError,
    PogrTimeout,
    PogrTransportError,
)
from .http import PogrHttpTransport
from .protocol import VALID_TAG_KEYS, JsonValue, Tags, validate_tag
from .session import SessionState
from .transport import IntakeRequest, IntakeResponse, IntakeTransport

__all__ = [
    "DEFAULT_BASE_URL",
    "VALID_TAG_KEYS",
    "ConnectionPoolConfig",
    "IntakeEnvelope",
    "IntakeRequest",
    "IntakeResponse",
    "IntakeTransport",
    "JsonValue",
    "PogrClient",
    "PogrClientError",
    "PogrConfig",
    "PogrConfigError",
    "PogrConnectionError",
    "PogrDecodeError",
    "PogrEncodeError",
    "PogrHttpTransport",
    "PogrNoActiveSession",
    "PogrNoAuthMethod",
    "PogrRejectedError",
    "PogrResponseError",
    "PogrTimeout",
    "PogrTransportError",
    "SessionState",
    "Tags",
    "__version__",
    "client_key_headers",
    "default_pool_config",
    "resolve_auth_headers",
    "validate_tag",
]
