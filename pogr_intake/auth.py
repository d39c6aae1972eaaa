"""Authentication header resolution.

Pure functions: they look at a session id snapshot and the static config
and never touch the network or the session lock.
"""

from __future__ import annotations

from .config import PogrConfig
from .errors import PogrNoAuthMethod
from .protocol import (
    HEADER_ACCESS_KEY,
    HEADER_BUILD,
    HEADER_CLIENT,
    HEADER_SECRET_KEY,
    HEADER_SESSION_ID,
)


def resolve_auth_headers(session_id: str, config: PogrConfig) -> dict[str, str]:
    """Pick the auth headers for a submission.

    Priority, first match wins:
        1. active session id
        2. access key + secret key
        3. client key + build key

    Raises:
        PogrNoAuthMethod: If none of the above is available.
    """
    if session_id:
        return {HEADER_SESSION_ID: session_id}

    if config.has_access_key_auth:
        return {
            HEADER_ACCESS_KEY: config.access_key,
            HEADER_SECRET_KEY: config.secret_key,
        }

    if config.has_client_key_auth:
        return {
            HEADER_CLIENT: config.client_key,
            HEADER_BUILD: config.build_key,
        }

    raise PogrNoAuthMethod("no valid authentication method available")


def client_key_headers(config: PogrConfig) -> dict[str, str]:
    """Client/build key headers used to open a session.

    Raises:
        PogrNoAuthMethod: If the client or build key is missing.
    """
    if not config.has_client_key_auth:
        raise PogrNoAuthMethod("client_key and build_key are required to start a session")
    return {
        HEADER_CLIENT: config.client_key,
        HEADER_BUILD: config.build_key,
    }
