"""Decoding of the uniform ``{success, error, payload}`` response envelope.

Every intake endpoint answers with the same wrapper. Which field of the
payload matters depends on the call site, not on anything in the body:

- init responses carry ``payload.session_id``
- data, event, log, metric and monitor responses carry ``payload.data_id``
- end-session carries no payload

Three failure kinds stay distinguishable for callers: a body that is not an
envelope (``PogrDecodeError``), ``success: false`` (``PogrRejectedError``),
and a non-2xx status with a successful envelope (``PogrResponseError``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .errors import PogrDecodeError, PogrRejectedError, PogrResponseError
from .transport import IntakeResponse

DEFAULT_REJECTION_MESSAGE = "request rejected by intake service"


@dataclass(frozen=True)
class IntakeEnvelope:
    """Decoded response envelope."""

    success: bool
    error: str | None = None
    payload: dict[str, Any] | None = None


def decode_envelope(response: IntakeResponse) -> IntakeEnvelope:
    """Decode a response body into an ``IntakeEnvelope``.

    Raises:
        PogrDecodeError: If the body is not JSON or lacks a boolean
            ``success`` field, or ``error``/``payload`` have the wrong type.
    """
    try:
        data = json.loads(response.body)
    except (TypeError, ValueError) as err:
        raise PogrDecodeError(
            f"Failed to decode response (status {response.status})"
        ) from err

    if not isinstance(data, dict):
        raise PogrDecodeError("Response envelope must be a JSON object")

    success = data.get("success")
    if not isinstance(success, bool):
        raise PogrDecodeError("Response envelope is missing a boolean 'success'")

    error = data.get("error")
    if error is not None and not isinstance(error, str):
        raise PogrDecodeError("Response envelope 'error' must be a string")

    payload = data.get("payload")
    if payload is not None and not isinstance(payload, dict):
        raise PogrDecodeError("Response envelope 'payload' must be an object")

    return IntakeEnvelope(success=success, error=error, payload=payload)


def check_envelope(response: IntakeResponse) -> IntakeEnvelope:
    """Decode the envelope and raise for rejections and unexpected statuses."""
    envelope = decode_envelope(response)

    if not envelope.success:
        raise PogrRejectedError(
            envelope.error or DEFAULT_REJECTION_MESSAGE, status=response.status
        )

    if not 200 <= response.status < 300:
        raise PogrResponseError(
            response.status, f"Unexpected status code: {response.status}"
        )

    return envelope


def parse_init_response(response: IntakeResponse) -> str:
    """Return the session id from an init response."""
    envelope = check_envelope(response)
    session_id = (envelope.payload or {}).get("session_id")
    if not isinstance(session_id, str) or not session_id:
        raise PogrDecodeError("Init response did not include a session_id")
    return session_id


def parse_data_response(response: IntakeResponse) -> str:
    """Return the data id from a submission response ("" if none was sent)."""
    envelope = check_envelope(response)
    data_id = (envelope.payload or {}).get("data_id", "")
    if data_id is None:
        return ""
    if not isinstance(data_id, str):
        raise PogrDecodeError("Response 'data_id' must be a string")
    return data_id


def parse_generic_response(response: IntakeResponse) -> None:
    """Validate a response that carries no payload."""
    check_envelope(response)
