"""Wire constants and JSON payload builders for the POGR intake API."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any, TypeAlias

from .errors import PogrEncodeError

JsonValue: TypeAlias = (
    str | int | float | bool | None | list["JsonValue"] | dict[str, "JsonValue"]
)

HEADER_CLIENT = "POGR_CLIENT"
HEADER_BUILD = "POGR_BUILD"
HEADER_ACCESS_KEY = "ACCESS_KEY"
HEADER_SECRET_KEY = "SECRET_KEY"
HEADER_SESSION_ID = "INTAKE_SESSION_ID"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
CONTENT_TYPE_JSON = "application/json"

PATH_INIT = "/init"
PATH_END = "/end"
PATH_DATA = "/data"
PATH_EVENT = "/event"
PATH_LOGS = "/logs"
PATH_METRICS = "/metrics"
PATH_MONITOR = "/monitor"

VALID_TAG_KEYS: frozenset[str] = frozenset(
    {
        "steam_id",
        "twitch_id",
        "association_id",
        "pogr_game_session",
        "xbox_id",
        "battlenet_id",
        "twitter_id",
        "linkedin_id",
        "pogr_player_id",
        "discord_id",
        "override_timestamp",
    }
)


def validate_tag(key: str) -> bool:
    """Return True if ``key`` is a tag name the intake service recognizes."""
    return key in VALID_TAG_KEYS


@dataclass(frozen=True)
class Tags:
    """Identity and metadata tags attached to a submission.

    Every field is optional; empty fields are left out of the payload.
    """

    discord_id: str = ""
    steam_id: str = ""
    twitch_id: str = ""
    association_id: str = ""
    pogr_game_session: str = ""
    xbox_id: str = ""
    battlenet_id: str = ""
    twitter_id: str = ""
    linkedin_id: str = ""
    pogr_player_id: str = ""
    override_timestamp: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the non-empty tags as a plain dict."""
        return {key: value for key, value in asdict(self).items() if value}


TagsLike: TypeAlias = Tags | Mapping[str, str]


def normalize_tags(tags: TagsLike | None) -> dict[str, str]:
    """Convert ``Tags`` or a plain mapping into a JSON-ready dict.

    Unknown keys are passed through untouched; use ``validate_tag`` to
    check them up front.
    """
    if tags is None:
        return {}
    if isinstance(tags, Tags):
        return tags.to_dict()
    return {str(key): value for key, value in tags.items() if value}


def build_data_payload(data: JsonValue, tags: TagsLike | None = None) -> dict[str, Any]:
    """Build the /data body. ``tags`` is omitted when empty."""
    payload: dict[str, Any] = {"data": data}
    normalized = normalize_tags(tags)
    if normalized:
        payload["tags"] = normalized
    return payload


def build_event_payload(
    *,
    event: str,
    sub_event: str = "",
    event_type: str = "",
    event_flag: str = "",
    event_key: str = "",
    event_data: JsonValue = None,
    tags: TagsLike | None = None,
) -> dict[str, Any]:
    """Build the /event body."""
    return {
        "event": event,
        "sub_event": sub_event,
        "event_type": event_type,
        "event_flag": event_flag,
        "event_key": event_key,
        "event_data": event_data if event_data is not None else {},
        "tags": normalize_tags(tags),
    }


def build_log_payload(
    *,
    service: str,
    environment: str,
    severity: str,
    log_type: str,
    log: str,
    data: JsonValue = None,
    tags: TagsLike | None = None,
) -> dict[str, Any]:
    """Build the /logs body. ``log_type`` is sent as ``type``."""
    return {
        "service": service,
        "environment": environment,
        "severity": severity,
        "type": log_type,
        "log": log,
        "data": data if data is not None else {},
        "tags": normalize_tags(tags),
    }


def build_metrics_payload(
    *,
    service: str,
    environment: str,
    metrics: Mapping[str, JsonValue],
    tags: TagsLike | None = None,
) -> dict[str, Any]:
    """Build the /metrics body."""
    return {
        "service": service,
        "environment": environment,
        "metrics": dict(metrics),
        "tags": normalize_tags(tags),
    }


def build_monitor_payload(
    *,
    cpu_usage: float,
    memory_usage: float,
    dlls_loaded: Sequence[str],
    settings: Mapping[str, JsonValue],
) -> dict[str, Any]:
    """Build the /monitor body."""
    return {
        "cpu_usage": cpu_usage,
        "memory_usage": memory_usage,
        "dlls_loaded": list(dlls_loaded),
        "settings": dict(settings),
    }


def encode_body(payload: Mapping[str, Any]) -> bytes:
    """Serialize a payload to compact UTF-8 JSON.

    Raises:
        PogrEncodeError: If the payload holds values JSON cannot represent.
    """
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False).encode(
            "utf-8"
        )
    except (TypeError, ValueError) as err:
        raise PogrEncodeError(f"Failed to encode request payload: {err}") from err
