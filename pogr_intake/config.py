"""Client configuration for the POGR intake API.

Configuration is treated as data: a frozen dataclass built once and
passed to ``PogrClient``. It can be constructed directly, from environment
variables (optionally seeded from a ``.env`` file) or from a YAML file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from .errors import PogrConfigError
from .transport import IntakeTransport

DEFAULT_BASE_URL = "https://api.pogr.io/v1/intake"
DEFAULT_TIMEOUT = 30.0

ENV_CLIENT_ID = "POGR_CLIENT_ID"
ENV_BUILD_ID = "POGR_BUILD_ID"
ENV_ACCESS_KEY = "POGR_ACCESS_KEY"
ENV_SECRET_KEY = "POGR_SECRET_KEY"
ENV_BASE_URL = ("INTAKE_BASE_URL", "POGR_BASE_URL")
ENV_TIMEOUT = "POGR_TIMEOUT"
ENV_ENABLE_POOL = "POGR_ENABLE_CONNECTION_POOL"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True)
class ConnectionPoolConfig:
    """Connection pool tuning for the default HTTP transport.

    Attributes:
        max_idle_conns: Upper bound on pooled connections across all hosts.
        max_idle_conns_per_host: Upper bound on pooled connections per host.
        max_conns_per_host: Upper bound on concurrent connections per host.
        idle_conn_timeout: Seconds an idle connection is kept alive.
    """

    max_idle_conns: int = 100
    max_idle_conns_per_host: int = 100
    max_conns_per_host: int = 100
    idle_conn_timeout: float = 90.0

    def __post_init__(self) -> None:
        for name in ("max_idle_conns", "max_idle_conns_per_host", "max_conns_per_host"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise PogrConfigError(f"{name} must be a non-negative integer")
        if not _is_number(self.idle_conn_timeout) or self.idle_conn_timeout < 0:
            raise PogrConfigError("idle_conn_timeout must be a non-negative number")


def default_pool_config() -> ConnectionPoolConfig:
    """Return the default connection pool settings."""
    return ConnectionPoolConfig()


@dataclass(frozen=True)
class PogrConfig:
    """Credentials, endpoint and transport settings for ``PogrClient``.

    Attributes:
        client_key: Client key sent as ``POGR_CLIENT``.
        build_key: Build key sent as ``POGR_BUILD``.
        access_key: Access key for stateless intake.
        secret_key: Secret key paired with ``access_key``.
        base_url: Intake API root, without trailing slash.
        timeout: Per-call deadline in seconds. None or 0 disables it.
        enable_connection_pool: Apply ``pool_config`` to the default transport.
        pool_config: Pool tuning; defaults apply when None.
        transport: Custom transport used instead of the default one.
    """

    client_key: str = ""
    build_key: str = ""
    access_key: str = ""
    secret_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float | None = DEFAULT_TIMEOUT
    enable_connection_pool: bool = False
    pool_config: ConnectionPoolConfig | None = None
    transport: IntakeTransport | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("client_key", "build_key", "access_key", "secret_key", "base_url"):
            if not isinstance(getattr(self, name), str):
                raise PogrConfigError(f"{name} must be a string")

        base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        if not base_url.startswith(("http://", "https://")):
            raise PogrConfigError(
                f"base_url must start with http:// or https://, got: {base_url!r}"
            )
        object.__setattr__(self, "base_url", base_url)

        if self.timeout is not None and (
            not _is_number(self.timeout) or self.timeout < 0
        ):
            raise PogrConfigError("timeout must be a non-negative number or None")

        if not isinstance(self.enable_connection_pool, bool):
            raise PogrConfigError("enable_connection_pool must be a boolean")

        if self.pool_config is not None and not isinstance(
            self.pool_config, ConnectionPoolConfig
        ):
            raise PogrConfigError("pool_config must be a ConnectionPoolConfig")

    @property
    def effective_timeout(self) -> float | None:
        """Configured deadline, or None when disabled."""
        return self.timeout if self.timeout else None

    @property
    def has_access_key_auth(self) -> bool:
        return bool(self.access_key and self.secret_key)

    @property
    def has_client_key_auth(self) -> bool:
        return bool(self.client_key and self.build_key)

    def with_transport(self, transport: IntakeTransport) -> PogrConfig:
        """Return a copy using ``transport``."""
        return replace(self, transport=transport)

    def describe(self) -> str:
        """Render the configuration for diagnostics with secrets masked."""
        pool = self.pool_config or default_pool_config()
        lines = [
            "POGR SDK Configuration:",
            f"BaseURL: {self.base_url}",
            f"ClientKey: {_mask(self.client_key)}",
            f"BuildKey: {_mask(self.build_key)}",
            f"AccessKey: {_mask(self.access_key)}",
            f"SecretKey: {_mask(self.secret_key)}",
            f"Connection Pool Enabled: {self.enable_connection_pool}",
        ]
        if self.enable_connection_pool:
            lines.append(
                "Pool: max_idle_conns={} max_idle_conns_per_host={} "
                "max_conns_per_host={} idle_conn_timeout={}s".format(
                    pool.max_idle_conns,
                    pool.max_idle_conns_per_host,
                    pool.max_conns_per_host,
                    pool.idle_conn_timeout,
                )
            )
        timeout = f"{self.timeout}s" if self.effective_timeout else "disabled"
        lines.append(f"Timeout: {timeout}")
        lines.append(f"Custom Transport: {self.transport is not None}")
        return "\n".join(lines)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        dotenv_path: str | Path | None = None,
        **overrides: Any,
    ) -> PogrConfig:
        """Build a config from environment variables.

        Values from ``dotenv_path`` fill in variables missing from the
        environment; real environment variables win.

        Args:
            environ: Variables to read instead of ``os.environ``.
            dotenv_path: Optional ``.env`` file to read first.
            **overrides: Field values that take precedence over the environment.
        """
        env: dict[str, str] = {}
        if dotenv_path is not None:
            env.update(
                {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
            )
        env.update(os.environ if environ is None else environ)

        values: dict[str, Any] = {
            "client_key": env.get(ENV_CLIENT_ID, ""),
            "build_key": env.get(ENV_BUILD_ID, ""),
            "access_key": env.get(ENV_ACCESS_KEY, ""),
            "secret_key": env.get(ENV_SECRET_KEY, ""),
        }
        base_url = next((env[name] for name in ENV_BASE_URL if env.get(name)), "")
        if base_url:
            values["base_url"] = base_url
        if env.get(ENV_TIMEOUT):
            values["timeout"] = _parse_float(ENV_TIMEOUT, env[ENV_TIMEOUT])
        if ENV_ENABLE_POOL in env:
            values["enable_connection_pool"] = _parse_bool(
                ENV_ENABLE_POOL, env[ENV_ENABLE_POOL]
            )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> PogrConfig:
        """Build a config from a YAML mapping.

        Recognized keys are the field names of this class, with pool tuning
        under a nested ``pool`` mapping. Unknown keys are rejected.
        """
        with Path(path).open(encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise PogrConfigError(f"{path}: top level must be a mapping")

        data = dict(raw)
        pool_raw = data.pop("pool", None)
        allowed = {
            "client_key",
            "build_key",
            "access_key",
            "secret_key",
            "base_url",
            "timeout",
            "enable_connection_pool",
        }
        unknown = set(data) - allowed
        if unknown:
            raise PogrConfigError(
                f"{path}: unknown config keys: {', '.join(sorted(unknown))}"
            )

        values: dict[str, Any] = {
            key: value
            for key, value in data.items()
            if value is not None or key == "timeout"
        }
        if pool_raw is not None:
            if not isinstance(pool_raw, dict):
                raise PogrConfigError(f"{path}: 'pool' must be a mapping")
            try:
                values["pool_config"] = ConnectionPoolConfig(**pool_raw)
            except TypeError as err:
                raise PogrConfigError(f"{path}: invalid pool settings: {err}") from err
        values.update(overrides)
        return cls(**values)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _mask(value: str) -> str:
    if not value:
        return "<unset>"
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as err:
        raise PogrConfigError(f"{name} must be a number, got {raw!r}") from err


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise PogrConfigError(f"{name} must be a boolean, got {raw!r}")
