"""Configuration dataclasses for llmadapters."""

import os
from dataclasses import dataclass


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class AdapterConfig:
    """HTTP settings shared by adapters.

    Attributes:
        http_timeout: Total request timeout in seconds.
        http_connect_timeout: Connect timeout in seconds.
        max_connections: Connection pool size per process.
        max_keepalive_connections: Idle connections kept per process.
        override_base_url: If set, every adapter talks to this URL instead
            of its provider's (useful for proxies and recording servers).
    """

    http_timeout: float = 600.0
    http_connect_timeout: float = 5.0
    max_connections: int = 1000
    max_keepalive_connections: int = 100
    override_base_url: str | None = None

    def __post_init__(self) -> None:
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")
        if self.http_connect_timeout <= 0:
            raise ValueError("http_connect_timeout must be positive")
        if self.max_connections <= 0:
            raise ValueError("max_connections must be positive")
        if self.max_keepalive_connections < 0:
            raise ValueError("max_keepalive_connections must not be negative")
        if self.max_keepalive_connections > self.max_connections:
            raise ValueError("max_keepalive_connections must not exceed max_connections")

    @classmethod
    def from_env(cls) -> "AdapterConfig":
        """Build a config from ADAPTERS_* environment variables."""
        return cls(
            http_timeout=_env_number("ADAPTERS_HTTP_TIMEOUT", 600.0),
            http_connect_timeout=_env_number("ADAPTERS_HTTP_CONNECT_TIMEOUT", 5.0),
            max_connections=int(_env_number("ADAPTERS_MAX_CONNECTIONS_PER_PROCESS", 1000)),
            max_keepalive_connections=int(_env_number("ADAPTERS_MAX_KEEPALIVE_CONNECTIONS_PER_PROCESS", 100)),
            override_base_url=os.environ.get("_ADAPTERS_OVERRIDE_ALL_BASE_URLS_") or None,
        )
