"""
Default transport for fluent_http.

Connection pooling, keep-alive, TLS, proxies and redirects are left to
``httpx.AsyncClient``; this module only holds the tuning knobs.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import httpx


def _idle_per_host() -> int:
    return (os.cpu_count() or 1) + 1


@dataclass(frozen=True)
class TransportConfig:
    """Connection-pool and timeout settings passed through to httpx."""

    max_connections: int = 100
    max_keepalive_connections: int = field(default_factory=_idle_per_host)
    keepalive_expiry: float = 90.0
    connect_timeout: float = 30.0
    timeout: float = 30.0
    trust_env: bool = True          # proxies from the environment
    follow_redirects: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_connections <= 0:
            raise ValueError("max_connections must be positive")
        if self.max_keepalive_connections < 0:
            raise ValueError("max_keepalive_connections must be non-negative")
        if self.timeout <= 0 or self.connect_timeout <= 0:
            raise ValueError("timeouts must be positive")


def default_client(config: Optional[TransportConfig] = None) -> httpx.AsyncClient:
    """
    Create the transport used by clients that were not given one.

    Args:
        config: Transport settings

    Returns:
        A new ``httpx.AsyncClient``; the caller owns closing it
    """
    if config is None:
        config = TransportConfig()

    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_keepalive_connections,
            keepalive_expiry=config.keepalive_expiry,
        ),
        timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
        trust_env=config.trust_env,
        follow_redirects=config.follow_redirects,
    )
