"""AWS SDK transport configuration for the provisioner.

The client factory takes a :class:`TransportConfig` explicitly; nothing here
mutates process-wide SDK state. Build one from settings with
:func:`transport_from_settings` and turn it into a botocore ``Config`` with
:func:`build_sdk_config`.
"""

from __future__ import annotations

from dataclasses import dataclass

from botocore.config import Config

from infra.config import AWSConfig
from version import ENGINE_NAME, ENGINE_VERSION


@dataclass(frozen=True)
class TransportConfig:
    """HTTP transport knobs shared by every client of one operation."""

    max_retries: int = 10
    read_timeout: int = 60
    connect_timeout: int = 5
    max_pool_connections: int = 10
    tcp_keepalive: bool = True
    user_agent_extra: str = f"{ENGINE_NAME}/{ENGINE_VERSION}"


def transport_from_settings(aws: AWSConfig) -> TransportConfig:
    """Map the ``aws`` settings section onto a transport config."""
    return TransportConfig(
        max_retries=int(aws.max_retries),
        read_timeout=int(aws.timeout),
        connect_timeout=int(aws.connect_timeout),
        max_pool_connections=int(aws.max_pool_connections),
        tcp_keepalive=bool(aws.tcp_keepalive),
    )


def build_sdk_config(transport: TransportConfig) -> Config:
    """Return the botocore client config for a transport."""
    return Config(
        retries={"max_attempts": int(transport.max_retries), "mode": "adaptive"},
        user_agent_extra=transport.user_agent_extra,
        connect_timeout=int(transport.connect_timeout),
        read_timeout=int(transport.read_timeout),
        max_pool_connections=int(transport.max_pool_connections),
        tcp_keepalive=bool(transport.tcp_keepalive),
    )
