"""
contracts/services.py

AWS client container + factory (DI-friendly).

Goals:
- Components receive an :class:`AwsClients` bag and never build clients themselves.
- Transport tuning arrives as an explicit :class:`~infra.aws_config.TransportConfig`.
- Tests pass fakes straight into ``AwsClients(...)``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

from infra.aws_config import TransportConfig, build_sdk_config

CloudWatchFactory = Callable[[str, Mapping[str, str]], Any]


@dataclass(frozen=True)
class AwsClients:
    """
    Bag of SDK clients used by one deploy/remove/metrics operation.

    ``cloudwatch_factory(region, credentials)`` builds a CloudWatch client from
    temporary STS credentials (``AccessKeyId``/``SecretAccessKey``/``SessionToken``).
    """

    iam: Any
    lambda_client: Any
    sts: Any
    cloudwatch_factory: CloudWatchFactory | None = None
    region: str = ""


class AwsClientFactory:
    """
    Creates AWS SDK clients for a region from one session and one transport.

    Usage:
      factory = AwsClientFactory(session=boto3.Session(), transport=TransportConfig())
      clients = factory.for_region("us-east-1")
    """

    def __init__(self, *, session: boto3.Session, transport: TransportConfig | None = None) -> None:
        self._session = session
        self._transport = transport or TransportConfig()
        self._sdk_config: Config = build_sdk_config(self._transport)
        self._by_region: dict[str, AwsClients] = {}

    @property
    def transport(self) -> TransportConfig:
        return self._transport

    def _client(self, service: str, *, region: str | None) -> Any:
        kwargs: dict[str, Any] = {"config": self._sdk_config}
        if region:
            kwargs["region_name"] = region
        return self._session.client(service, **kwargs)

    def cloudwatch_with_credentials(self, region: str, credentials: Mapping[str, str]) -> Any:
        """CloudWatch client signed with temporary credentials instead of the session's."""
        return self._session.client(
            "cloudwatch",
            region_name=region,
            aws_access_key_id=credentials.get("AccessKeyId"),
            aws_secret_access_key=credentials.get("SecretAccessKey"),
            aws_session_token=credentials.get("SessionToken"),
            config=self._sdk_config,
        )

    def for_region(self, region: str) -> AwsClients:
        """
        Return cached clients for a given region, creating them if needed.
        """
        reg = str(region or "").strip()
        if not reg:
            raise ValueError("region must be a non-empty string")

        cached = self._by_region.get(reg)
        if cached is not None:
            return cached

        clients = AwsClients(
            iam=self._client("iam", region=reg),
            lambda_client=self._client("lambda", region=reg),
            sts=self._client("sts", region=reg),
            cloudwatch_factory=self.cloudwatch_with_credentials,
            region=reg,
        )
        self._by_region[reg] = clients
        return clients

    def clear_cache(self) -> None:
        """
        Clears per-region client cache. (Mostly useful for tests.)
        """
        self._by_region.clear()
