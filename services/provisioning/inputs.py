"""Input normalization: raw component inputs -> :class:`FunctionConfig`."""

from __future__ import annotations

import random
import string
from collections.abc import Callable, Mapping
from typing import Any

from contracts.deployment import DeploymentState, FunctionConfig

DEFAULT_ALIAS_NAME = "provisioned"
DEFAULT_HANDLER = "handler.handler"
DEFAULT_MEMORY = 1028
DEFAULT_REGION = "us-east-1"
DEFAULT_RUNTIME = "nodejs12.x"
DEFAULT_TIMEOUT = 10

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 7) -> str:
    """Short lowercase alphanumeric id used in generated function names."""
    return "".join(random.choices(_SUFFIX_ALPHABET, k=length))


def default_description(instance_name: str, stage: str) -> str:
    return f'Serverless Component: aws-lambda. Name: "{instance_name}" Stage: "{stage}"'


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _value(inputs: Mapping[str, Any], key: str, default: Any) -> Any:
    """Input value, with an explicit null treated like an absent key."""
    value = inputs.get(key)
    return default if value is None else value


def resolve_region(raw: Mapping[str, Any] | None) -> str:
    """Target region of the inputs; null or blank means the default region."""
    return str((raw or {}).get("region") or "").strip() or DEFAULT_REGION


def prepare_inputs(
    raw: Mapping[str, Any] | None,
    *,
    instance_name: str,
    stage: str,
    state: DeploymentState | None = None,
    suffix_factory: Callable[[], str] = random_suffix,
) -> FunctionConfig:
    """Merge raw inputs with defaults and previously stored state.

    Name resolution: explicit ``name`` input, then the name stored in state, then
    ``{instance_name}-{stage}-{suffix}``.
    """
    inputs = raw or {}
    alias = _mapping(inputs.get("alias"))
    vpc = _mapping(inputs.get("vpcConfig"))

    name = inputs.get("name") or (state.name if state is not None else None)
    if not name:
        name = f"{instance_name}-{stage}-{suffix_factory()}"

    return FunctionConfig(
        name=str(name),
        description=inputs.get("description") or default_description(instance_name, stage),
        handler=_value(inputs, "handler", DEFAULT_HANDLER),
        runtime=_value(inputs, "runtime", DEFAULT_RUNTIME),
        memory=_value(inputs, "memory", DEFAULT_MEMORY),
        timeout=_value(inputs, "timeout", DEFAULT_TIMEOUT),
        env=dict(inputs.get("env") or {}),
        layers=list(inputs.get("layers") or []),
        security_group_ids=list(vpc.get("securityGroupIds") or []),
        subnet_ids=list(vpc.get("subnetIds") or []),
        retry=_value(inputs, "retry", 0),
        alias_name=_value(alias, "name", DEFAULT_ALIAS_NAME),
        provisioned_concurrency=_value(inputs, "provisionedConcurrency", 0),
        region=resolve_region(inputs),
        src=inputs.get("src"),
        role_name=inputs.get("roleName"),
        assume_role_policy=inputs.get("assumeRolePolicy"),
        monitoring=_value(inputs, "monitoring", True),
    )
