"""Lambda function lifecycle: create, update configuration/code, get, delete."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError

from contracts.deployment import DeploymentState, FunctionConfig, FunctionDescriptor
from contracts.errors import ProvisioningError, error_code, is_not_found
from contracts.services import AwsClients
from infra.logging_config import StructuredLogger
from services.provisioning.retry import RetryPolicy, call_with_role_propagation_retry

_LOGGER = StructuredLogger(__name__)


def read_code_archive(src: str | None) -> bytes:
    """Return the zip archive bytes for ``src``."""
    if not src:
        raise ProvisioningError("src (path to the code archive) is required")
    return Path(src).read_bytes()


def _require_role_arn(state: DeploymentState) -> str:
    arn = state.role_arn
    if not arn:
        raise ProvisioningError("no execution role recorded in state; resolve the function role first")
    return arn


def _environment(config: FunctionConfig) -> dict[str, Any]:
    return {"Variables": dict(config.env)}


def _vpc_config(config: FunctionConfig) -> dict[str, Any]:
    return {
        "SecurityGroupIds": list(config.security_group_ids),
        "SubnetIds": list(config.subnet_ids),
    }


def create_lambda_function(
    config: FunctionConfig,
    state: DeploymentState,
    clients: AwsClients,
    *,
    retry_policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FunctionDescriptor:
    """Create the function and publish version 1.

    A freshly created IAM role is not immediately assumable by Lambda; those
    rejections are retried with a fixed delay, up to ``retry_policy.max_attempts``.
    """
    params: dict[str, Any] = {
        "FunctionName": config.name,
        "Code": {"ZipFile": read_code_archive(config.src)},
        "Description": config.description,
        "Handler": config.handler,
        "MemorySize": config.memory,
        "Publish": True,
        "Role": _require_role_arn(state),
        "Runtime": config.runtime,
        "Timeout": config.timeout,
        "Layers": list(config.layers),
        "Environment": _environment(config),
        "VpcConfig": _vpc_config(config),
    }

    res = call_with_role_propagation_retry(
        lambda: clients.lambda_client.create_function(**params),
        policy=retry_policy or RetryPolicy(),
        operation_name="create_function",
        sleep=sleep,
    )
    descriptor = FunctionDescriptor.from_configuration(res)
    _LOGGER.info("function_created", function_name=config.name, version=descriptor.version)
    return descriptor


def update_lambda_function_config(
    config: FunctionConfig,
    state: DeploymentState,
    clients: AwsClients,
) -> FunctionDescriptor:
    """Push mutable configuration, then the async-invoke retry setting.

    The two calls are not atomic: if the second fails the new configuration stays
    applied; the failure is logged and re-raised.
    """
    params: dict[str, Any] = {
        "FunctionName": config.name,
        "Description": config.description,
        "Handler": config.handler,
        "MemorySize": config.memory,
        "Role": _require_role_arn(state),
        "Runtime": config.runtime,
        "Timeout": config.timeout,
        "Layers": list(config.layers),
        "Environment": _environment(config),
        "VpcConfig": _vpc_config(config),
    }
    res = clients.lambda_client.update_function_configuration(**params)

    try:
        clients.lambda_client.put_function_event_invoke_config(
            FunctionName=config.name,
            MaximumRetryAttempts=config.retry,
        )
    except ClientError as exc:
        _LOGGER.warning(
            "function_config_partially_applied",
            function_name=config.name,
            failed_step="put_function_event_invoke_config",
            error_code=error_code(exc),
        )
        raise

    _LOGGER.info("function_config_updated", function_name=config.name)
    return FunctionDescriptor.from_configuration(res)


def update_lambda_function_code(config: FunctionConfig, clients: AwsClients) -> FunctionDescriptor:
    """Upload the archive again and publish a new version."""
    res = clients.lambda_client.update_function_code(
        FunctionName=config.name,
        Publish=True,
        ZipFile=read_code_archive(config.src),
    )
    descriptor = FunctionDescriptor.from_configuration(res)
    _LOGGER.info("function_code_updated", function_name=config.name, version=descriptor.version)
    return descriptor


def wait_until_ready(clients: AwsClients, function_name: str, *, waiter_name: str = "function_updated_v2") -> None:
    """Block until the last create/update of the function has settled.

    Lambda rejects a configuration change while a previous one is in progress.
    """
    clients.lambda_client.get_waiter(waiter_name).wait(FunctionName=function_name)


def get_lambda_function(clients: AwsClients, function_name: str) -> FunctionDescriptor | None:
    """Return the deployed function, or None when it does not exist."""
    try:
        res = clients.lambda_client.get_function_configuration(FunctionName=function_name)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise
    return FunctionDescriptor.from_configuration(res)


def delete_lambda_function(clients: AwsClients, function_name: str) -> bool:
    """Delete the function; an already-missing function only gets logged."""
    try:
        clients.lambda_client.delete_function(FunctionName=function_name)
    except ClientError as exc:
        if not is_not_found(exc):
            raise
        _LOGGER.info("function_delete_not_found", function_name=function_name)
        return False
    _LOGGER.info("function_deleted", function_name=function_name)
    return True
