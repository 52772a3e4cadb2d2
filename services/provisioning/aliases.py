"""Alias lifecycle and provisioned concurrency.

One alias per function, keyed by (function name, alias name). Deleting an
alias also drops its provisioned-concurrency configuration on the AWS side.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

from contracts.deployment import AliasDescriptor, ProvisionedConcurrency
from contracts.errors import is_not_found
from contracts.services import AwsClients
from infra.logging_config import StructuredLogger

_LOGGER = StructuredLogger(__name__)


def get_lambda_alias(clients: AwsClients, *, function_name: str, alias_name: str) -> AliasDescriptor | None:
    try:
        res = clients.lambda_client.get_alias(FunctionName=function_name, Name=alias_name)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise
    return AliasDescriptor.from_response(res)


def create_lambda_alias(
    clients: AwsClients,
    *,
    function_name: str,
    alias_name: str,
    version: str,
) -> AliasDescriptor:
    res = clients.lambda_client.create_alias(
        FunctionName=function_name,
        FunctionVersion=version,
        Name=alias_name,
    )
    _LOGGER.info("alias_created", function_name=function_name, alias_name=alias_name, version=version)
    return AliasDescriptor.from_response(res)


def update_lambda_alias(
    clients: AwsClients,
    *,
    function_name: str,
    alias_name: str,
    version: str,
) -> AliasDescriptor:
    """Repoint an existing alias at ``version``."""
    res = clients.lambda_client.update_alias(
        FunctionName=function_name,
        FunctionVersion=version,
        Name=alias_name,
    )
    _LOGGER.info("alias_updated", function_name=function_name, alias_name=alias_name, version=version)
    return AliasDescriptor.from_response(res)


def delete_lambda_alias(clients: AwsClients, *, function_name: str, alias_name: str) -> None:
    clients.lambda_client.delete_alias(FunctionName=function_name, Name=alias_name)
    _LOGGER.info("alias_deleted", function_name=function_name, alias_name=alias_name)


def update_provisioned_concurrency_config(
    clients: AwsClients,
    *,
    function_name: str,
    alias_name: str,
    provisioned_concurrency: int,
) -> ProvisionedConcurrency:
    """Set the provisioned concurrency of an alias.

    Allocation is asynchronous on the AWS side; the returned counts are a
    snapshot and are not polled until they converge.
    """
    res = clients.lambda_client.put_provisioned_concurrency_config(
        FunctionName=function_name,
        ProvisionedConcurrentExecutions=provisioned_concurrency,
        Qualifier=alias_name,
    )
    result = ProvisionedConcurrency(
        allocated=int(res.get("AllocatedProvisionedConcurrentExecutions") or 0),
        requested=int(res.get("RequestedProvisionedConcurrentExecutions") or 0),
        status=str(res.get("Status") or ""),
    )
    _LOGGER.info(
        "provisioned_concurrency_set",
        function_name=function_name,
        alias_name=alias_name,
        requested=result.requested,
        allocated=result.allocated,
    )
    return result
