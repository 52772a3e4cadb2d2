"""IAM roles: the function execution role and the monitoring meta role."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from botocore.exceptions import ClientError

from contracts.deployment import DefaultRole, DeploymentState, FunctionConfig, FunctionRole, UserRole
from contracts.errors import NotFoundError, is_not_found
from contracts.services import AwsClients
from infra.logging_config import StructuredLogger

_LOGGER = StructuredLogger(__name__)

POLICY_VERSION = "2012-10-17"
LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"
BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"

META_ROLE_ACTIONS = (
    "cloudwatch:Describe*",
    "cloudwatch:Get*",
    "cloudwatch:List*",
    "logs:Get*",
    "logs:List*",
    "logs:Describe*",
    "logs:TestMetricFilter",
    "logs:FilterLogEvents",
)


def default_role_name(function_name: str) -> str:
    return f"{function_name}-lambda-role"


def meta_role_name(instance_name: str) -> str:
    return f"{instance_name}-meta-role"


def service_trust_policy(*services: str) -> dict[str, Any]:
    """Trust document letting the given AWS services assume the role."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": list(services)},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def account_trust_policy(account_id: str) -> dict[str, Any]:
    """Trust document letting a whole external account assume the role."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": f"arn:aws:iam::{account_id}:root"},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def meta_role_policy() -> dict[str, Any]:
    """Read-only access to metrics and logs."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Resource": "*",
                "Action": list(META_ROLE_ACTIONS),
            }
        ],
    }


def _get_role(iam: Any, role_name: str) -> Mapping[str, Any] | None:
    """Return the ``Role`` block, or None when IAM reports NoSuchEntity."""
    try:
        res = iam.get_role(RoleName=role_name)
    except ClientError as exc:
        if is_not_found(exc):
            return None
        raise
    return (res or {}).get("Role") or None


def deploy_role(
    iam: Any,
    *,
    role_name: str,
    assume_role_policy_document: Mapping[str, Any],
    managed_policy_arns: Sequence[str] = (),
    inline_policy: Mapping[str, Any] | None = None,
    description: str | None = None,
) -> str:
    """Create the role or bring an existing one up to date; return its ARN.

    Safe to call repeatedly: the trust document is overwritten, managed policies
    are (re)attached and the inline policy is (re)written under a fixed name.
    """
    trust_doc = json.dumps(assume_role_policy_document)
    role = _get_role(iam, role_name)
    if role is None:
        kwargs: dict[str, Any] = {"RoleName": role_name, "AssumeRolePolicyDocument": trust_doc}
        if description:
            kwargs["Description"] = description
        role = iam.create_role(**kwargs)["Role"]
        _LOGGER.info("role_created", role_name=role_name)
    else:
        iam.update_assume_role_policy(RoleName=role_name, PolicyDocument=trust_doc)
        if description:
            iam.update_role_description(RoleName=role_name, Description=description)
        _LOGGER.info("role_updated", role_name=role_name)

    for policy_arn in managed_policy_arns:
        iam.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    if inline_policy is not None:
        iam.put_role_policy(
            RoleName=role_name,
            PolicyName=f"{role_name}-policy",
            PolicyDocument=json.dumps(inline_policy),
        )

    return str(role["Arn"])


def remove_role(iam: Any, role_name: str) -> bool:
    """Detach/delete every policy, then the role. Returns False if it was already gone."""
    try:
        for page in iam.get_paginator("list_attached_role_policies").paginate(RoleName=role_name):
            for policy in page.get("AttachedPolicies", []) or []:
                iam.detach_role_policy(RoleName=role_name, PolicyArn=policy["PolicyArn"])
        for page in iam.get_paginator("list_role_policies").paginate(RoleName=role_name):
            for policy_name in page.get("PolicyNames", []) or []:
                iam.delete_role_policy(RoleName=role_name, PolicyName=policy_name)
        iam.delete_role(RoleName=role_name)
    except ClientError as exc:
        if not is_not_found(exc):
            raise
        _LOGGER.info("role_already_removed", role_name=role_name)
        return False
    _LOGGER.info("role_removed", role_name=role_name)
    return True


def create_or_update_function_role(
    state: DeploymentState,
    config: FunctionConfig,
    clients: AwsClients,
) -> FunctionRole:
    """Resolve the execution role and record it in state.

    With ``config.role_name`` the role must already exist (NotFoundError
    otherwise, state untouched). Without it, the default role
    ``{name}-lambda-role`` is created or updated.
    """
    if config.role_name:
        _LOGGER.info("function_role_verifying", role_name=config.role_name)
        role_block = _get_role(clients.iam, config.role_name)
        arn = str((role_block or {}).get("Arn") or "")
        if not arn:
            raise NotFoundError(f"The provided IAM Role with the name: {config.role_name} could not be found.")
        role: FunctionRole = UserRole(arn=arn)
        state.set_function_role(role)
        _LOGGER.info("function_role_verified", role_name=config.role_name, role_arn=arn)
        return role

    role_name = default_role_name(config.name)
    trust = (
        {"Version": POLICY_VERSION, "Statement": config.assume_role_policy}
        if config.assume_role_policy
        else service_trust_policy(LAMBDA_SERVICE_PRINCIPAL)
    )
    arn = deploy_role(
        clients.iam,
        role_name=role_name,
        assume_role_policy_document=trust,
        managed_policy_arns=(BASIC_EXECUTION_POLICY_ARN,),
    )
    role = DefaultRole(name=role_name, arn=arn)
    state.set_function_role(role)
    _LOGGER.info("default_role_deployed", role_name=role_name, role_arn=arn)
    return role


def create_or_update_meta_role(
    state: DeploymentState,
    config: FunctionConfig,
    clients: AwsClients,
    *,
    instance_name: str,
    stage: str,
    monitoring_account_id: str,
) -> str | None:
    """Deploy the monitoring role when monitoring is enabled; return its ARN."""
    if not config.monitoring:
        return None

    role_name = meta_role_name(instance_name)
    arn = deploy_role(
        clients.iam,
        role_name=role_name,
        assume_role_policy_document=account_trust_policy(monitoring_account_id),
        inline_policy=meta_role_policy(),
        description=f"The Meta Role for the Serverless Framework App: {instance_name} Stage: {stage}",
    )
    state.meta_role_name = role_name
    state.meta_role_arn = arn
    _LOGGER.info("meta_role_deployed", role_name=role_name, role_arn=arn)
    return arn


def remove_all_roles(state: DeploymentState, clients: AwsClients) -> None:
    """Delete the roles this provisioner owns; user-supplied roles are left alone."""
    owned = state.owned_role_name or (state.default_role.name if state.default_role else None)
    if owned:
        remove_role(clients.iam, owned)
        state.owned_role_name = None
        if state.default_role is not None:
            state.function_role = None

    if state.meta_role_name:
        remove_role(clients.iam, state.meta_role_name)
        state.meta_role_name = None
        state.meta_role_arn = None
