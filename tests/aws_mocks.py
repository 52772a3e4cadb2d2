"""Shared AWS test doubles for provisioning tests.

These fakes intentionally avoid boto3 client construction and focus on:
- in-memory IAM roles and policies
- an in-memory Lambda control plane (functions, versions, aliases, concurrency)
- STS assume-role and CloudWatch GetMetricData
- call recording so tests can assert on exact API traffic
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import ClientError

from contracts.services import AwsClients

ACCOUNT_ID = "123456789012"
ROLE_PROPAGATION_MESSAGE = "The role defined for the function cannot be assumed by Lambda."


def make_client_error(
    operation_name: str,
    *,
    code: str = "AccessDeniedException",
    message: str = "Denied",
) -> ClientError:
    """Build a deterministic botocore ClientError payload for tests."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation_name)


def role_propagation_error() -> ClientError:
    return make_client_error(
        "CreateFunction",
        code="InvalidParameterValueException",
        message=ROLE_PROPAGATION_MESSAGE,
    )


def code_sha256(zip_bytes: bytes) -> str:
    return base64.b64encode(hashlib.sha256(zip_bytes).digest()).decode("ascii")


class FakePaginator:
    """Paginator fake driven by a kwargs-aware page provider."""

    def __init__(self, provider: Callable[[dict[str, Any]], Iterable[Mapping[str, Any]]]) -> None:
        self._provider = provider

    def paginate(self, **kwargs: Any) -> Iterable[Mapping[str, Any]]:
        yield from self._provider(dict(kwargs))


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.raise_on: dict[str, ClientError] = {}

    def _record(self, op: str, **kwargs: Any) -> None:
        self.calls.append((op, dict(kwargs)))
        exc = self.raise_on.get(op)
        if exc is not None:
            raise exc

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def calls_for(self, op: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == op]


class FakeIamClient(_Recorder):
    """IAM fake covering the role operations used by the provisioner."""

    def __init__(self, *, roles: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        super().__init__()
        self.roles: dict[str, dict[str, Any]] = {name: dict(role) for name, role in (roles or {}).items()}
        self.attached: dict[str, list[str]] = {}
        self.inline: dict[str, dict[str, str]] = {}

    def add_role(self, role_name: str) -> str:
        arn = f"arn:aws:iam::{ACCOUNT_ID}:role/{role_name}"
        self.roles[role_name] = {"RoleName": role_name, "Arn": arn}
        return arn

    def _require(self, op: str, role_name: str) -> dict[str, Any]:
        role = self.roles.get(role_name)
        if role is None:
            raise make_client_error(op, code="NoSuchEntity", message=f"Role {role_name} not found")
        return role

    def get_role(self, *, RoleName: str) -> dict[str, Any]:
        self._record("get_role", RoleName=RoleName)
        return {"Role": dict(self._require("GetRole", RoleName))}

    def create_role(self, *, RoleName: str, AssumeRolePolicyDocument: str, **kwargs: Any) -> dict[str, Any]:
        self._record("create_role", RoleName=RoleName, AssumeRolePolicyDocument=AssumeRolePolicyDocument, **kwargs)
        if RoleName in self.roles:
            raise make_client_error("CreateRole", code="EntityAlreadyExists", message="exists")
        arn = self.add_role(RoleName)
        self.roles[RoleName].update(AssumeRolePolicyDocument=AssumeRolePolicyDocument, **kwargs)
        return {"Role": {"RoleName": RoleName, "Arn": arn}}

    def update_assume_role_policy(self, *, RoleName: str, PolicyDocument: str) -> dict[str, Any]:
        self._record("update_assume_role_policy", RoleName=RoleName, PolicyDocument=PolicyDocument)
        self._require("UpdateAssumeRolePolicy", RoleName)["AssumeRolePolicyDocument"] = PolicyDocument
        return {}

    def update_role_description(self, *, RoleName: str, Description: str) -> dict[str, Any]:
        self._record("update_role_description", RoleName=RoleName, Description=Description)
        self._require("UpdateRoleDescription", RoleName)["Description"] = Description
        return {}

    def attach_role_policy(self, *, RoleName: str, PolicyArn: str) -> dict[str, Any]:
        self._record("attach_role_policy", RoleName=RoleName, PolicyArn=PolicyArn)
        self._require("AttachRolePolicy", RoleName)
        attached = self.attached.setdefault(RoleName, [])
        if PolicyArn not in attached:
            attached.append(PolicyArn)
        return {}

    def detach_role_policy(self, *, RoleName: str, PolicyArn: str) -> dict[str, Any]:
        self._record("detach_role_policy", RoleName=RoleName, PolicyArn=PolicyArn)
        self.attached.get(RoleName, []).remove(PolicyArn)
        return {}

    def put_role_policy(self, *, RoleName: str, PolicyName: str, PolicyDocument: str) -> dict[str, Any]:
        self._record("put_role_policy", RoleName=RoleName, PolicyName=PolicyName, PolicyDocument=PolicyDocument)
        self._require("PutRolePolicy", RoleName)
        self.inline.setdefault(RoleName, {})[PolicyName] = PolicyDocument
        return {}

    def delete_role_policy(self, *, RoleName: str, PolicyName: str) -> dict[str, Any]:
        self._record("delete_role_policy", RoleName=RoleName, PolicyName=PolicyName)
        self.inline.get(RoleName, {}).pop(PolicyName, None)
        return {}

    def delete_role(self, *, RoleName: str) -> dict[str, Any]:
        self._record("delete_role", RoleName=RoleName)
        self._require("DeleteRole", RoleName)
        del self.roles[RoleName]
        return {}

    def get_paginator(self, op_name: str) -> FakePaginator:
        def _attached(kwargs: dict[str, Any]) -> Iterable[dict[str, Any]]:
            role_name = str(kwargs.get("RoleName") or "")
            self._require("ListAttachedRolePolicies", role_name)
            policies = [{"PolicyArn": arn} for arn in self.attached.get(role_name, [])]
            yield {"AttachedPolicies": policies}

        def _inline(kwargs: dict[str, Any]) -> Iterable[dict[str, Any]]:
            role_name = str(kwargs.get("RoleName") or "")
            self._require("ListRolePolicies", role_name)
            yield {"PolicyNames": list(self.inline.get(role_name, {}))}

        providers = {"list_attached_role_policies": _attached, "list_role_policies": _inline}
        if op_name not in providers:
            raise KeyError(f"FakeIamClient has no paginator configured for {op_name}")
        return FakePaginator(providers[op_name])


class FakeWaiter:
    def __init__(self, owner: FakeLambdaClient, name: str) -> None:
        self._owner = owner
        self._name = name

    def wait(self, **kwargs: Any) -> None:
        self._owner.waits.append((self._name, dict(kwargs)))


class FakeLambdaClient(_Recorder):
    """Lambda control-plane fake with versions, aliases and provisioned concurrency."""

    def __init__(self, *, region: str = "us-east-1") -> None:
        super().__init__()
        self.region = region
        self.functions: dict[str, dict[str, Any]] = {}
        self.latest_version: dict[str, int] = {}
        self.aliases: dict[tuple[str, str], dict[str, Any]] = {}
        self.provisioned: dict[tuple[str, str], int] = {}
        self.event_invoke: dict[str, dict[str, Any]] = {}
        self.create_errors: list[ClientError] = []
        self.waits: list[tuple[str, dict[str, Any]]] = []

    def _arn(self, function_name: str) -> str:
        return f"arn:aws:lambda:{self.region}:{ACCOUNT_ID}:function:{function_name}"

    def _not_found(self, op: str, what: str) -> ClientError:
        return make_client_error(op, code="ResourceNotFoundException", message=f"{what} not found")

    def _require(self, op: str, function_name: str) -> dict[str, Any]:
        fn = self.functions.get(function_name)
        if fn is None:
            raise self._not_found(op, f"Function {function_name}")
        return fn

    def _response(self, function_name: str, version: str) -> dict[str, Any]:
        payload = dict(self.functions[function_name])
        payload["Version"] = version
        return payload

    def create_function(self, **params: Any) -> dict[str, Any]:
        self._record("create_function", **params)
        if self.create_errors:
            raise self.create_errors.pop(0)
        name = params["FunctionName"]
        if name in self.functions:
            raise make_client_error("CreateFunction", code="ResourceConflictException", message="exists")
        self.functions[name] = {
            "FunctionName": name,
            "FunctionArn": self._arn(name),
            "Description": params.get("Description", ""),
            "Handler": params.get("Handler"),
            "MemorySize": params.get("MemorySize"),
            "Role": params.get("Role"),
            "Runtime": params.get("Runtime"),
            "Timeout": params.get("Timeout"),
            "Layers": [{"Arn": arn} for arn in params.get("Layers") or []],
            "Environment": dict(params.get("Environment") or {}),
            "VpcConfig": dict(params.get("VpcConfig") or {}),
            "CodeSha256": code_sha256(params["Code"]["ZipFile"]),
        }
        self.latest_version[name] = 1
        return self._response(name, "1")

    def update_function_code(self, *, FunctionName: str, ZipFile: bytes, Publish: bool = False) -> dict[str, Any]:
        self._record("update_function_code", FunctionName=FunctionName, ZipFile=ZipFile, Publish=Publish)
        fn = self._require("UpdateFunctionCode", FunctionName)
        new_hash = code_sha256(ZipFile)
        if new_hash != fn["CodeSha256"] or FunctionName not in self.latest_version:
            fn["CodeSha256"] = new_hash
            if Publish:
                self.latest_version[FunctionName] = self.latest_version.get(FunctionName, 0) + 1
        version = str(self.latest_version.get(FunctionName, "$LATEST")) if Publish else "$LATEST"
        return self._response(FunctionName, version)

    def update_function_configuration(self, **params: Any) -> dict[str, Any]:
        self._record("update_function_configuration", **params)
        name = params["FunctionName"]
        fn = self._require("UpdateFunctionConfiguration", name)
        for key in ("Description", "Handler", "MemorySize", "Role", "Runtime", "Timeout", "Environment", "VpcConfig"):
            if key in params:
                fn[key] = params[key]
        if "Layers" in params:
            fn["Layers"] = [{"Arn": arn} for arn in params["Layers"] or []]
        return self._response(name, "$LATEST")

    def put_function_event_invoke_config(self, *, FunctionName: str, **kwargs: Any) -> dict[str, Any]:
        self._record("put_function_event_invoke_config", FunctionName=FunctionName, **kwargs)
        self._require("PutFunctionEventInvokeConfig", FunctionName)
        self.event_invoke[FunctionName] = dict(kwargs)
        return {"FunctionArn": self._arn(FunctionName), **kwargs}

    def get_function_configuration(self, *, FunctionName: str) -> dict[str, Any]:
        self._record("get_function_configuration", FunctionName=FunctionName)
        self._require("GetFunctionConfiguration", FunctionName)
        return self._response(FunctionName, "$LATEST")

    def delete_function(self, *, FunctionName: str) -> dict[str, Any]:
        self._record("delete_function", FunctionName=FunctionName)
        self._require("DeleteFunction", FunctionName)
        del self.functions[FunctionName]
        self.latest_version.pop(FunctionName, None)
        for key in [k for k in self.aliases if k[0] == FunctionName]:
            del self.aliases[key]
            self.provisioned.pop(key, None)
        return {}

    def _alias_response(self, function_name: str, alias_name: str) -> dict[str, Any]:
        return dict(self.aliases[(function_name, alias_name)])

    def get_alias(self, *, FunctionName: str, Name: str) -> dict[str, Any]:
        self._record("get_alias", FunctionName=FunctionName, Name=Name)
        if (FunctionName, Name) not in self.aliases:
            raise self._not_found("GetAlias", f"Alias {Name}")
        return self._alias_response(FunctionName, Name)

    def create_alias(self, *, FunctionName: str, Name: str, FunctionVersion: str, **kwargs: Any) -> dict[str, Any]:
        self._record("create_alias", FunctionName=FunctionName, Name=Name, FunctionVersion=FunctionVersion, **kwargs)
        self._require("CreateAlias", FunctionName)
        if (FunctionName, Name) in self.aliases:
            raise make_client_error("CreateAlias", code="ResourceConflictException", message="exists")
        self.aliases[(FunctionName, Name)] = {
            "Name": Name,
            "AliasArn": f"{self._arn(FunctionName)}:{Name}",
            "FunctionVersion": FunctionVersion,
            "Description": kwargs.get("Description", ""),
        }
        return self._alias_response(FunctionName, Name)

    def update_alias(self, *, FunctionName: str, Name: str, FunctionVersion: str, **kwargs: Any) -> dict[str, Any]:
        self._record("update_alias", FunctionName=FunctionName, Name=Name, FunctionVersion=FunctionVersion, **kwargs)
        if (FunctionName, Name) not in self.aliases:
            raise self._not_found("UpdateAlias", f"Alias {Name}")
        self.aliases[(FunctionName, Name)]["FunctionVersion"] = FunctionVersion
        return self._alias_response(FunctionName, Name)

    def delete_alias(self, *, FunctionName: str, Name: str) -> dict[str, Any]:
        self._record("delete_alias", FunctionName=FunctionName, Name=Name)
        if (FunctionName, Name) not in self.aliases:
            raise self._not_found("DeleteAlias", f"Alias {Name}")
        del self.aliases[(FunctionName, Name)]
        self.provisioned.pop((FunctionName, Name), None)
        return {}

    def put_provisioned_concurrency_config(
        self,
        *,
        FunctionName: str,
        Qualifier: str,
        ProvisionedConcurrentExecutions: int,
    ) -> dict[str, Any]:
        self._record(
            "put_provisioned_concurrency_config",
            FunctionName=FunctionName,
            Qualifier=Qualifier,
            ProvisionedConcurrentExecutions=ProvisionedConcurrentExecutions,
        )
        if (FunctionName, Qualifier) not in self.aliases:
            raise self._not_found("PutProvisionedConcurrencyConfig", f"Alias {Qualifier}")
        self.provisioned[(FunctionName, Qualifier)] = ProvisionedConcurrentExecutions
        return {
            "RequestedProvisionedConcurrentExecutions": ProvisionedConcurrentExecutions,
            "AllocatedProvisionedConcurrentExecutions": 0,
            "Status": "IN_PROGRESS",
        }

    def get_waiter(self, waiter_name: str) -> FakeWaiter:
        return FakeWaiter(self, waiter_name)


class FakeStsClient(_Recorder):
    def assume_role(self, **kwargs: Any) -> dict[str, Any]:
        self._record("assume_role", **kwargs)
        return {
            "Credentials": {
                "AccessKeyId": "ASIATESTKEY",
                "SecretAccessKey": "secret",
                "SessionToken": "token",
            }
        }


class FakeCloudWatchClient(_Recorder):
    """CloudWatch fake returning pre-baked GetMetricData pages in order."""

    def __init__(self, *, pages: list[Mapping[str, Any]] | None = None) -> None:
        super().__init__()
        self._pages = list(pages or [{"MetricDataResults": []}])

    def get_metric_data(self, **kwargs: Any) -> Mapping[str, Any]:
        self._record("get_metric_data", **kwargs)
        token = str(kwargs.get("NextToken") or "")
        idx = int(token) if token else 0
        payload = dict(self._pages[idx])
        if idx + 1 < len(self._pages):
            payload["NextToken"] = str(idx + 1)
        return payload


@dataclass
class FakeAws:
    """One fake account: IAM, Lambda, STS and CloudWatch sharing a region."""

    region: str = "us-east-1"
    iam: FakeIamClient = field(default_factory=FakeIamClient)
    lambda_client: FakeLambdaClient = field(default_factory=FakeLambdaClient)
    sts: FakeStsClient = field(default_factory=FakeStsClient)
    cloudwatch: FakeCloudWatchClient = field(default_factory=FakeCloudWatchClient)
    cloudwatch_credentials: list[tuple[str, dict[str, str]]] = field(default_factory=list)

    def cloudwatch_factory(self, region: str, credentials: Mapping[str, str]) -> FakeCloudWatchClient:
        self.cloudwatch_credentials.append((region, dict(credentials)))
        return self.cloudwatch

    @property
    def clients(self) -> AwsClients:
        return AwsClients(
            iam=self.iam,
            lambda_client=self.lambda_client,
            sts=self.sts,
            cloudwatch_factory=self.cloudwatch_factory,
            region=self.region,
        )

    def clients_for_region(self, region: str) -> AwsClients:
        self.region = region
        self.lambda_client.region = region
        return self.clients
