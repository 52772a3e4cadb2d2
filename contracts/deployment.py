"""Data model of one Lambda deployment.

- :class:`FunctionConfig`: normalized inputs, built once per operation
- :class:`DeploymentState`: persisted record carried across operations
- :class:`UserRole` / :class:`DefaultRole`: the execution-role variant held in state
- :class:`FunctionDescriptor`, :class:`AliasDescriptor`,
  :class:`ProvisionedConcurrency`: read models of remote resources
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from version import STATE_SCHEMA_VERSION


@dataclass(frozen=True)
class FunctionConfig:
    """Canonical description of the function to deploy."""

    name: str
    description: str
    handler: str = "handler.handler"
    runtime: str = "nodejs12.x"
    memory: int = 1028
    timeout: int = 10
    env: dict[str, str] = field(default_factory=dict)
    layers: list[str] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    retry: int = 0
    alias_name: str = "provisioned"
    provisioned_concurrency: int = 0
    region: str = "us-east-1"
    src: str | None = None
    role_name: str | None = None
    assume_role_policy: Any = None
    monitoring: bool = True


@dataclass(frozen=True)
class UserRole:
    """A caller-supplied execution role; only its ARN is tracked."""

    arn: str

    kind = "user"


@dataclass(frozen=True)
class DefaultRole:
    """The execution role this provisioner created and owns."""

    name: str
    arn: str

    kind = "default"


FunctionRole = UserRole | DefaultRole


def account_id_from_arn(arn: str) -> str:
    """Return the account component of an ARN (or empty string)."""
    # arn:partition:service:region:account:resource
    parts = str(arn or "").split(":")
    if len(parts) >= 5 and parts[0] == "arn":
        return parts[4]
    return ""


@dataclass
class DeploymentState:
    """Mutable state record; written as each step succeeds, saved by the caller."""

    name: str | None = None
    region: str | None = None
    arn: str | None = None
    version: str | None = None
    hash: str | None = None
    function_role: FunctionRole | None = None
    aws_account_id: str | None = None
    owned_role_name: str | None = None
    meta_role_name: str | None = None
    meta_role_arn: str | None = None
    alias_name: str | None = None
    alias_arn: str | None = None
    provisioned_concurrency: int = 0

    @property
    def role_arn(self) -> str | None:
        return self.function_role.arn if self.function_role is not None else None

    @property
    def default_role(self) -> DefaultRole | None:
        if isinstance(self.function_role, DefaultRole):
            return self.function_role
        return None

    def set_function_role(self, role: FunctionRole) -> None:
        """Replace the execution role.

        The name of a default role stays in ``owned_role_name`` after switching
        to a user role, so that remove can still delete it.
        """
        self.function_role = role
        if isinstance(role, DefaultRole):
            self.owned_role_name = role.name or None
        self.aws_account_id = account_id_from_arn(role.arn) or None

    def is_empty(self) -> bool:
        return self == DeploymentState()

    def reset(self) -> None:
        """Forget everything (after a successful remove)."""
        empty = DeploymentState()
        for item in fields(self):
            setattr(self, item.name, getattr(empty, item.name))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly mapping (camelCase keys)."""
        role: dict[str, str] | None = None
        if isinstance(self.function_role, DefaultRole):
            role = {"kind": "default", "name": self.function_role.name, "arn": self.function_role.arn}
        elif isinstance(self.function_role, UserRole):
            role = {"kind": "user", "arn": self.function_role.arn}

        payload: dict[str, Any] = {
            "schemaVersion": STATE_SCHEMA_VERSION,
            "name": self.name,
            "region": self.region,
            "arn": self.arn,
            "version": self.version,
            "hash": self.hash,
            "functionRole": role,
            "awsAccountId": self.aws_account_id,
            "defaultLambdaRoleName": self.owned_role_name,
            "metaRoleName": self.meta_role_name,
            "metaRoleArn": self.meta_role_arn,
            "aliasName": self.alias_name,
            "aliasArn": self.alias_arn,
            "provisionedConcurrency": self.provisioned_concurrency,
        }
        return {k: v for k, v in payload.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DeploymentState:
        """Rebuild state; also accepts the flat role keys of older state files."""
        if not data:
            return cls()

        role: FunctionRole | None = None
        raw_role = data.get("functionRole")
        if isinstance(raw_role, Mapping):
            kind = str(raw_role.get("kind") or "")
            arn = str(raw_role.get("arn") or "")
            if kind == "default" and arn:
                role = DefaultRole(name=str(raw_role.get("name") or ""), arn=arn)
            elif kind == "user" and arn:
                role = UserRole(arn=arn)
        elif data.get("userRoleArn"):
            role = UserRole(arn=str(data["userRoleArn"]))
        elif data.get("defaultLambdaRoleArn"):
            role = DefaultRole(
                name=str(data.get("defaultLambdaRoleName") or ""),
                arn=str(data["defaultLambdaRoleArn"]),
            )

        owned_role_name = _opt_str(data.get("defaultLambdaRoleName"))
        if owned_role_name is None and isinstance(role, DefaultRole):
            owned_role_name = role.name or None

        return cls(
            name=_opt_str(data.get("name")),
            region=_opt_str(data.get("region")),
            arn=_opt_str(data.get("arn")),
            version=_opt_str(data.get("version")),
            hash=_opt_str(data.get("hash")),
            function_role=role,
            aws_account_id=_opt_str(data.get("awsAccountId")),
            owned_role_name=owned_role_name,
            meta_role_name=_opt_str(data.get("metaRoleName")),
            meta_role_arn=_opt_str(data.get("metaRoleArn")),
            alias_name=_opt_str(data.get("aliasName")),
            alias_arn=_opt_str(data.get("aliasArn")),
            provisioned_concurrency=int(data.get("provisionedConcurrency") or 0),
        )


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass(frozen=True)
class FunctionDescriptor:
    """Remote function as reported by the control plane."""

    name: str
    arn: str
    description: str = ""
    runtime: str = ""
    role_arn: str = ""
    handler: str = ""
    memory: int = 0
    timeout: int = 0
    env: dict[str, str] = field(default_factory=dict)
    hash: str = ""
    version: str | None = None
    security_group_ids: list[str] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    # not part of the function configuration; filled from deployment state
    provisioned_concurrency: int = 0

    @classmethod
    def from_configuration(cls, res: Mapping[str, Any]) -> FunctionDescriptor:
        """Build from a GetFunctionConfiguration / UpdateFunctionConfiguration response."""
        environment = res.get("Environment") or {}
        vpc = res.get("VpcConfig") or {}
        return cls(
            name=str(res.get("FunctionName") or ""),
            arn=str(res.get("FunctionArn") or ""),
            description=str(res.get("Description") or ""),
            runtime=str(res.get("Runtime") or ""),
            role_arn=str(res.get("Role") or ""),
            handler=str(res.get("Handler") or ""),
            memory=int(res.get("MemorySize") or 0),
            timeout=int(res.get("Timeout") or 0),
            env=dict(environment.get("Variables") or {}),
            hash=str(res.get("CodeSha256") or ""),
            version=_opt_str(res.get("Version")),
            security_group_ids=list(vpc.get("SecurityGroupIds") or []),
            subnet_ids=list(vpc.get("SubnetIds") or []),
        )


@dataclass(frozen=True)
class AliasDescriptor:
    name: str
    arn: str
    function_version: str = ""
    description: str = ""
    routing_config: dict[str, Any] | None = None

    @classmethod
    def from_response(cls, res: Mapping[str, Any]) -> AliasDescriptor:
        return cls(
            name=str(res.get("Name") or ""),
            arn=str(res.get("AliasArn") or ""),
            function_version=str(res.get("FunctionVersion") or ""),
            description=str(res.get("Description") or ""),
            routing_config=res.get("RoutingConfig"),
        )


@dataclass(frozen=True)
class ProvisionedConcurrency:
    """Allocated vs requested counts; they differ while capacity warms up."""

    allocated: int
    requested: int
    status: str = ""
