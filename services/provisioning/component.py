"""
Deploy / remove / metrics entry points for one Lambda deployment.

Flow of ``deploy``:
  inputs -> FunctionConfig
    -> execution role, meta role
      -> create function | update code (+ config when it changed)
        -> alias + provisioned concurrency (or alias removal)

State is mutated step by step; the caller persists ``component.state`` once the
operation returns. A failed step leaves earlier state changes in place.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from contracts.deployment import DeploymentState, FunctionConfig, FunctionDescriptor
from contracts.errors import NotFoundError
from contracts.services import AwsClients
from infra.config import ProvisioningConfig
from infra.logging_config import StructuredLogger, deployment_context
from services.provisioning.aliases import (
    create_lambda_alias,
    delete_lambda_alias,
    get_lambda_alias,
    update_lambda_alias,
    update_provisioned_concurrency_config,
)
from services.provisioning.diff import desired_snapshot, inputs_changed, remote_snapshot
from services.provisioning.functions import (
    create_lambda_function,
    delete_lambda_function,
    get_lambda_function,
    update_lambda_function_code,
    update_lambda_function_config,
    wait_until_ready,
)
from services.provisioning.inputs import DEFAULT_REGION, prepare_inputs, random_suffix, resolve_region
from services.provisioning.metrics import get_metrics
from services.provisioning.retry import RetryPolicy
from services.provisioning.roles import (
    create_or_update_function_role,
    create_or_update_meta_role,
    remove_all_roles,
)

_LOGGER = StructuredLogger(__name__)

ClientsForRegion = Callable[[str], AwsClients]


class LambdaComponent:
    """One deployable Lambda function identified by (instance name, stage)."""

    def __init__(
        self,
        *,
        instance_name: str,
        stage: str,
        clients_for_region: ClientsForRegion,
        state: DeploymentState | None = None,
        provisioning: ProvisioningConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        suffix_factory: Callable[[], str] = random_suffix,
    ) -> None:
        if not str(instance_name or "").strip():
            raise ValueError("instance_name must be non-empty")
        if not str(stage or "").strip():
            raise ValueError("stage must be non-empty")
        self.instance_name = instance_name
        self.stage = stage
        self.state = state if state is not None else DeploymentState()
        self._clients_for_region = clients_for_region
        self._provisioning = provisioning or ProvisioningConfig()
        self._sleep = sleep
        self._suffix_factory = suffix_factory

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self._provisioning.role_propagation_max_attempts,
            backoff_seconds=self._provisioning.role_propagation_delay_seconds,
        )

    def deploy(self, inputs: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Create or update the function and everything around it; return outputs."""
        raw = dict(inputs or {})
        with deployment_context(instance=self.instance_name, stage=self.stage):
            new_region = resolve_region(raw)
            if self.state.region and self.state.name and self.state.region != new_region:
                _LOGGER.info("region_changed", old_region=self.state.region, new_region=new_region)
                self.remove()

            config = prepare_inputs(
                raw,
                instance_name=self.instance_name,
                stage=self.stage,
                state=self.state,
                suffix_factory=self._suffix_factory,
            )
            clients = self._clients_for_region(config.region)

            with deployment_context(function=config.name):
                create_or_update_function_role(self.state, config, clients)
                create_or_update_meta_role(
                    self.state,
                    config,
                    clients,
                    instance_name=self.instance_name,
                    stage=self.stage,
                    monitoring_account_id=self._provisioning.monitoring_account_id,
                )

                function = self._deploy_function(config, clients)
                self.state.name = config.name
                self.state.region = config.region
                self.state.arn = function.arn
                self.state.hash = function.hash
                self.state.version = function.version

                alias = self._deploy_alias(config, clients)
                self.state.provisioned_concurrency = config.provisioned_concurrency

        outputs: dict[str, Any] = {
            "name": config.name,
            "arn": function.arn,
            "version": function.version,
            "region": config.region,
            "securityGroupIds": list(config.security_group_ids),
            "subnetIds": list(config.subnet_ids),
        }
        if alias is not None:
            outputs["alias"] = alias
        return outputs

    def _deploy_function(self, config: FunctionConfig, clients: AwsClients) -> FunctionDescriptor:
        previous = get_lambda_function(clients, config.name)
        if previous is None:
            _LOGGER.info("function_creating", function_name=config.name)
            return create_lambda_function(
                config,
                self.state,
                clients,
                retry_policy=self.retry_policy,
                sleep=self._sleep,
            )

        function = update_lambda_function_code(config, clients)
        changed = inputs_changed(
            remote_snapshot(previous, provisioned_concurrency=self.state.provisioned_concurrency),
            desired_snapshot(config, role_arn=self.state.role_arn, code_hash=function.hash),
        )
        if not changed:
            _LOGGER.info("function_config_unchanged", function_name=config.name)
            return function

        wait_until_ready(clients, config.name)
        update_lambda_function_config(config, self.state, clients)
        return function

    def _deploy_alias(self, config: FunctionConfig, clients: AwsClients) -> dict[str, Any] | None:
        """Point the alias at the new version and size its provisioned concurrency.

        With zero provisioned concurrency an existing alias is deleted, which
        also releases its provisioned capacity.
        """
        alias_name = config.alias_name
        if config.provisioned_concurrency <= 0:
            stale_name = self.state.alias_name or alias_name
            if get_lambda_alias(clients, function_name=config.name, alias_name=stale_name) is not None:
                delete_lambda_alias(clients, function_name=config.name, alias_name=stale_name)
            self.state.alias_name = None
            self.state.alias_arn = None
            return None

        version = self.state.version
        if not version:
            raise NotFoundError(f"no published version of {config.name} to point alias {alias_name} at")

        wait_until_ready(clients, config.name)
        previous_name = self.state.alias_name
        if previous_name and previous_name != alias_name:
            # renamed alias: drop the old one so its provisioned capacity is released
            if get_lambda_alias(clients, function_name=config.name, alias_name=previous_name) is not None:
                delete_lambda_alias(clients, function_name=config.name, alias_name=previous_name)
                _LOGGER.info("alias_renamed", old_alias=previous_name, new_alias=alias_name)
            self.state.alias_name = None
            self.state.alias_arn = None

        existing = get_lambda_alias(clients, function_name=config.name, alias_name=alias_name)
        if existing is None:
            alias = create_lambda_alias(clients, function_name=config.name, alias_name=alias_name, version=version)
        else:
            alias = update_lambda_alias(clients, function_name=config.name, alias_name=alias_name, version=version)
        self.state.alias_name = alias.name or alias_name
        self.state.alias_arn = alias.arn

        concurrency = update_provisioned_concurrency_config(
            clients,
            function_name=config.name,
            alias_name=alias_name,
            provisioned_concurrency=config.provisioned_concurrency,
        )
        return {
            "name": self.state.alias_name,
            "arn": alias.arn,
            "version": version,
            "provisionedConcurrency": {
                "allocated": concurrency.allocated,
                "requested": concurrency.requested,
                "status": concurrency.status,
            },
        }

    def remove(self) -> None:
        """Delete the recorded alias, the function and the owned roles."""
        with deployment_context(instance=self.instance_name, stage=self.stage):
            if self.state.is_empty():
                _LOGGER.info("remove_nothing_to_do")
                return

            clients = self._clients_for_region(self.state.region or DEFAULT_REGION)
            if self.state.name:
                if self.state.alias_name and get_lambda_alias(
                    clients, function_name=self.state.name, alias_name=self.state.alias_name
                ):
                    delete_lambda_alias(clients, function_name=self.state.name, alias_name=self.state.alias_name)
                delete_lambda_function(clients, self.state.name)
            remove_all_roles(self.state, clients)
            self.state.reset()
            _LOGGER.info("remove_completed")

    def info(self) -> FunctionDescriptor | None:
        """Current remote view of the function, or None if never deployed / gone."""
        if not self.state.name:
            return None
        clients = self._clients_for_region(self.state.region or DEFAULT_REGION)
        return get_lambda_function(clients, self.state.name)

    def metrics(self, range_start: datetime, range_end: datetime) -> dict[str, Any]:
        if not self.state.name:
            raise NotFoundError("function has not been deployed")
        if not self.state.meta_role_arn:
            raise NotFoundError("meta role missing; deploy with monitoring enabled first")

        region = self.state.region or DEFAULT_REGION
        clients = self._clients_for_region(region)
        if clients.cloudwatch_factory is None:
            raise ValueError("clients.cloudwatch_factory is required to fetch metrics")
        return get_metrics(
            region,
            self.state.meta_role_arn,
            self.state.name,
            range_start,
            range_end,
            sts=clients.sts,
            client_factory=clients.cloudwatch_factory,
        )
