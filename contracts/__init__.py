"""Contracts shared by the provisioning components.

The contracts package defines:
- the deployment data model (`deployment.py`)
- the error taxonomy and ClientError classifiers (`errors.py`)
- the AWS client container and factory (`services.py`)
"""

from contracts import deployment
from contracts import errors
from contracts import services as services_module

__all__ = [
    "AliasDescriptor",
    "AwsClientFactory",
    "AwsClients",
    "DefaultRole",
    "DeploymentState",
    "FunctionConfig",
    "FunctionDescriptor",
    "NotFoundError",
    "ProvisionedConcurrency",
    "ProvisioningError",
    "RolePropagationError",
    "UserRole",
]

AliasDescriptor = deployment.AliasDescriptor
DefaultRole = deployment.DefaultRole
DeploymentState = deployment.DeploymentState
FunctionConfig = deployment.FunctionConfig
FunctionDescriptor = deployment.FunctionDescriptor
ProvisionedConcurrency = deployment.ProvisionedConcurrency
UserRole = deployment.UserRole

AwsClients = services_module.AwsClients
AwsClientFactory = services_module.AwsClientFactory

NotFoundError = errors.NotFoundError
ProvisioningError = errors.ProvisioningError
RolePropagationError = errors.RolePropagationError
