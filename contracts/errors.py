"""Error taxonomy for provisioning operations.

Only two remote conditions are classified:
- "not found" (absent resource), which read paths turn into ``None``
- role propagation ("role cannot be assumed by Lambda"), which is retried

Every other botocore error propagates unchanged.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

NOT_FOUND_CODES = frozenset({"ResourceNotFoundException", "NoSuchEntity", "NoSuchEntityException"})
ROLE_PROPAGATION_MARKER = "cannot be assumed by Lambda"


class ProvisioningError(Exception):
    """Base class for errors raised by the provisioner itself."""


class NotFoundError(ProvisioningError):
    """A resource that must exist is absent."""


class RolePropagationError(ProvisioningError):
    """The execution role is not (yet) assumable by the Lambda service."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


def error_code(exc: BaseException) -> str:
    """Return the AWS error code of a ClientError (empty for anything else)."""
    if not isinstance(exc, ClientError):
        return ""
    error = exc.response.get("Error") or {}
    return str(error.get("Code") or "")


def error_message(exc: BaseException) -> str:
    if not isinstance(exc, ClientError):
        return str(exc)
    error = exc.response.get("Error") or {}
    return str(error.get("Message") or exc)


def is_not_found(exc: BaseException) -> bool:
    """True for the not-found codes of the Lambda and IAM APIs."""
    return error_code(exc) in NOT_FOUND_CODES


def is_role_propagation_error(exc: BaseException) -> bool:
    """True when Lambda rejected the role because IAM has not propagated it yet."""
    if isinstance(exc, RolePropagationError):
        return True
    if not isinstance(exc, ClientError):
        return False
    return ROLE_PROPAGATION_MARKER in error_message(exc)
