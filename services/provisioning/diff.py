"""Change detection between the deployed function and the desired one."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, is_dataclass, replace
from typing import Any

from contracts.deployment import FunctionConfig, FunctionDescriptor

DIFF_FIELDS = (
    "description",
    "runtime",
    "role_arn",
    "handler",
    "memory",
    "timeout",
    "env",
    "hash",
    "security_group_ids",
    "subnet_ids",
    "provisioned_concurrency",
)

_MISSING = object()


def _as_mapping(snapshot: Any) -> Mapping[str, Any]:
    if snapshot is None:
        return {}
    if isinstance(snapshot, Mapping):
        return snapshot
    if is_dataclass(snapshot) and not isinstance(snapshot, type):
        return asdict(snapshot)
    raise TypeError(f"cannot diff snapshot of type {type(snapshot).__name__}")


def pick_diff_fields(snapshot: Any) -> dict[str, Any]:
    """Subset of ``snapshot`` that drives the update decision; absent keys are omitted."""
    data = _as_mapping(snapshot)
    picked: dict[str, Any] = {}
    for key in DIFF_FIELDS:
        value = data.get(key, _MISSING)
        if value is not _MISSING:
            picked[key] = value
    return picked


def inputs_changed(previous: Any, current: Any) -> bool:
    """True when the two snapshots differ on any of :data:`DIFF_FIELDS`."""
    return pick_diff_fields(previous) != pick_diff_fields(current)


def remote_snapshot(
    descriptor: FunctionDescriptor, *, provisioned_concurrency: int | None = None
) -> dict[str, Any]:
    """Snapshot of the deployed function.

    Provisioned concurrency is not part of the function configuration, so the
    last value recorded in state is supplied by the caller. ``None`` keeps the
    value already on the descriptor.
    """
    if provisioned_concurrency is not None:
        descriptor = replace(descriptor, provisioned_concurrency=provisioned_concurrency)
    return asdict(descriptor)


def desired_snapshot(config: FunctionConfig, *, role_arn: str | None, code_hash: str) -> dict[str, Any]:
    """Snapshot of the function as it should be after this deployment."""
    snapshot = asdict(config)
    snapshot["role_arn"] = role_arn or ""
    snapshot["hash"] = code_hash
    return snapshot
