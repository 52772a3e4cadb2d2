"""Bounded retry for classified transient errors."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from contracts.errors import RolePropagationError, error_message, is_role_propagation_error
from infra.logging_config import StructuredLogger

T = TypeVar("T")

_LOGGER = StructuredLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry policy; ``max_attempts`` counts the first call."""

    max_attempts: int = 10
    backoff_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")


def call_with_role_propagation_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    operation_name: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``; retry only while IAM role propagation is pending.

    Raises :class:`RolePropagationError` once ``policy.max_attempts`` calls have
    all been rejected. Any other error propagates from the failing call as-is.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if not is_role_propagation_error(exc):
                raise
            if attempt >= policy.max_attempts:
                _LOGGER.error(
                    "role_propagation_retries_exhausted",
                    operation=operation_name,
                    attempts=attempt,
                )
                raise RolePropagationError(
                    f"{operation_name}: role still not assumable after {attempt} attempts: "
                    f"{error_message(exc)}",
                    attempts=attempt,
                ) from exc
            _LOGGER.info(
                "role_propagation_retry",
                operation=operation_name,
                attempt=attempt,
                delay_seconds=policy.backoff_seconds,
            )
            sleep(policy.backoff_seconds)
