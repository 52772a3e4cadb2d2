"""Lambda provisioning components.

This package contains:
- input normalization (`inputs.py`)
- IAM roles (`roles.py`)
- function lifecycle (`functions.py`)
- alias and provisioned concurrency (`aliases.py`)
- change detection (`diff.py`)
- metrics through the meta role (`metrics.py`)
- the deploy/remove orchestrator (`component.py`) and state file store (`state_store.py`)
"""

from services.provisioning.component import LambdaComponent
from services.provisioning.diff import DIFF_FIELDS, inputs_changed
from services.provisioning.inputs import prepare_inputs
from services.provisioning.retry import RetryPolicy, call_with_role_propagation_retry
from services.provisioning.state_store import JsonStateStore

__all__ = [
    "DIFF_FIELDS",
    "JsonStateStore",
    "LambdaComponent",
    "RetryPolicy",
    "call_with_role_propagation_retry",
    "inputs_changed",
    "prepare_inputs",
]
