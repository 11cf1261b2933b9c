"""Execution of modules against networks."""

from deployer.execution.executor import ExecutionReport, Executor, StepOutcome, execute
from deployer.execution.network import ACCOUNT_LOCKS, AccountLocks, Network, Receipt

__all__ = [
    "ACCOUNT_LOCKS",
    "AccountLocks",
    "ExecutionReport",
    "Executor",
    "Network",
    "Receipt",
    "StepOutcome",
    "execute",
]
