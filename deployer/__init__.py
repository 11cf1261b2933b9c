"""Declarative, idempotent contract deployment planner."""

from deployer.execution import ExecutionReport, Executor, execute
from deployer.models import Call, Deploy, Module, ModuleBuilder, ModuleOutput, Ref, build_module
from deployer.planning import plan, resolve

__version__ = "0.1.0"
__all__ = [
    "Call",
    "Deploy",
    "ExecutionReport",
    "Executor",
    "Module",
    "ModuleBuilder",
    "ModuleOutput",
    "Ref",
    "__version__",
    "build_module",
    "execute",
    "plan",
    "resolve",
]
