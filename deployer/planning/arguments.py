"""Substitution of step references with recorded addresses."""

from __future__ import annotations

from typing import Any

from deployer.errors import ModuleDefinitionError
from deployer.models.module import Module
from deployer.models.record import Artifact, DeploymentRecord, compute_digest
from deployer.models.steps import Call, Deploy, ModuleOutput, Ref


class Unresolved(Exception):
    """A reference points at a step that has no recorded artifact yet."""

    def __init__(self, module: str, step: str) -> None:
        self.module = module
        self.step = step
        super().__init__(f"{module}#{step} is not recorded yet")


def lookup_reference(module: Module, record: DeploymentRecord, ref: Ref | ModuleOutput) -> Artifact:
    """Find the artifact a reference points at.

    Raises:
        Unresolved: If the referenced step has not been recorded
        ModuleDefinitionError: If a ModuleOutput names a module or output
            this module does not use
    """
    if isinstance(ref, Ref):
        owner, step = module.name, ref.step
    else:
        used = module.get_used(ref.module)
        if used is None or ref.output not in used.outputs:
            raise ModuleDefinitionError(
                f"Module {module.name!r} has no used module output {ref.module}.{ref.output}"
            )
        owner, step = used.name, used.outputs[ref.output]
    artifact = record.get_artifact(owner, step)
    if artifact is None:
        raise Unresolved(owner, step)
    return artifact


def substitute(module: Module, record: DeploymentRecord, value: Any) -> Any:
    """Replace every Ref/ModuleOutput inside ``value`` with its address."""
    if isinstance(value, Ref | ModuleOutput):
        return lookup_reference(module, record, value).address
    if isinstance(value, tuple | list):
        return [substitute(module, record, item) for item in value]
    return value


def resolve_arguments(module: Module, record: DeploymentRecord, step: Deploy | Call) -> list[Any]:
    return substitute(module, record, list(step.args))


def deploy_digest(step: Deploy, args: list[Any]) -> str:
    if step.address is not None:
        return compute_digest(step.contract, "at", step.address)
    return compute_digest(step.contract, args, step.value)


def call_digest(target: str, step: Call, args: list[Any]) -> str:
    return compute_digest(target, step.method, args, step.value)


__all__ = [
    "Unresolved",
    "call_digest",
    "deploy_digest",
    "lookup_reference",
    "resolve_arguments",
    "substitute",
]
