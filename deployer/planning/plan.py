"""Dry-run planning: what ``execute`` would do, without touching the network."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from deployer.errors import ReconciliationError
from deployer.models.module import Module
from deployer.models.record import Artifact, DeploymentRecord
from deployer.models.steps import Deploy, Ref, Step, iter_references
from deployer.models.types import normalize_address
from deployer.planning.arguments import (
    Unresolved,
    call_digest,
    deploy_digest,
    lookup_reference,
    resolve_arguments,
)
from deployer.planning.resolver import resolve

logger = structlog.get_logger()


class Action(str, Enum):
    """What execution will do with a step."""

    EXECUTE = "execute"
    SKIP = "skip"


@dataclass
class PlannedStep:
    """One resolved step and the action execution would take."""

    step: Step
    action: Action
    # Resolved arguments; None while they depend on steps still to execute
    args: list[Any] | None = None
    artifact: Artifact | None = None

    @property
    def kind(self) -> str:
        return "deploy" if isinstance(self.step, Deploy) else "call"


def reconcile_deploy(
    module: Module, step: Deploy, artifact: Artifact, args: list[Any] | None
) -> None:
    """Check a recorded artifact still matches its Deploy step.

    Raises:
        ReconciliationError: If the contract, the explicit address or the
            constructor arguments changed since the artifact was recorded
    """
    where = f"{module.name}#{step.name}"
    if artifact.contract != step.contract:
        raise ReconciliationError(
            f"{where} was recorded as {artifact.contract!r} but now deploys {step.contract!r}"
        )
    if step.address is not None and normalize_address(step.address) != normalize_address(
        artifact.address
    ):
        raise ReconciliationError(
            f"{where} was recorded at {artifact.address} but now points at {step.address}"
        )
    if args is not None and deploy_digest(step, args) != artifact.args_digest:
        raise ReconciliationError(f"{where} was recorded with different constructor arguments")


def _check_references(module: Module, step: Deploy, redeployed: set[str]) -> None:
    stale = sorted(
        {ref.step for ref in iter_references(step.args) if isinstance(ref, Ref)} & redeployed
    )
    if stale:
        names = ", ".join(stale)
        raise ReconciliationError(
            f"{module.name}#{step.name} was recorded with the old address of {names}, "
            "which will be redeployed; wipe it too"
        )


def plan(module: Module, record: DeploymentRecord) -> list[PlannedStep]:
    """Resolve ``module`` and classify each step against ``record``.

    Raises:
        PlanError: For malformed modules (see ``resolve``) and for recorded
            artifacts that no longer match the definition
    """
    planned: list[PlannedStep] = []
    # Deploy steps that will get a new address in this run
    redeployed: set[str] = set()
    for step in resolve(module):
        try:
            args: list[Any] | None = resolve_arguments(module, record, step)
        except Unresolved:
            args = None

        if isinstance(step, Deploy):
            artifact = record.get_artifact(module.name, step.name)
            if artifact is not None:
                _check_references(module, step, redeployed)
                reconcile_deploy(module, step, artifact, args)
                planned.append(PlannedStep(step, Action.SKIP, args, artifact))
            else:
                if step.address is None:
                    redeployed.add(step.name)
                planned.append(PlannedStep(step, Action.EXECUTE, args))
            continue

        try:
            target = lookup_reference(module, record, step.target)
        except Unresolved:
            target = None
        if target is not None and args is not None:
            digest = call_digest(target.address, step, args)
            action = Action.SKIP if record.has_call(module.name, step.name, digest) else Action.EXECUTE
        else:
            action = Action.EXECUTE
        planned.append(PlannedStep(step, action, args, target))

    logger.debug(
        "module_planned",
        module=module.name,
        execute=[p.step.name for p in planned if p.action is Action.EXECUTE],
        skip=[p.step.name for p in planned if p.action is Action.SKIP],
    )
    return planned


__all__ = ["Action", "PlannedStep", "plan", "reconcile_deploy"]
