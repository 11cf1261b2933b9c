"""Execution of deployment modules against a network.

Each step runs at most once per network: anything already in the
DeploymentRecord is reused, everything else is submitted in resolved order,
one transaction at a time. The first failure halts the module and leaves
the record exactly as it was before the failed step, so running the module
again resumes from that step.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import structlog

from deployer.artifacts import ContractSource
from deployer.errors import (
    ArtifactError,
    ExecutionError,
    ModuleDefinitionError,
    SubmissionError,
)
from deployer.execution.network import Network
from deployer.models.module import Module
from deployer.models.record import (
    Artifact,
    CallEntry,
    DeploymentRecord,
    JournalEntry,
    StepState,
)
from deployer.models.steps import Call, Deploy
from deployer.planning.arguments import call_digest, deploy_digest, resolve_arguments
from deployer.planning.plan import PlannedStep, plan, reconcile_deploy
from deployer.store import RecordStore

logger = structlog.get_logger()


@dataclass
class StepOutcome:
    """Final state of one step in one execution."""

    step: str
    state: StepState
    tx_hash: str | None = None
    error: str | None = None


@dataclass
class ExecutionReport:
    """Result of executing one module."""

    module: str
    outputs: dict[str, Artifact] = field(default_factory=dict)
    outcomes: list[StepOutcome] = field(default_factory=list)
    submissions: int = 0

    @property
    def skipped(self) -> list[str]:
        return [o.step for o in self.outcomes if o.state is StepState.SKIPPED]

    @property
    def confirmed(self) -> list[str]:
        return [o.step for o in self.outcomes if o.state is StepState.CONFIRMED]


class Executor:
    """Materializes modules on one network, recording results in ``record``.

    Args:
        network: Target network adapter
        contracts: Source of compiled contracts (ABI and bytecode)
        record: Deployment record for ``network``; mutated in place
        store: If given, the record is saved after every recorded step and
            every state transition is appended to the journal
    """

    def __init__(
        self,
        network: Network,
        contracts: ContractSource,
        record: DeploymentRecord,
        store: RecordStore | None = None,
    ) -> None:
        self.network = network
        self.contracts = contracts
        self.record = record
        self.store = store
        self.journal: list[JournalEntry] = []
        self._lock = threading.RLock()

    def execute(self, module: Module) -> ExecutionReport:
        """Execute ``module``, after the modules it uses.

        Raises:
            PlanError: If any module in the closure is malformed or no longer
                matches the record. Raised before any submission, except for
                a recorded step whose referenced step was redeployed in this
                run (ReconciliationError when that step is reached)
            SubmissionError, RevertError: If a step fails on the network
        """
        closure = module.closure()
        plans = {member.name: plan(member, self.record) for member in closure}

        reports: dict[str, ExecutionReport] = {}
        for member in closure:
            self._execute_once(member, plans[member.name], reports)
        return reports[module.name]

    def execute_many(self, modules: Sequence[Module], max_workers: int = 4) -> list[ExecutionReport]:
        """Execute several modules, running independent ones concurrently.

        Modules are grouped into waves: a module runs only after every
        module it uses finished in an earlier wave. If a wave fails, the
        modules already running in it finish and no later wave starts.

        Returns:
            Reports for ``modules``, in the given order
        """
        members: dict[str, Module] = {}
        for module in modules:
            for member in module.closure():
                existing = members.setdefault(member.name, member)
                if existing is not member:
                    raise ModuleDefinitionError(f"Two different modules are named {member.name!r}")
        plans = {name: plan(member, self.record) for name, member in members.items()}

        reports: dict[str, ExecutionReport] = {}
        while len(reports) < len(members):
            wave = [
                m
                for name, m in members.items()
                if name not in reports and all(u.name in reports for u in m.uses)
            ]
            logger.info("wave_started", modules=[m.name for m in wave])
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                futures = [
                    pool.submit(self._execute_once, m, plans[m.name], reports) for m in wave
                ]
            errors = [err for f in futures if (err := f.exception()) is not None]
            if errors:
                raise errors[0]

        return [reports[m.name] for m in modules]

    def _execute_once(
        self,
        module: Module,
        planned: list[PlannedStep],
        reports: dict[str, ExecutionReport],
    ) -> None:
        report = self._run(module, planned)
        with self._lock:
            reports[module.name] = report

    def _run(self, module: Module, planned: list[PlannedStep]) -> ExecutionReport:
        # ``planned`` fixes the order; recorded state is rechecked per step
        report = ExecutionReport(module=module.name)
        logger.info(
            "module_started",
            module=module.name,
            network=self.network.name,
            steps=[p.step.name for p in planned],
        )

        for item in planned:
            step = item.step
            try:
                if isinstance(step, Deploy):
                    outcome = self._deploy(module, step, report)
                else:
                    outcome = self._call(module, step, report)
            except ExecutionError as err:
                err.module = err.module or module.name
                err.step = err.step or step.name
                self._journal(module, step.name, StepState.FAILED, error=str(err))
                report.outcomes.append(StepOutcome(step.name, StepState.FAILED, error=str(err)))
                logger.error(
                    "step_failed",
                    module=module.name,
                    step=step.name,
                    error=str(err),
                    error_type=type(err).__name__,
                )
                raise
            report.outcomes.append(outcome)

        report.outputs = {
            logical: artifact
            for logical, step_name in module.outputs.items()
            if (artifact := self.record.get_artifact(module.name, step_name)) is not None
        }
        logger.info(
            "module_completed",
            module=module.name,
            submissions=report.submissions,
            skipped=len(report.skipped),
            outputs={k: v.address for k, v in report.outputs.items()},
        )
        return report

    def _deploy(self, module: Module, step: Deploy, report: ExecutionReport) -> StepOutcome:
        args = resolve_arguments(module, self.record, step)
        recorded = self.record.get_artifact(module.name, step.name)
        if recorded is not None:
            # A referenced step may have been redeployed since this was recorded
            reconcile_deploy(module, step, recorded, args)
            return self._skip(module, step.name, recorded.tx_hash)

        digest = deploy_digest(step, args)

        if step.address is not None:
            artifact = Artifact(
                module=module.name,
                step=step.name,
                contract=step.contract,
                address=step.address,
                args_digest=digest,
            )
            self._record(lambda: self.record.add_artifact(artifact))
            self._journal(module, step.name, StepState.CONFIRMED)
            logger.info("contract_adopted", module=module.name, step=step.name, address=step.address)
            return StepOutcome(step.name, StepState.CONFIRMED)

        contract = self.contracts.get(step.contract)
        if not contract.is_deployable:
            raise ArtifactError(f"{step.contract} has no bytecode (interface or abstract contract)")

        self._journal(module, step.name, StepState.SUBMITTED)
        report.submissions += 1
        receipt = self.network.deploy(contract, args, value=step.value)
        if not receipt.contract_address:
            raise SubmissionError(
                f"Deployment of {step.contract} confirmed without a contract address "
                f"(tx {receipt.tx_hash})"
            )

        artifact = Artifact(
            module=module.name,
            step=step.name,
            contract=step.contract,
            address=receipt.contract_address,
            tx_hash=receipt.tx_hash,
            args_digest=digest,
        )
        self._record(lambda: self.record.add_artifact(artifact))
        self._journal(module, step.name, StepState.CONFIRMED, tx_hash=receipt.tx_hash)
        logger.info(
            "step_confirmed",
            module=module.name,
            step=step.name,
            contract=step.contract,
            address=artifact.address,
            tx_hash=receipt.tx_hash,
        )
        return StepOutcome(step.name, StepState.CONFIRMED, tx_hash=receipt.tx_hash)

    def _call(self, module: Module, step: Call, report: ExecutionReport) -> StepOutcome:
        target = self.record.get_artifact(module.name, step.target.step)
        if target is None:
            raise ModuleDefinitionError(
                f"Call {step.name!r} targets {step.target.step!r}, which has no recorded artifact"
            )
        args = resolve_arguments(module, self.record, step)
        digest = call_digest(target.address, step, args)
        if self.record.has_call(module.name, step.name, digest):
            return self._skip(module, step.name)

        contract = self.contracts.get(target.contract)
        if not contract.has_function(step.method):
            raise ModuleDefinitionError(
                f"Call {step.name!r}: {target.contract} has no function {step.method!r}"
            )

        self._journal(module, step.name, StepState.SUBMITTED)
        report.submissions += 1
        receipt = self.network.call(contract, target.address, step.method, args, value=step.value)

        entry = CallEntry(
            module=module.name,
            step=step.name,
            target=target.address,
            method=step.method,
            digest=digest,
            tx_hash=receipt.tx_hash,
        )
        self._record(lambda: self.record.add_call(entry))
        self._journal(module, step.name, StepState.CONFIRMED, tx_hash=receipt.tx_hash)
        logger.info(
            "step_confirmed",
            module=module.name,
            step=step.name,
            method=step.method,
            target=target.address,
            tx_hash=receipt.tx_hash,
        )
        return StepOutcome(step.name, StepState.CONFIRMED, tx_hash=receipt.tx_hash)

    def _skip(self, module: Module, step: str, tx_hash: str | None = None) -> StepOutcome:
        self._journal(module, step, StepState.SKIPPED, tx_hash=tx_hash)
        logger.debug("step_skipped", module=module.name, step=step)
        return StepOutcome(step, StepState.SKIPPED, tx_hash=tx_hash)

    def _record(self, mutate: Callable[[], None]) -> None:
        with self._lock:
            mutate()
            if self.store is not None:
                self.store.save(self.record)

    def _journal(
        self,
        module: Module,
        step: str,
        state: StepState,
        *,
        tx_hash: str | None = None,
        error: str | None = None,
    ) -> None:
        entry = JournalEntry(module=module.name, step=step, state=state, tx_hash=tx_hash, error=error)
        with self._lock:
            self.journal.append(entry)
            if self.store is not None:
                self.store.append_journal(self.record.network, entry)


def execute(
    module: Module,
    network: Network,
    record: DeploymentRecord,
    contracts: ContractSource,
    store: RecordStore | None = None,
) -> ExecutionReport:
    """Execute one module; see ``Executor.execute``."""
    return Executor(network, contracts, record, store).execute(module)


__all__ = ["ExecutionReport", "Executor", "StepOutcome", "execute"]
