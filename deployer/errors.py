"""Deployer error classes.

Plan-time errors (PlanError subclasses) are raised before any network call.
Execution errors halt the current module only; recorded artifacts stay valid.
"""


class DeployerError(Exception):
    """Base error for deployer operations."""

    pass


class ConfigurationError(DeployerError):
    """Malformed network, compiler or account settings."""

    pass


class ArtifactError(DeployerError):
    """Compiled contract output is missing or unusable."""

    pass


class ArtifactNotFoundError(ArtifactError):
    """No compiled artifact matches the requested contract identifier."""

    pass


class PlanError(DeployerError):
    """Malformed module graph."""

    pass


class CycleError(PlanError):
    """Steps reference each other in a cycle."""

    def __init__(self, module: str, cycle: list[str]) -> None:
        self.module = module
        self.cycle = cycle
        super().__init__(f"Reference cycle in module {module!r}: {' -> '.join(cycle)}")


class UnknownReferenceError(PlanError):
    """A step references a name that is not declared."""

    def __init__(self, module: str, step: str, reference: str) -> None:
        self.module = module
        self.step = step
        self.reference = reference
        super().__init__(
            f"Step {step!r} in module {module!r} references unknown name {reference!r}"
        )


class DuplicateStepError(PlanError):
    """Two steps in one module share a name."""

    pass


class ModuleDefinitionError(PlanError):
    """A step is declared in a way the planner cannot execute."""

    pass


class ReconciliationError(PlanError):
    """A recorded artifact no longer matches the module definition."""

    pass


class ExecutionError(DeployerError):
    """A step failed while talking to the network."""

    def __init__(self, message: str, *, module: str | None = None, step: str | None = None) -> None:
        self.module = module
        self.step = step
        super().__init__(message)


class SubmissionError(ExecutionError):
    """Transport, RPC or confirmation-timeout failure."""

    pass


class RevertError(ExecutionError):
    """The transaction executed on chain and reverted."""

    def __init__(
        self,
        reason: str | None,
        *,
        tx_hash: str | None = None,
        module: str | None = None,
        step: str | None = None,
    ) -> None:
        self.reason = reason
        self.tx_hash = tx_hash
        message = f"Transaction reverted: {reason or 'no reason given'}"
        if tx_hash:
            message += f" (tx {tx_hash})"
        super().__init__(message, module=module, step=step)


class VerificationError(DeployerError):
    """Source verification service rejected or failed a request."""

    pass
