"""Pydantic models for the persisted deployment record.

The record maps ``(module, step)`` to the artifact a Deploy step produced and
``(module, step, digest)`` to the confirmation of a Call step. It is the
idempotence ledger: anything found here is reused instead of resubmitted.
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from deployer.errors import ReconciliationError
from deployer.models.types import Address, TxHash, is_valid_address, normalize_address


class StepState(str, Enum):
    """Lifecycle of a step within one execution.

    PENDING -> SUBMITTED -> CONFIRMED, or PENDING -> SUBMITTED -> FAILED.
    SKIPPED marks a step satisfied by the record. INVALIDATED only appears in
    the journal, when an operator wipes a recorded entry.
    """

    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    SKIPPED = "skipped"
    INVALIDATED = "invalidated"


def _now() -> datetime:
    return datetime.now(UTC)


def _canonical(value: Any) -> Any:
    """Convert resolved arguments to a stable JSON-compatible form."""
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, str) and is_valid_address(value):
        return normalize_address(value)
    if isinstance(value, list | tuple):
        return [_canonical(item) for item in value]
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        # Large integers lose precision in some JSON readers; keep them exact
        return {"int": str(value)}
    return value


def compute_digest(*parts: Any) -> str:
    """SHA-256 over the canonical JSON form of ``parts``."""
    payload = json.dumps([_canonical(part) for part in parts], separators=(",", ":"))
    return "0x" + hashlib.sha256(payload.encode()).hexdigest()


def artifact_key(module: str, step: str) -> str:
    return f"{module}#{step}"


def call_key(module: str, step: str, digest: str) -> str:
    return f"{module}#{step}#{digest}"


class Artifact(BaseModel):
    """The recorded result of a successful Deploy step."""

    module: str
    step: str
    contract: str
    address: Address
    tx_hash: TxHash | None = Field(
        default=None,
        description="Confirmation reference; None when the address was supplied explicitly.",
    )
    args_digest: str
    recorded_at: datetime = Field(default_factory=_now)

    model_config = {"frozen": True}


class CallEntry(BaseModel):
    """The recorded confirmation of a Call step."""

    module: str
    step: str
    target: Address
    method: str
    digest: str
    tx_hash: TxHash
    recorded_at: datetime = Field(default_factory=_now)

    model_config = {"frozen": True}


class JournalEntry(BaseModel):
    """One step state transition, appended to the network journal."""

    module: str
    step: str
    state: StepState
    tx_hash: str | None = None
    error: str | None = None
    at: datetime = Field(default_factory=_now)


class DeploymentRecord(BaseModel):
    """Per-network ledger of artifacts and executed calls."""

    network: str
    chain_id: int | None = None
    artifacts: dict[str, Artifact] = Field(default_factory=dict)
    calls: dict[str, CallEntry] = Field(default_factory=dict)

    def get_artifact(self, module: str, step: str) -> Artifact | None:
        return self.artifacts.get(artifact_key(module, step))

    def add_artifact(self, artifact: Artifact) -> None:
        """Record an artifact.

        Raises:
            ReconciliationError: If a different artifact is already recorded
                for the same step (artifacts are immutable until invalidated)
        """
        key = artifact_key(artifact.module, artifact.step)
        existing = self.artifacts.get(key)
        if existing is not None and existing != artifact:
            raise ReconciliationError(
                f"Step {key} is already recorded at {existing.address}; wipe it first"
            )
        self.artifacts[key] = artifact

    def has_call(self, module: str, step: str, digest: str) -> bool:
        return call_key(module, step, digest) in self.calls

    def add_call(self, entry: CallEntry) -> None:
        self.calls.setdefault(call_key(entry.module, entry.step, entry.digest), entry)

    def module_artifacts(self, module: str) -> dict[str, Artifact]:
        """Artifacts recorded for ``module``, keyed by step name."""
        return {a.step: a for a in self.artifacts.values() if a.module == module}

    def module_calls(self, module: str) -> list[CallEntry]:
        return [c for c in self.calls.values() if c.module == module]

    @property
    def modules(self) -> list[str]:
        names = {a.module for a in self.artifacts.values()}
        names.update(c.module for c in self.calls.values())
        return sorted(names)

    def invalidate(self, module: str, step: str | None = None) -> list[str]:
        """Remove recorded entries for a module (or one of its steps).

        Returns:
            Names of the steps whose entries were removed
        """
        removed: list[str] = []
        for key, artifact in list(self.artifacts.items()):
            if artifact.module == module and (step is None or artifact.step == step):
                del self.artifacts[key]
                removed.append(artifact.step)
        for key, entry in list(self.calls.items()):
            if entry.module == module and (step is None or entry.step == step):
                del self.calls[key]
                removed.append(entry.step)
        return list(dict.fromkeys(removed))


__all__ = [
    "Artifact",
    "CallEntry",
    "DeploymentRecord",
    "JournalEntry",
    "StepState",
    "artifact_key",
    "call_key",
    "compute_digest",
]
