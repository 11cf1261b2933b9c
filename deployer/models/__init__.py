"""Data models for deployment modules and records."""

from deployer.models.module import Module, ModuleBuilder, build_module
from deployer.models.record import (
    Artifact,
    CallEntry,
    DeploymentRecord,
    JournalEntry,
    StepState,
    compute_digest,
)
from deployer.models.steps import Call, Deploy, ModuleOutput, Ref, Step
from deployer.models.types import Address, TxHash, normalize_address

__all__ = [
    # Types
    "Address",
    "TxHash",
    "normalize_address",
    # Module definition
    "Module",
    "ModuleBuilder",
    "build_module",
    "Step",
    "Deploy",
    "Call",
    "Ref",
    "ModuleOutput",
    # Record
    "Artifact",
    "CallEntry",
    "DeploymentRecord",
    "JournalEntry",
    "StepState",
    "compute_digest",
]
