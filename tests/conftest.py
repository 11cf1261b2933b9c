"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from deployer.artifacts import ArtifactStore
from deployer.models.record import DeploymentRecord
from deployer.store import RecordStore
from tests.helpers import CHAIN_ID, FakeNetwork, write_artifact


@pytest.fixture
def network() -> FakeNetwork:
    """A fake network that confirms every submission."""
    return FakeNetwork()


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """Artifacts for the contracts used across tests."""
    root = tmp_path / "artifacts"
    write_artifact(root, "MondaV2Factory", methods=["setFeeTo", "setFeeToSetter"])
    write_artifact(root, "MondaV2Router03")
    write_artifact(root, "A", methods=["setFeeTo"])
    write_artifact(root, "B")
    write_artifact(root, "C")
    write_artifact(root, "IMondaV2Pair", bytecode="0x")
    return root


@pytest.fixture
def contracts(artifacts_dir: Path) -> ArtifactStore:
    return ArtifactStore(artifacts_dir)


@pytest.fixture
def record() -> DeploymentRecord:
    """An empty deployment record for the fake network."""
    return DeploymentRecord(network="monad-testnet", chain_id=CHAIN_ID)


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "deployments")
