"""API endpoints for deployment records."""

import os
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from deployer.errors import ConfigurationError, DeployerError
from deployer.models.record import Artifact, CallEntry, DeploymentRecord
from deployer.store import RecordStore

logger = structlog.get_logger()

router = APIRouter()

# Deployment directory served by the API, configurable via DEPLOYER_DEPLOYMENTS_DIR
DEPLOYMENTS_DIR = Path(os.environ.get("DEPLOYER_DEPLOYMENTS_DIR", "deployments"))


class NetworkDeployments(BaseModel):
    """All artifacts recorded on one network."""

    network: str
    chain_id: int | None = None
    artifacts: list[Artifact]


class ModuleDeployments(BaseModel):
    """Artifacts and executed calls of one module on one network."""

    network: str
    module: str
    artifacts: dict[str, Artifact]
    calls: list[CallEntry]


def get_store() -> RecordStore:
    """Dependency provider for the record store.

    Override this in tests to serve records from a temporary directory:
        app.dependency_overrides[get_store] = lambda: RecordStore(tmp_path)
    """
    return RecordStore(DEPLOYMENTS_DIR)


def _load(store: RecordStore, network: str) -> DeploymentRecord:
    if network not in store.networks():
        raise HTTPException(status_code=404, detail=f"No deployments recorded on {network!r}")
    try:
        return store.load(network)
    except ConfigurationError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    except DeployerError as err:
        logger.exception("record_load_failed", network=network)
        raise HTTPException(status_code=500, detail="Deployment record is unreadable") from err


@router.get("/deployments")
async def list_networks(store: RecordStore = Depends(get_store)) -> list[str]:
    """Networks with a saved deployment record."""
    return store.networks()


@router.get("/deployments/{network}")
async def network_deployments(
    network: str, store: RecordStore = Depends(get_store)
) -> NetworkDeployments:
    """All artifacts recorded on ``network``."""
    record = _load(store, network)
    return NetworkDeployments(
        network=record.network,
        chain_id=record.chain_id,
        artifacts=list(record.artifacts.values()),
    )


@router.get("/deployments/{network}/{module}")
async def module_deployments(
    network: str, module: str, store: RecordStore = Depends(get_store)
) -> ModuleDeployments:
    """Artifacts and calls recorded for ``module`` on ``network``."""
    record = _load(store, network)
    artifacts = record.module_artifacts(module)
    calls = record.module_calls(module)
    if not artifacts and not calls:
        raise HTTPException(
            status_code=404, detail=f"Module {module!r} has no deployments on {network!r}"
        )
    logger.debug("module_deployments_served", network=network, module=module)
    return ModuleDeployments(network=network, module=module, artifacts=artifacts, calls=calls)
