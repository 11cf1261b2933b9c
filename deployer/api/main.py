"""FastAPI application serving deployment records.

The API is read-only: deployments are only ever made through the CLI.
"""

import os

import uvicorn
from fastapi import FastAPI

from deployer import __version__
from deployer.api.endpoints import get_store, router
from deployer.store import RecordStore

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("DEPLOYER_API_HOST", "127.0.0.1")
PORT = int(os.environ.get("DEPLOYER_API_PORT", "8000"))
DEBUG = os.environ.get("DEPLOYER_API_DEBUG", "false").lower() in ("true", "1", "yes")

app = FastAPI(
    title="Deployer",
    description="Read-only view of recorded contract deployments",
    version=__version__,
)

app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run(host: str = HOST, port: int = PORT, store: RecordStore | None = None) -> None:
    """Run the API server.

    Configuration via environment variables:
    - DEPLOYER_API_HOST: Host to bind to (default: 127.0.0.1)
    - DEPLOYER_API_PORT: Port to bind to (default: 8000)
    - DEPLOYER_API_DEBUG: Enable reload mode (default: false)
    - DEPLOYER_DEPLOYMENTS_DIR: Directory holding deployment records

    Args:
        store: Serve this store instead of DEPLOYER_DEPLOYMENTS_DIR (reload
            mode is unavailable then, since the app object is passed directly)
    """
    if store is not None:
        app.dependency_overrides[get_store] = lambda: store
        uvicorn.run(app, host=host, port=port)
        return
    uvicorn.run("deployer.api.main:app", host=host, port=port, reload=DEBUG)


if __name__ == "__main__":
    run()
