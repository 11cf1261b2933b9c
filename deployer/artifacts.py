"""Reader for compiled contract artifacts.

Compilation happens outside this package. We read the Hardhat artifact
layout it produces::

    artifacts/
        contracts/MondaV2Factory.sol/MondaV2Factory.json
        contracts/MondaV2Factory.sol/MondaV2Factory.dbg.json
        build-info/<hash>.json

Each artifact holds ``contractName``, ``sourceName``, ``abi`` and
``bytecode``. The ``.dbg.json`` sidecar points at the build-info file that
carries compiler metadata and sources, which verification needs.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import structlog

from deployer.errors import ArtifactError, ArtifactNotFoundError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompiledContract:
    """ABI and creation bytecode of one compiled contract."""

    name: str
    source_name: str
    abi: list[dict[str, Any]]
    bytecode: str
    path: Path | None = field(default=None, compare=False)

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.name}"

    @property
    def is_deployable(self) -> bool:
        """Interfaces and abstract contracts compile to empty bytecode."""
        return len(self.bytecode) > 2

    def has_function(self, method: str) -> bool:
        return any(
            entry.get("type") == "function" and entry.get("name") == method for entry in self.abi
        )


@dataclass(frozen=True)
class BuildInfo:
    """Compiler output needed to verify a contract's source."""

    solc_version: str
    metadata: str
    sources: dict[str, str]


class ContractSource(Protocol):
    """Anything that can look up compiled contracts by identifier."""

    def get(self, identifier: str) -> CompiledContract:
        """Return the compiled contract for ``Name`` or ``source.sol:Name``."""
        ...


def _read_json(path: Path) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as err:
        raise ArtifactError(f"Cannot read artifact {path}: {err}") from err


class ArtifactStore:
    """Index of compiled artifacts under a directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._index: dict[str, list[Path]] | None = None
        self._cache: dict[Path, CompiledContract] = {}

    def _build_index(self) -> dict[str, list[Path]]:
        if self._index is not None:
            return self._index
        if not self.root.is_dir():
            raise ArtifactError(f"Artifacts directory not found: {self.root}")

        index: dict[str, list[Path]] = defaultdict(list)
        for path in sorted(self.root.rglob("*.json")):
            relative = path.relative_to(self.root)
            if path.name.endswith(".dbg.json") or "build-info" in relative.parts:
                continue
            index[path.stem].append(path)
        self._index = dict(index)
        logger.debug("artifacts_indexed", root=str(self.root), contracts=len(self._index))
        return self._index

    def _load(self, path: Path) -> CompiledContract:
        cached = self._cache.get(path)
        if cached is not None:
            return cached
        data = _read_json(path)
        try:
            contract = CompiledContract(
                name=data["contractName"],
                source_name=data["sourceName"],
                abi=data["abi"],
                bytecode=data["bytecode"],
                path=path,
            )
        except (KeyError, TypeError) as err:
            raise ArtifactError(f"Malformed artifact {path}: missing {err}") from err
        self._cache[path] = contract
        return contract

    def names(self) -> list[str]:
        return sorted(self._build_index())

    def get(self, identifier: str) -> CompiledContract:
        """Look up a contract by ``Name`` or fully qualified ``source.sol:Name``.

        Raises:
            ArtifactNotFoundError: If no artifact matches, or a bare name
                matches contracts in several sources
        """
        source_name, _, name = identifier.rpartition(":")
        candidates = [self._load(p) for p in self._build_index().get(name, [])]
        if source_name:
            candidates = [c for c in candidates if c.source_name == source_name]

        if not candidates:
            raise ArtifactNotFoundError(f"No compiled artifact for {identifier!r} in {self.root}")
        if len(candidates) > 1:
            options = ", ".join(c.fully_qualified_name for c in candidates)
            raise ArtifactNotFoundError(
                f"{identifier!r} is ambiguous; use one of: {options}"
            )
        return candidates[0]

    def build_info(self, identifier: str) -> BuildInfo:
        """Load compiler metadata and sources for a contract.

        Raises:
            ArtifactError: If the debug sidecar or build-info file is missing
        """
        contract = self.get(identifier)
        if contract.path is None:
            raise ArtifactError(f"{identifier!r} was not read from an artifact file")
        dbg_path = contract.path.with_name(f"{contract.name}.dbg.json")
        if not dbg_path.exists():
            raise ArtifactError(f"No build info sidecar for {identifier!r}: {dbg_path}")
        pointer = _read_json(dbg_path).get("buildInfo")
        if not pointer:
            raise ArtifactError(f"Build info sidecar {dbg_path} has no buildInfo entry")
        build_info_path = (dbg_path.parent / pointer).resolve()
        data = _read_json(build_info_path)
        try:
            output = data["output"]["contracts"][contract.source_name][contract.name]
            sources = {
                path: source["content"] for path, source in data["input"]["sources"].items()
            }
            return BuildInfo(
                solc_version=data["solcVersion"],
                metadata=output["metadata"],
                sources=sources,
            )
        except (KeyError, TypeError) as err:
            raise ArtifactError(f"Malformed build info {build_info_path}: missing {err}") from err


__all__ = ["ArtifactStore", "BuildInfo", "CompiledContract", "ContractSource"]
