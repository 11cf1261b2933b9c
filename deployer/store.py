"""File persistence for deployment records and journals.

Layout, one directory per network::

    deployments/<network>/record.json    current DeploymentRecord
    deployments/<network>/journal.jsonl  append-only step state transitions

The record is rewritten atomically after every confirmed step, so an
interrupted run never leaves a half-written file behind.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path

import structlog
from pydantic import ValidationError

from deployer.errors import ConfigurationError, DeployerError
from deployer.models.record import DeploymentRecord, JournalEntry, StepState

logger = structlog.get_logger()

RECORD_FILE = "record.json"
JOURNAL_FILE = "journal.jsonl"


class RecordStore:
    """Loads and saves per-network deployment records under a directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._lock = threading.RLock()

    def network_dir(self, network: str) -> Path:
        if not network or Path(network).name != network or network.startswith("."):
            raise ConfigurationError(f"Invalid network name for a deployment directory: {network!r}")
        return self.root / network

    def networks(self) -> list[str]:
        """Networks that have a saved record."""
        if not self.root.is_dir():
            return []
        return sorted(p.parent.name for p in self.root.glob(f"*/{RECORD_FILE}"))

    def load(self, network: str, chain_id: int | None = None) -> DeploymentRecord:
        """Load the record for ``network``, or start an empty one.

        Args:
            network: Network name
            chain_id: Chain id reported by the node. When given, it must match
                the id stored in the record, and is stored if missing.

        Raises:
            DeployerError: If the saved record cannot be parsed
            ConfigurationError: If the saved record belongs to another chain
        """
        path = self.network_dir(network) / RECORD_FILE
        with self._lock:
            if not path.exists():
                return DeploymentRecord(network=network, chain_id=chain_id)
            try:
                record = DeploymentRecord.model_validate_json(path.read_text())
            except (OSError, ValidationError) as err:
                raise DeployerError(f"Cannot read deployment record {path}: {err}") from err

        if chain_id is not None:
            if record.chain_id is None:
                record.chain_id = chain_id
            elif record.chain_id != chain_id:
                raise ConfigurationError(
                    f"Deployment record {path} belongs to chain {record.chain_id}, "
                    f"but network {network!r} reports chain {chain_id}"
                )
        return record

    def save(self, record: DeploymentRecord) -> None:
        directory = self.network_dir(record.network)
        with self._lock:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".record-", suffix=".json")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(record.model_dump_json(indent=2))
                os.replace(tmp_name, directory / RECORD_FILE)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def append_journal(self, network: str, entry: JournalEntry) -> None:
        directory = self.network_dir(network)
        with self._lock:
            directory.mkdir(parents=True, exist_ok=True)
            with open(directory / JOURNAL_FILE, "a") as f:
                f.write(entry.model_dump_json() + "\n")

    def read_journal(self, network: str) -> list[JournalEntry]:
        path = self.network_dir(network) / JOURNAL_FILE
        if not path.exists():
            return []
        with open(path) as f:
            return [JournalEntry.model_validate_json(line) for line in f if line.strip()]

    def invalidate(self, network: str, module: str, step: str | None = None) -> list[str]:
        """Remove recorded entries so the next run executes them again.

        Returns:
            Names of the invalidated steps
        """
        with self._lock:
            record = self.load(network)
            removed = record.invalidate(module, step)
            if removed:
                self.save(record)
                for name in removed:
                    self.append_journal(
                        network, JournalEntry(module=module, step=name, state=StepState.INVALIDATED)
                    )
        logger.info("record_invalidated", network=network, module=module, steps=removed)
        return removed


__all__ = ["JOURNAL_FILE", "RECORD_FILE", "RecordStore"]
