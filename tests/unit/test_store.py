"""Tests for record and journal persistence."""

import pytest

from deployer.errors import ConfigurationError, DeployerError
from deployer.models.record import Artifact, CallEntry, JournalEntry, StepState
from deployer.store import JOURNAL_FILE, RECORD_FILE
from tests.helpers import CHAIN_ID, FACTORY


def make_artifact(step: str = "MondaV2Factory", module: str = "V2Core") -> Artifact:
    return Artifact(
        module=module,
        step=step,
        contract="MondaV2Factory",
        address=FACTORY,
        tx_hash="0x" + "ab" * 32,
        args_digest="0x01",
    )


class TestRecordStore:
    def test_load_missing_returns_empty_record(self, store):
        record = store.load("monad-testnet", chain_id=CHAIN_ID)

        assert record.network == "monad-testnet"
        assert record.chain_id == CHAIN_ID
        assert record.artifacts == {}
        assert store.networks() == []

    def test_save_and_load(self, store, record):
        record.add_artifact(make_artifact())
        record.add_call(
            CallEntry(
                module="V2Core",
                step="MondaV2Factory.setFeeTo",
                target=FACTORY,
                method="setFeeTo",
                digest="0x02",
                tx_hash="0x" + "cd" * 32,
            )
        )
        store.save(record)

        loaded = store.load("monad-testnet", chain_id=CHAIN_ID)

        assert loaded == record
        assert store.networks() == ["monad-testnet"]
        assert (store.root / "monad-testnet" / RECORD_FILE).exists()
        assert not list((store.root / "monad-testnet").glob(".record-*"))

    def test_chain_mismatch(self, store, record):
        store.save(record)

        with pytest.raises(ConfigurationError, match="belongs to chain"):
            store.load("monad-testnet", chain_id=1)

    def test_missing_chain_id_filled(self, store):
        store.save(store.load("monad-testnet"))

        assert store.load("monad-testnet", chain_id=CHAIN_ID).chain_id == CHAIN_ID

    def test_corrupt_record(self, store):
        directory = store.root / "monad-testnet"
        directory.mkdir(parents=True)
        (directory / RECORD_FILE).write_text("{broken")

        with pytest.raises(DeployerError, match="Cannot read deployment record"):
            store.load("monad-testnet")

    @pytest.mark.parametrize("name", ["", "..", "a/b", ".hidden"])
    def test_invalid_network_names(self, store, name):
        with pytest.raises(ConfigurationError):
            store.network_dir(name)


class TestJournal:
    def test_append_and_read(self, store):
        store.append_journal(
            "monad-testnet", JournalEntry(module="V2Core", step="A", state=StepState.SUBMITTED)
        )
        store.append_journal(
            "monad-testnet",
            JournalEntry(module="V2Core", step="A", state=StepState.FAILED, error="boom"),
        )

        entries = store.read_journal("monad-testnet")

        assert [e.state for e in entries] == [StepState.SUBMITTED, StepState.FAILED]
        assert entries[1].error == "boom"
        assert len((store.root / "monad-testnet" / JOURNAL_FILE).read_text().splitlines()) == 2

    def test_read_missing_journal(self, store):
        assert store.read_journal("monad-testnet") == []


class TestInvalidate:
    def test_invalidate_module(self, store, record):
        record.add_artifact(make_artifact())
        record.add_artifact(make_artifact(step="Other", module="V2Periphery"))
        store.save(record)

        removed = store.invalidate("monad-testnet", "V2Core")

        assert removed == ["MondaV2Factory"]
        assert store.load("monad-testnet").modules == ["V2Periphery"]
        journal = store.read_journal("monad-testnet")
        assert [(e.step, e.state) for e in journal] == [("MondaV2Factory", StepState.INVALIDATED)]

    def test_invalidate_nothing(self, store, record):
        store.save(record)

        assert store.invalidate("monad-testnet", "V2Core", "MondaV2Factory") == []
        assert store.read_journal("monad-testnet") == []

    def test_unknown_step_leaves_record(self, store, record):
        record.add_artifact(make_artifact())
        store.save(record)

        store.invalidate("monad-testnet", "V2Core", "Missing")

        assert store.load("monad-testnet").get_artifact("V2Core", "MondaV2Factory").address == FACTORY
