"""Tests for dry-run planning and reconciliation."""

import pytest

from deployer.errors import ModuleDefinitionError, ReconciliationError
from deployer.models.module import Module
from deployer.models.record import Artifact, CallEntry, DeploymentRecord
from deployer.models.steps import Call, Deploy, ModuleOutput, Ref
from deployer.planning.arguments import Unresolved, call_digest, deploy_digest, lookup_reference
from deployer.planning.plan import Action, plan
from tests.helpers import FACTORY, OWNER, WETH

A_ADDRESS = "0x00000000000000000000000000000000000000a1"


def record_deploy(record: DeploymentRecord, module: str, step: Deploy, address: str, args=None) -> None:
    record.add_artifact(
        Artifact(
            module=module,
            step=step.name,
            contract=step.contract,
            address=address,
            tx_hash="0x" + "11" * 32,
            args_digest=deploy_digest(step, list(step.args) if args is None else args),
        )
    )


@pytest.fixture
def module() -> Module:
    return Module(
        "Core",
        (
            Deploy("A", "A", [OWNER]),
            Call("A.setFeeTo", Ref("A"), "setFeeTo", [OWNER]),
            Deploy("B", "B", [Ref("A"), WETH]),
        ),
    )


class TestPlan:
    def test_empty_record_executes_everything(self, module):
        planned = plan(module, DeploymentRecord(network="local"))

        assert [(p.step.name, p.action) for p in planned] == [
            ("A", Action.EXECUTE),
            ("A.setFeeTo", Action.EXECUTE),
            ("B", Action.EXECUTE),
        ]
        assert planned[0].args == [OWNER]
        # B depends on an address that does not exist yet
        assert planned[2].args is None

    def test_recorded_steps_are_skipped(self, module):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[0], A_ADDRESS)

        planned = plan(module, record)

        assert [p.action for p in planned] == [Action.SKIP, Action.EXECUTE, Action.EXECUTE]
        assert planned[0].artifact is not None
        assert planned[2].args == [A_ADDRESS, WETH]

    def test_recorded_call_with_same_arguments_is_skipped(self, module):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[0], A_ADDRESS)
        call = module.steps[1]
        record.add_call(
            CallEntry(
                module="Core",
                step=call.name,
                target=A_ADDRESS,
                method="setFeeTo",
                digest=call_digest(A_ADDRESS, call, [OWNER]),
                tx_hash="0x" + "22" * 32,
            )
        )

        planned = plan(module, record)

        assert planned[1].action is Action.SKIP

    def test_recorded_call_with_other_arguments_is_executed(self, module):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[0], A_ADDRESS)
        record.add_call(
            CallEntry(
                module="Core",
                step="A.setFeeTo",
                target=A_ADDRESS,
                method="setFeeTo",
                digest=call_digest(A_ADDRESS, module.steps[1], [WETH]),
                tx_hash="0x" + "22" * 32,
            )
        )

        planned = plan(module, record)

        assert planned[1].action is Action.EXECUTE


class TestReconciliation:
    def test_changed_constructor_arguments_rejected(self, module):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[0], A_ADDRESS, args=[WETH])

        with pytest.raises(ReconciliationError, match="different constructor arguments"):
            plan(module, record)

    def test_changed_contract_rejected(self):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", Deploy("A", "OldA", [OWNER]), A_ADDRESS)
        module = Module("Core", (Deploy("A", "A", [OWNER]),))

        with pytest.raises(ReconciliationError, match="'OldA'"):
            plan(module, record)

    def test_changed_address_override_rejected(self):
        old = Deploy("F", "MondaV2Factory", address=FACTORY)
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", old, FACTORY)
        module = Module("Core", (Deploy("F", "MondaV2Factory", address=OWNER),))

        with pytest.raises(ReconciliationError, match="now points at"):
            plan(module, record)

    def test_address_override_case_insensitive(self):
        step = Deploy("F", "MondaV2Factory", address=FACTORY)
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", step, FACTORY.lower())
        module = Module("Core", (Deploy("F", "MondaV2Factory", address=FACTORY),))

        assert plan(module, record)[0].action is Action.SKIP

    def test_recorded_step_referencing_redeployed_step_rejected(self, module):
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[2], FACTORY, args=[A_ADDRESS, WETH])

        with pytest.raises(ReconciliationError, match="old address of A"):
            plan(module, record)

    def test_recorded_step_referencing_adopted_step_planned(self):
        module = Module(
            "Core",
            (
                Deploy("F", "MondaV2Factory", address=FACTORY),
                Deploy("R", "MondaV2Router03", [Ref("F"), WETH]),
            ),
        )
        record = DeploymentRecord(network="local")
        record_deploy(record, "Core", module.steps[1], A_ADDRESS, args=[FACTORY, WETH])

        assert [p.action for p in plan(module, record)] == [Action.EXECUTE, Action.SKIP]


class TestLookupReference:
    def test_output_of_unused_module_rejected(self):
        module = Module("Periphery", (Deploy("B", "B", [ModuleOutput("Core", "factory")]),))

        with pytest.raises(ModuleDefinitionError, match="Core.factory"):
            lookup_reference(module, DeploymentRecord(network="local"), ModuleOutput("Core", "factory"))

    def test_unrecorded_output_is_unresolved(self):
        core = Module("Core", (Deploy("A", "A"),), {"factory": "A"})
        module = Module("Periphery", (), uses=(core,))

        with pytest.raises(Unresolved):
            lookup_reference(module, DeploymentRecord(network="local"), ModuleOutput("Core", "factory"))
