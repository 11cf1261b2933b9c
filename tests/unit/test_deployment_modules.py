"""Tests for the shipped V2Core and V2Periphery modules and module lookup."""

import pytest

from deployer.errors import ConfigurationError
from deployer.execution.executor import Executor
from deployer.models.steps import Call, Deploy, ModuleOutput
from deployer.modules import (
    REGISTRY,
    V2_CORE,
    V2_PERIPHERY,
    build_v2_core,
    build_v2_periphery,
    load_module,
)
from deployer.modules.v2_periphery import ROUTER_EXTRA
from deployer.planning import resolve
from tests.helpers import FACTORY, FEE_RECIPIENT, OWNER, WETH


class TestV2Core:
    def test_default_module(self):
        assert V2_CORE.name == "V2Core"
        assert V2_CORE.outputs == {"factory": "MondaV2Factory"}
        (step,) = V2_CORE.steps
        assert isinstance(step, Deploy)
        assert step.contract == "MondaV2Factory"
        assert step.args == (OWNER,)

    def test_fee_to_adds_call(self):
        module = build_v2_core(fee_to=FEE_RECIPIENT)

        order = [s.name for s in resolve(module)]

        assert order == ["MondaV2Factory", "MondaV2Factory.setFeeTo"]
        call = module.get_step("MondaV2Factory.setFeeTo")
        assert isinstance(call, Call)
        assert call.args == (FEE_RECIPIENT,)

    def test_adopted_factory(self):
        module = build_v2_core(factory_address=FACTORY)

        assert module.steps[0].address == FACTORY


class TestV2Periphery:
    def test_default_module_uses_fixed_factory(self):
        (step,) = V2_PERIPHERY.steps
        assert step.contract == "MondaV2Router03"
        assert step.args == (FACTORY, WETH, ROUTER_EXTRA)
        assert V2_PERIPHERY.outputs == {"router02": "MondaV2Router03"}
        assert V2_PERIPHERY.uses == ()

    def test_with_core_uses_factory_output(self):
        core = build_v2_core()
        module = build_v2_periphery(core=core)

        assert module.steps[0].args[0] == ModuleOutput("V2Core", "factory")
        assert [m.name for m in module.closure()] == ["V2Core", "V2Periphery"]

    def test_with_core_executes_core_first(self, network, contracts, record):
        module = build_v2_periphery(core=build_v2_core())

        report = Executor(network, contracts, record).execute(module)

        assert network.deployed == ["MondaV2Factory", "MondaV2Router03"]
        factory = record.get_artifact("V2Core", "MondaV2Factory")
        assert network.submissions[1].args == [factory.address, WETH, ROUTER_EXTRA]
        assert report.outputs["router02"].contract == "MondaV2Router03"


class TestLoadModule:
    def test_registry_names(self):
        assert sorted(REGISTRY) == ["V2Core", "V2Periphery"]
        assert load_module("V2Core") is V2_CORE

    def test_import_reference(self):
        assert load_module("deployer.modules.v2_periphery:V2_PERIPHERY") is V2_PERIPHERY

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="Unknown module"):
            load_module("V3Core")

    def test_unimportable_reference(self):
        with pytest.raises(ConfigurationError, match="Cannot import"):
            load_module("no_such_package.modules:CORE")

    def test_reference_to_non_module(self):
        with pytest.raises(ConfigurationError, match="not a deployment Module"):
            load_module("deployer.modules.v2_core:OWNER")
