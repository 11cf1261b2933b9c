"""V2Core: the AMM pair factory."""

from __future__ import annotations

from deployer.models.module import Module, ModuleBuilder

OWNER = "0x2C1C4609256DbB926A08c79e8b4c7c8c55856e5d"
FACTORY_CONTRACT = "MondaV2Factory"


def build_v2_core(
    owner: str = OWNER,
    *,
    factory_address: str | None = None,
    fee_to: str | None = None,
) -> Module:
    """Build the V2Core module.

    Args:
        owner: ``feeToSetter`` passed to the factory constructor
        factory_address: Adopt an already deployed factory instead of deploying
        fee_to: If set, call ``setFeeTo(fee_to)`` on the factory
    """
    m = ModuleBuilder("V2Core")
    if factory_address is not None:
        factory = m.contract_at(FACTORY_CONTRACT, factory_address)
    else:
        factory = m.contract(FACTORY_CONTRACT, [owner])
    if fee_to is not None:
        m.call(factory, "setFeeTo", [fee_to])
    return m.build({"factory": factory})


V2_CORE = build_v2_core()
