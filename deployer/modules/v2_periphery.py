"""V2Periphery: the swap router, pointed at a factory and wrapped native token."""

from __future__ import annotations

from deployer.models.module import Module, ModuleBuilder
from deployer.models.steps import ModuleOutput

FACTORY = "0xC921877BEcB785fDFbb96B6D8354Bb443C015995"
WETH = "0x760AfE86e5de5fa0Ee542fc7B7B713e1c5425701"
# Third constructor argument of MondaV2Router03
ROUTER_EXTRA = "0x2108b8F6a2D6cC6117db17EA4cE3Af67D92A4716"
ROUTER_CONTRACT = "MondaV2Router03"


def build_v2_periphery(
    factory: str | ModuleOutput = FACTORY,
    weth: str = WETH,
    extra: str = ROUTER_EXTRA,
    *,
    core: Module | None = None,
) -> Module:
    """Build the V2Periphery module.

    Args:
        factory: Factory address, or ignored when ``core`` is given
        weth: Wrapped native token address
        extra: Third router constructor argument
        core: A V2Core module; the router then uses its ``factory`` output
            and V2Core is executed first
    """
    m = ModuleBuilder("V2Periphery")
    if core is not None:
        factory = m.use_module(core)["factory"]
    router = m.contract(ROUTER_CONTRACT, [factory, weth, extra])
    return m.build({"router02": router})


V2_PERIPHERY = build_v2_periphery()
