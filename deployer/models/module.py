"""Deployment modules and the builder used to declare them.

A ``Module`` is the plain data the planner works on: a name, an ordered tuple
of steps, the logical outputs it exposes and the modules it uses. The
``ModuleBuilder`` is a convenience for writing modules as small functions::

    def v2_core(m: ModuleBuilder) -> dict[str, Ref]:
        factory = m.contract("MondaV2Factory", [OWNER])
        m.call(factory, "setFeeTo", [OWNER])
        return {"factory": factory}

    V2_CORE = build_module("V2Core", v2_core)

Builder calls return ``Ref`` handles to steps that already exist, so a module
written this way can only reference earlier steps.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from deployer.errors import DuplicateStepError, ModuleDefinitionError
from deployer.models.steps import Call, Deploy, ModuleOutput, Ref, Step


@dataclass(frozen=True, eq=False)
class Module:
    """A named, declarative unit of deployment steps.

    Attributes:
        name: Unique module name; part of every record key
        steps: Steps in declaration order
        outputs: Logical name -> Deploy step name, exposed to other modules
        uses: Modules whose outputs this module references
    """

    name: str
    steps: tuple[Step, ...]
    outputs: Mapping[str, str] = field(default_factory=dict)
    uses: tuple[Module, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "outputs", dict(self.outputs))
        object.__setattr__(self, "uses", tuple(self.uses))
        if not self.name or "#" in self.name:
            raise ModuleDefinitionError(f"Invalid module name: {self.name!r}")

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def get_step(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def get_used(self, name: str) -> Module | None:
        for used in self.uses:
            if used.name == name:
                return used
        return None

    def closure(self) -> list[Module]:
        """All modules this one depends on, dependencies first, then itself.

        Raises:
            ModuleDefinitionError: If two different modules share a name
        """
        seen: dict[str, Module] = {}

        def visit(module: Module) -> None:
            existing = seen.get(module.name)
            if existing is not None:
                if existing is not module:
                    raise ModuleDefinitionError(
                        f"Two different modules are named {module.name!r}"
                    )
                return
            for used in module.uses:
                visit(used)
            seen[module.name] = module

        visit(self)
        return list(seen.values())


class ModuleBuilder:
    """Collects steps for a module under construction."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: list[Step] = []
        self._names: set[str] = set()
        self._uses: dict[str, Module] = {}

    def _add(self, step: Step) -> Ref:
        if step.name in self._names:
            raise DuplicateStepError(
                f"Step {step.name!r} is declared twice in module {self.name!r}; "
                "pass an explicit id"
            )
        self._names.add(step.name)
        self._steps.append(step)
        return Ref(step.name)

    def contract(
        self,
        contract: str,
        args: Iterable[Any] = (),
        *,
        id: str | None = None,
        value: int = 0,
        after: Iterable[Ref] = (),
    ) -> Ref:
        """Deploy ``contract`` with constructor ``args``."""
        return self._add(
            Deploy(
                name=id or _default_contract_id(contract),
                contract=contract,
                args=tuple(args),
                value=value,
                after=tuple(ref.step for ref in after),
            )
        )

    def contract_at(self, contract: str, address: str, *, id: str | None = None) -> Ref:
        """Adopt an already deployed ``contract`` at ``address``."""
        return self._add(
            Deploy(name=id or _default_contract_id(contract), contract=contract, address=address)
        )

    def call(
        self,
        target: Ref,
        method: str,
        args: Iterable[Any] = (),
        *,
        id: str | None = None,
        value: int = 0,
        after: Iterable[Ref] = (),
    ) -> Ref:
        """Call ``method`` on the contract produced by ``target``.

        The returned Ref can only be used in ``after=``; a call has no address.
        """
        return self._add(
            Call(
                name=id or f"{target.step}.{method}",
                target=target,
                method=method,
                args=tuple(args),
                value=value,
                after=tuple(ref.step for ref in after),
            )
        )

    def use_module(self, module: Module) -> dict[str, ModuleOutput]:
        """Depend on ``module`` and return references to its outputs."""
        existing = self._uses.get(module.name)
        if existing is not None and existing is not module:
            raise ModuleDefinitionError(f"Two different modules are named {module.name!r}")
        self._uses[module.name] = module
        return {output: ModuleOutput(module.name, output) for output in module.outputs}

    def build(self, outputs: Mapping[str, Ref] | None = None) -> Module:
        return Module(
            name=self.name,
            steps=tuple(self._steps),
            outputs={logical: ref.step for logical, ref in (outputs or {}).items()},
            uses=tuple(self._uses.values()),
        )


def _default_contract_id(contract: str) -> str:
    # "contracts/Factory.sol:MondaV2Factory" -> "MondaV2Factory"
    return contract.rsplit(":", 1)[-1]


def build_module(
    name: str, definition: Callable[[ModuleBuilder], Mapping[str, Ref] | None]
) -> Module:
    """Run ``definition`` against a fresh builder and return the resulting Module."""
    builder = ModuleBuilder(name)
    outputs = definition(builder)
    return builder.build(outputs)


__all__ = ["Module", "ModuleBuilder", "build_module"]
