"""Step and argument types for deployment modules.

A module is an explicit, ordered tuple of steps. Steps refer to each other
by name only (``Ref``), and to other modules' outputs by name
(``ModuleOutput``). Nothing here holds a live object handle, so a module is
plain data that can be planned and executed any number of times.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from deployer.errors import ModuleDefinitionError
from deployer.models.types import is_valid_address


@dataclass(frozen=True)
class Ref:
    """Reference to the address produced by a Deploy step in the same module."""

    step: str


@dataclass(frozen=True)
class ModuleOutput:
    """Reference to a named output of a module listed in ``Module.uses``."""

    module: str
    output: str


def _freeze(value: Any) -> Any:
    """Turn nested lists into tuples so argument lists compare by value."""
    if isinstance(value, list | tuple):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class Deploy:
    """Instantiate compiled contract bytecode, or adopt an existing address.

    Attributes:
        name: Step name, unique within the module
        contract: Contract identifier (``Name`` or ``path/File.sol:Name``)
        args: Constructor arguments (literals, ``Ref`` or ``ModuleOutput``)
        address: Explicit address override; the step is then treated as
            already deployed and never touches the network
        value: Wei sent with the deployment transaction
        after: Names of steps that must complete first
    """

    name: str
    contract: str
    args: tuple[Any, ...] = ()
    address: str | None = None
    value: int = 0
    after: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", _freeze(self.args))
        object.__setattr__(self, "after", tuple(self.after))
        if not self.name:
            raise ModuleDefinitionError("Deploy step requires a name")
        if self.address is not None:
            if not is_valid_address(self.address):
                raise ModuleDefinitionError(
                    f"Step {self.name!r} has an invalid address override: {self.address!r}"
                )
            if self.args or self.value:
                raise ModuleDefinitionError(
                    f"Step {self.name!r} adopts an existing address and cannot take "
                    "constructor arguments or value"
                )
        if self.value < 0:
            raise ModuleDefinitionError(f"Step {self.name!r} has a negative value")


@dataclass(frozen=True)
class Call:
    """Send a transaction to a method of a contract deployed by an earlier step."""

    name: str
    target: Ref
    method: str
    args: tuple[Any, ...] = ()
    value: int = 0
    after: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", _freeze(self.args))
        object.__setattr__(self, "after", tuple(self.after))
        if not self.name:
            raise ModuleDefinitionError("Call step requires a name")
        if not isinstance(self.target, Ref):
            raise ModuleDefinitionError(f"Call step {self.name!r} must target a Ref")
        if not self.method:
            raise ModuleDefinitionError(f"Call step {self.name!r} requires a method name")
        if self.value < 0:
            raise ModuleDefinitionError(f"Step {self.name!r} has a negative value")


Step = Deploy | Call


def iter_references(value: Any) -> Iterator[Ref | ModuleOutput]:
    """Yield every Ref/ModuleOutput inside an argument, depth first."""
    if isinstance(value, Ref | ModuleOutput):
        yield value
    elif isinstance(value, tuple | list):
        for item in value:
            yield from iter_references(item)


def step_dependencies(step: Step) -> list[str]:
    """Names of the same-module steps that must complete before ``step``.

    Order follows first appearance (call target, arguments, then ``after``),
    without duplicates.
    """
    names: list[str] = []
    if isinstance(step, Call):
        names.append(step.target.step)
    for ref in iter_references(step.args):
        if isinstance(ref, Ref):
            names.append(ref.step)
    names.extend(step.after)
    return list(dict.fromkeys(names))


def module_outputs_used(step: Step) -> list[ModuleOutput]:
    """Cross-module references appearing in a step's arguments."""
    return [ref for ref in iter_references(step.args) if isinstance(ref, ModuleOutput)]


__all__ = [
    "Call",
    "Deploy",
    "ModuleOutput",
    "Ref",
    "Step",
    "iter_references",
    "module_outputs_used",
    "step_dependencies",
]
