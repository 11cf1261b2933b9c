"""Topological ordering of a module's steps.

Dependencies come from ``Ref`` arguments, a Call's target and explicit
``after`` names. Steps whose dependencies are satisfied are emitted in
declaration order, so the same module always yields the same order.
"""

from __future__ import annotations

import heapq

import structlog

from deployer.errors import (
    CycleError,
    DuplicateStepError,
    ModuleDefinitionError,
    UnknownReferenceError,
)
from deployer.models.module import Module
from deployer.models.steps import Call, Deploy, Step, module_outputs_used, step_dependencies

logger = structlog.get_logger()


def validate(module: Module) -> dict[str, list[str]]:
    """Check a module's references and return its dependency map.

    Returns:
        step name -> names of steps it depends on

    Raises:
        DuplicateStepError: If two steps share a name
        UnknownReferenceError: If a step, output or ModuleOutput names
            something that is not declared
        ModuleDefinitionError: If a Call targets a non-Deploy step, or a
            step references its own module's outputs
    """
    steps: dict[str, Step] = {}
    for step in module.steps:
        if step.name in steps:
            raise DuplicateStepError(
                f"Step {step.name!r} is declared twice in module {module.name!r}"
            )
        steps[step.name] = step

    dependencies: dict[str, list[str]] = {}
    for step in module.steps:
        deps = step_dependencies(step)
        for dep in deps:
            if dep not in steps:
                raise UnknownReferenceError(module.name, step.name, dep)
        if isinstance(step, Call) and not isinstance(steps[step.target.step], Deploy):
            raise ModuleDefinitionError(
                f"Call {step.name!r} targets {step.target.step!r}, which is not a Deploy step"
            )
        for ref in module_outputs_used(step):
            used = module.get_used(ref.module)
            if used is None or ref.output not in used.outputs:
                raise UnknownReferenceError(module.name, step.name, f"{ref.module}.{ref.output}")
        dependencies[step.name] = deps

    for logical, step_name in module.outputs.items():
        target = steps.get(step_name)
        if target is None:
            raise UnknownReferenceError(module.name, f"outputs.{logical}", step_name)
        if not isinstance(target, Deploy):
            raise ModuleDefinitionError(
                f"Output {logical!r} of module {module.name!r} must name a Deploy step"
            )

    return dependencies


def resolve(module: Module) -> list[Step]:
    """Order a module's steps so each appears after every step it references.

    Args:
        module: The module to order

    Returns:
        Steps in execution order

    Raises:
        CycleError: If steps reference each other in a cycle
        UnknownReferenceError, DuplicateStepError, ModuleDefinitionError:
            See ``validate``
    """
    dependencies = validate(module)
    position = {step.name: index for index, step in enumerate(module.steps)}

    remaining = {name: len(deps) for name, deps in dependencies.items()}
    dependents: dict[str, list[str]] = {name: [] for name in dependencies}
    for name, deps in dependencies.items():
        for dep in deps:
            dependents[dep].append(name)

    ready = [position[name] for name, count in remaining.items() if count == 0]
    heapq.heapify(ready)
    order: list[Step] = []
    while ready:
        step = module.steps[heapq.heappop(ready)]
        order.append(step)
        for dependent in dependents[step.name]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, position[dependent])

    if len(order) < len(module.steps):
        unresolved = {name for name, count in remaining.items() if count > 0}
        raise CycleError(module.name, _find_cycle(dependencies, unresolved, position))

    logger.debug("module_resolved", module=module.name, order=[s.name for s in order])
    return order


def _find_cycle(
    dependencies: dict[str, list[str]], candidates: set[str], position: dict[str, int]
) -> list[str]:
    """Return one cycle among ``candidates`` as [a, b, ..., a]."""
    visiting: list[str] = []
    on_path: set[str] = set()
    done: set[str] = set()

    def visit(name: str) -> list[str] | None:
        visiting.append(name)
        on_path.add(name)
        for dep in dependencies[name]:
            if dep not in candidates or dep in done:
                continue
            if dep in on_path:
                start = visiting.index(dep)
                return visiting[start:] + [dep]
            found = visit(dep)
            if found:
                return found
        visiting.pop()
        on_path.discard(name)
        done.add(name)
        return None

    for name in sorted(candidates, key=position.__getitem__):
        if name not in done:
            cycle = visit(name)
            if cycle:
                # Report in dependency direction: a is needed by b ... needed by a
                return list(reversed(cycle))
    return sorted(candidates, key=position.__getitem__)


__all__ = ["resolve", "validate"]
