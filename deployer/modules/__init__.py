"""Deployment modules shipped with the project, and module lookup."""

from __future__ import annotations

import importlib

from deployer.errors import ConfigurationError
from deployer.models.module import Module
from deployer.modules.v2_core import V2_CORE, build_v2_core
from deployer.modules.v2_periphery import V2_PERIPHERY, build_v2_periphery

REGISTRY: dict[str, Module] = {
    V2_CORE.name: V2_CORE,
    V2_PERIPHERY.name: V2_PERIPHERY,
}


def load_module(reference: str) -> Module:
    """Find a module by registry name or ``package.module:ATTRIBUTE``.

    Raises:
        ConfigurationError: If the reference does not name a Module
    """
    if reference in REGISTRY:
        return REGISTRY[reference]
    if ":" not in reference:
        raise ConfigurationError(
            f"Unknown module {reference!r}; known: {sorted(REGISTRY)} "
            "(or use package.module:ATTRIBUTE)"
        )
    module_path, _, attribute = reference.partition(":")
    try:
        source = importlib.import_module(module_path)
    except ImportError as err:
        raise ConfigurationError(f"Cannot import {module_path!r}: {err}") from err
    found = getattr(source, attribute, None)
    if not isinstance(found, Module):
        raise ConfigurationError(f"{reference!r} is not a deployment Module")
    return found


__all__ = [
    "REGISTRY",
    "V2_CORE",
    "V2_PERIPHERY",
    "build_v2_core",
    "build_v2_periphery",
    "load_module",
]
