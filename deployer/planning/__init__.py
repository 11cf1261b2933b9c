"""Module resolution and dry-run planning."""

from deployer.planning.plan import Action, PlannedStep, plan
from deployer.planning.resolver import resolve, validate

__all__ = ["Action", "PlannedStep", "plan", "resolve", "validate"]
