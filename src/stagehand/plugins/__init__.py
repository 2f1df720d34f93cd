"""Provisioning modules via pluggy.

- Hookspecs: pluggy hook definitions (stagehand_get_steps)
- Registry: module registration and step collection
- Context: what every step action receives
"""

from stagehand.plugins.context import ExecutionContext
from stagehand.plugins.hookspecs import hookimpl, hookspec
from stagehand.plugins.manager import StepRegistry, validate_step

__all__ = [
    "ExecutionContext",
    "StepRegistry",
    "hookimpl",
    "hookspec",
    "validate_step",
]
