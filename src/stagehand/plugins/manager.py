# src/stagehand/plugins/manager.py
"""Step registry: collects step declarations from provisioning modules.

Uses pluggy for hook-based module registration. Steps can also be
registered directly (useful for scripts and tests).
"""

import dataclasses
from collections.abc import Iterable
from importlib.metadata import entry_points
from typing import Any

import pluggy

from stagehand.contracts import RegistrationError, StepDefinition
from stagehand.core.config import StagehandSettings
from stagehand.core.logging import get_logger
from stagehand.plugins.hookspecs import ENTRYPOINT_GROUP, PROJECT_NAME, StagehandModuleSpec

logger = get_logger(__name__)

DIRECT_MODULE = "__main__"


def validate_step(step: Any, module: str) -> StepDefinition:
    """Check a declaration before it joins the registry.

    Raises:
        RegistrationError: If the declaration is malformed
    """
    if not isinstance(step, StepDefinition):
        raise RegistrationError(
            f"Module '{module}' declared {type(step).__name__}; expected StepDefinition"
        )
    where = f"Step '{step.name}' from module '{module}'"
    if not isinstance(step.name, str) or not step.name.strip():
        raise RegistrationError(f"Step from module '{module}' has an empty name")
    if step.action is None or not callable(step.action):
        raise RegistrationError(f"{where} has no callable action")
    # bool is an int subclass; True/False as a priority is always a typo
    for attr in ("section", "priority"):
        value = getattr(step, attr)
        if not isinstance(value, int) or isinstance(value, bool):
            raise RegistrationError(f"{where}: {attr} must be an int, got {value!r}")
    if not isinstance(step.tags, frozenset) or not all(isinstance(t, str) for t in step.tags):
        raise RegistrationError(f"{where}: tags must be a frozenset of role names")
    return step


class StepRegistry:
    """Holds the provisioning modules and their step declarations.

    Order of the merged set is independent of module load order: modules
    are visited sorted by name. The registry never filters by role and
    never sorts by (section, priority); that is the scheduler's job.

    Usage:
        registry = StepRegistry(settings)
        registry.register_builtin_modules()
        registry.load_entrypoint_modules()
        registry.register(StepDefinition("Extra", 5, 10, action))

        steps = registry.steps()
    """

    def __init__(self, settings: StagehandSettings | None = None) -> None:
        self._settings = settings
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(StagehandModuleSpec)
        # Direct registrations, keyed by module name, in registration order
        self._direct: dict[str, list[StepDefinition]] = {}

    # === Registration ===

    def register(self, step: StepDefinition, *, module: str = DIRECT_MODULE) -> StepDefinition:
        """Register a single step.

        Args:
            step: Step declaration
            module: Module name the step is attributed to

        Returns:
            The stored step, with module and sequence assigned

        Raises:
            RegistrationError: If the step is malformed or the module name
                belongs to a registered provisioning module
        """
        if self._pm.has_plugin(module):
            raise RegistrationError(
                f"Module name '{module}' is taken by a registered provisioning module"
            )
        validate_step(step, module)
        declared = self._direct.setdefault(module, [])
        stored = dataclasses.replace(step, module=module, sequence=len(declared))
        declared.append(stored)
        return stored

    def register_module(self, plugin: Any) -> str:
        """Register a provisioning module.

        Args:
            plugin: Object implementing stagehand_get_steps, with a `name` attribute

        Returns:
            The module name

        Raises:
            RegistrationError: Missing name, duplicate name or no hook implementation
        """
        try:
            name = plugin.name
        except AttributeError:
            raise RegistrationError(
                f"Provisioning module {type(plugin).__name__} must define 'name' attribute. "
                f"Add: name = 'your_module_name' to the class."
            ) from None
        if not isinstance(name, str) or not name.strip():
            raise RegistrationError(
                f"Provisioning module {type(plugin).__name__} has an empty 'name'"
            )
        if self._pm.has_plugin(name) or name in self._direct:
            raise RegistrationError(f"Duplicate provisioning module name: '{name}'")

        try:
            self._pm.register(plugin, name=name)
        except (ValueError, pluggy.PluginValidationError) as e:
            raise RegistrationError(f"Provisioning module '{name}' rejected: {e}") from e
        if not self._pm.get_hookcallers(plugin):
            self._pm.unregister(name=name)
            raise RegistrationError(
                f"Provisioning module '{name}' implements no stagehand hook"
            )
        logger.debug("Provisioning module registered", module=name)
        return name

    def register_builtin_modules(self) -> None:
        """Register the built-in settings-driven modules.

        Call this once at startup.
        """
        from stagehand.plugins.builtin.cleanup import builtin_cleanup
        from stagehand.plugins.builtin.commands import builtin_commands
        from stagehand.plugins.builtin.software import builtin_software

        self.register_module(builtin_commands)
        self.register_module(builtin_software)
        self.register_module(builtin_cleanup)

    def load_entrypoint_modules(self, group: str = ENTRYPOINT_GROUP) -> list[str]:
        """Register third-party modules published under an entry-point group.

        An entry point may name a module instance or a class; classes are
        instantiated without arguments.

        Returns:
            Names of the modules registered
        """
        loaded: list[str] = []
        for ep in entry_points(group=group):
            obj = ep.load()
            plugin = obj() if isinstance(obj, type) else obj
            loaded.append(self.register_module(plugin))
            logger.info("Provisioning module loaded", module=loaded[-1], entry_point=ep.value)
        return loaded

    # === Queries ===

    @property
    def module_names(self) -> list[str]:
        names = {name for name, _ in self._pm.list_name_plugin()} | set(self._direct)
        return sorted(names)

    def steps(self) -> list[StepDefinition]:
        """Collect the declarations of every module.

        Returns:
            Steps grouped by module (sorted by module name), each module's
            steps in declaration order

        Raises:
            RegistrationError: If a module returns a malformed declaration
        """
        by_module: dict[str, list[StepDefinition]] = {
            module: list(declared) for module, declared in self._direct.items()
        }
        plugins = dict(self._pm.list_name_plugin())
        for module, plugin in plugins.items():
            # One module per call, so every declaration is attributed to its module
            others = [p for p in plugins.values() if p is not plugin]
            caller = self._pm.subset_hook_caller("stagehand_get_steps", remove_plugins=others)
            declared = [step for result in caller(settings=self._settings) for step in (result or [])]
            by_module[module] = [
                dataclasses.replace(validate_step(step, module), module=module, sequence=seq)
                for seq, step in enumerate(declared)
            ]

        merged: list[StepDefinition] = []
        for module in sorted(by_module):
            merged.extend(by_module[module])
        return merged

    def extend(self, steps: Iterable[StepDefinition], *, module: str = DIRECT_MODULE) -> None:
        """Register several steps under one module, in order."""
        for step in steps:
            self.register(step, module=module)
