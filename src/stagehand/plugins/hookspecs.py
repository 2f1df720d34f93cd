# src/stagehand/plugins/hookspecs.py
"""pluggy hook specifications for provisioning modules.

A provisioning module is any object with a `name` attribute that
implements stagehand_get_steps. The registry calls the hook once per
module when it builds the merged step set.

Usage (implementing a module):
    from stagehand.plugins.hookspecs import hookimpl

    class BrowserModule:
        name = "browser"

        @hookimpl  # NOT @hookspec - that's for defining specs
        def stagehand_get_steps(self, settings):
            return [StepDefinition("Install Edge policy", 2, 40, install_policy)]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks module implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from stagehand.contracts import StepDefinition
    from stagehand.core.config import StagehandSettings

# Project name for pluggy
PROJECT_NAME = "stagehand"

# Entry-point group scanned for third-party provisioning modules
ENTRYPOINT_GROUP = "stagehand.modules"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for modules to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class StagehandModuleSpec:
    """Hook specifications for provisioning modules."""

    @hookspec
    def stagehand_get_steps(  # type: ignore[empty-body]
        self, settings: "StagehandSettings | None"
    ) -> list["StepDefinition"]:
        """Return this module's step declarations.

        Declaration order is significant: it breaks ties between steps of
        the same module that share a (section, priority).

        Args:
            settings: Validated settings, or None when run without a file

        Returns:
            List of StepDefinition instances
        """
