"""Built-in module: remove setup leftovers once provisioning is done."""

import shutil
from pathlib import Path

from stagehand.contracts import StepDefinition, StepResult
from stagehand.core.config import StagehandSettings
from stagehand.plugins.context import ExecutionContext
from stagehand.plugins.hookspecs import hookimpl


def remove_paths(paths: list[str], ctx: ExecutionContext) -> StepResult:
    """Delete files and directory trees; missing paths are fine."""
    failed: list[str] = []
    for raw in paths:
        path = Path(raw)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as e:
            ctx.log.warning("Could not remove path", path=str(path), error=str(e))
            failed.append(str(path))
        else:
            ctx.log.debug("Removed path", path=str(path))
    if failed:
        return StepResult.failure(f"could not remove: {', '.join(failed)}")
    return StepResult.success()


class StagehandCleanupModule:
    """Hook implementer for the `cleanup:` settings block.

    Cleanup is best-effort: leftover files never fail a provisioned machine.
    """

    name = "cleanup"

    @hookimpl
    def stagehand_get_steps(self, settings: StagehandSettings | None) -> list[StepDefinition]:
        if settings is None or not settings.cleanup.paths:
            return []
        cleanup = settings.cleanup
        paths = list(cleanup.paths)
        return [
            StepDefinition(
                name="Remove setup files",
                section=cleanup.section,
                priority=cleanup.priority,
                action=lambda ctx: remove_paths(paths, ctx),
                tags=frozenset(cleanup.tags),
                best_effort=True,
            )
        ]


# Singleton instance for registration
builtin_cleanup = StagehandCleanupModule()
