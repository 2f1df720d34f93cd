"""Built-in module: software packages installed with winget."""

from stagehand.contracts import StepAction, StepDefinition, StepResult
from stagehand.core.config import SoftwarePackageSettings, StagehandSettings
from stagehand.host.commands import run_cmd
from stagehand.plugins.context import ExecutionContext
from stagehand.plugins.hookspecs import hookimpl

# winget exit codes that mean "nothing to do" (already installed / no newer version)
WINGET_NOOP_CODES = frozenset({-1978335189, -1978335135})


def winget_install_argv(package: SoftwarePackageSettings) -> list[str]:
    argv = [
        "winget",
        "install",
        "--id",
        package.id,
        "--exact",
        "--silent",
        "--disable-interactivity",
        "--accept-package-agreements",
        "--accept-source-agreements",
    ]
    if package.version is not None:
        argv.extend(["--version", package.version])
    return argv


def _install_action(package: SoftwarePackageSettings) -> StepAction:
    argv = winget_install_argv(package)

    def action(ctx: ExecutionContext) -> StepResult:
        result = run_cmd(argv)
        if result.ok:
            return StepResult.success()
        if result.returncode in WINGET_NOOP_CODES:
            ctx.log.info("Package already installed", package=package.id)
            return StepResult.success()
        return StepResult.failure(f"winget exit code {result.returncode} for {package.id}")

    return action


class StagehandSoftwareModule:
    """Hook implementer for packages declared under `software:`."""

    name = "software"

    @hookimpl
    def stagehand_get_steps(self, settings: StagehandSettings | None) -> list[StepDefinition]:
        if settings is None:
            return []
        section = settings.software.section
        return [
            StepDefinition(
                name=f"Install {package.id}",
                section=section,
                priority=package.priority,
                action=_install_action(package),
                tags=frozenset(package.tags),
                best_effort=package.best_effort,
            )
            for package in settings.software.packages
        ]


# Singleton instance for registration
builtin_software = StagehandSoftwareModule()
