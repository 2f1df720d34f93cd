"""Built-in module: command, PowerShell and reboot steps from the settings file."""

from stagehand.contracts import RegistrationError, StepAction, StepDefinition, StepResult
from stagehand.core.config import CommandStepSettings, StagehandSettings
from stagehand.host.commands import powershell_argv, run_cmd
from stagehand.plugins.context import ExecutionContext
from stagehand.plugins.hookspecs import hookimpl

VAULT_PREFIX = "vault:"

# Characters of stderr kept in a failure reason
_REASON_TAIL = 400


def resolve_env(env: dict[str, str], ctx: ExecutionContext) -> dict[str, str]:
    """Replace "vault:<name>" values with decrypted credentials."""
    resolved: dict[str, str] = {}
    for key, value in env.items():
        if value.startswith(VAULT_PREFIX):
            resolved[key] = ctx.credential(value[len(VAULT_PREFIX) :])
        else:
            resolved[key] = value
    return resolved


def _command_action(declared: CommandStepSettings) -> StepAction:
    if declared.command is not None:
        argv = list(declared.command)
    elif declared.powershell is not None:
        argv = powershell_argv(declared.powershell)
    else:
        raise RegistrationError(f"Step '{declared.name}' declares no command, powershell or reboot")

    def action(ctx: ExecutionContext) -> StepResult:
        result = run_cmd(argv, env=resolve_env(declared.env, ctx), timeout=declared.timeout_seconds)
        if result.ok:
            return StepResult.success()
        reason = f"exit code {result.returncode}"
        detail = result.stderr.strip()[-_REASON_TAIL:]
        if detail:
            reason = f"{reason}: {detail}"
        return StepResult.failure(reason)

    return action


def _reboot_action(declared: CommandStepSettings) -> StepAction:
    reboot = declared.reboot
    if reboot is None:
        raise RegistrationError(f"Step '{declared.name}' declares no reboot")

    def action(ctx: ExecutionContext) -> StepResult:
        ctx.request_checkpoint(
            reboot.checkpoint_name or declared.name,
            next_priority=reboot.next_priority,
            section=reboot.section,
        )
        return StepResult.reboot()

    return action


def build_step(declared: CommandStepSettings) -> StepDefinition:
    """Turn one configured step into a StepDefinition."""
    action = _reboot_action(declared) if declared.reboot is not None else _command_action(declared)
    return StepDefinition(
        name=declared.name,
        section=declared.section,
        priority=declared.priority,
        action=action,
        tags=frozenset(declared.tags),
        best_effort=declared.best_effort,
    )


class StagehandCommandsModule:
    """Hook implementer for steps declared under `steps:`."""

    name = "commands"

    @hookimpl
    def stagehand_get_steps(self, settings: StagehandSettings | None) -> list[StepDefinition]:
        if settings is None:
            return []
        return [build_step(declared) for declared in settings.steps]


# Singleton instance for registration
builtin_commands = StagehandCommandsModule()
