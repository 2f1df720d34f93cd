# src/stagehand/cli.py
"""Stagehand Command Line Interface.

Entry point for the stagehand CLI tool.
"""

import json
import sys
from pathlib import Path
from typing import NoReturn

import typer
import yaml
from pydantic import ValidationError

from stagehand import __version__
from stagehand.contracts import (
    ExecutionPlan,
    ResumeError,
    RunStatus,
    StagehandError,
    VaultDecryptionError,
)
from stagehand.core.checkpoint import CheckpointManager, CheckpointStore
from stagehand.core.config import StagehandSettings, load_settings
from stagehand.core.logging import ProvisionLog, configure_logging
from stagehand.core.security.vault import Vault, generate_key, get_vault_key
from stagehand.plugins.manager import StepRegistry

app = typer.Typer(
    name="stagehand",
    help="Stagehand: reboot-safe, role-scoped workstation provisioning.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"stagehand version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Stagehand: reboot-safe, role-scoped workstation provisioning."""
    pass


def _load_settings_or_exit(settings: str) -> StagehandSettings:
    """Load and validate config via Pydantic, exiting 1 on error."""
    settings_path = Path(settings)
    try:
        return load_settings(settings_path)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except yaml.YAMLError as e:
        typer.echo(f"Error: Settings file is not valid YAML: {e}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _build_registry(config: StagehandSettings) -> StepRegistry:
    """Registry with built-in and entry-point modules, exiting 1 on error."""
    registry = StepRegistry(config)
    try:
        registry.register_builtin_modules()
        if config.entrypoint_modules:
            registry.load_entrypoint_modules()
    except StagehandError as e:
        _registration_failed(e)
    return registry


def _registration_failed(error: StagehandError) -> NoReturn:
    ProvisionLog().critical("Module registration failed", error=str(error))
    typer.echo(f"Module registration error: {error}", err=True)
    raise typer.Exit(1) from None


def _open_store(config: StagehandSettings) -> CheckpointStore:
    try:
        return CheckpointStore.from_path(config.checkpoint.path)
    except OSError as e:
        typer.echo(f"Error opening checkpoint store {config.checkpoint.path}: {e}", err=True)
        raise typer.Exit(1) from None


def default_resume_target() -> str:
    """The script or binary this process was started from, as an absolute path."""
    return str(Path(sys.argv[0]).resolve())


@app.command()
def run(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    role: str | None = typer.Option(
        None,
        "--role",
        "-r",
        help="Role to provision (ignored when resuming; the checkpoint's role wins).",
    ),
    resume_target: str | None = typer.Option(
        None,
        "--resume-target",
        help="Script or binary to re-invoke after reboot (default: this one).",
    ),
    simulate: bool = typer.Option(
        False,
        "--simulate",
        help="Record auto-resume and reboot requests instead of touching the OS.",
    ),
    resume_only: bool = typer.Option(
        False,
        "--resume-only",
        hidden=True,
        help="Exit without running steps unless a checkpoint is pending.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the run summary as JSON.",
    ),
) -> None:
    """Run (or resume) provisioning.

    Resumes automatically when a checkpoint is pending. Exit code 0 means
    the run completed or is paused for reboot.
    """
    from stagehand.engine import Orchestrator
    from stagehand.host import build_host

    config = _load_settings_or_exit(settings)
    configure_logging(
        config.logging.level,
        config.logging.path,
        json_output=config.logging.json_output,
    )
    registry = _build_registry(config)

    try:
        vault = Vault.from_settings(config.vault)
    except (OSError, ValueError, VaultDecryptionError) as e:
        typer.echo(f"Error loading credential vault: {e}", err=True)
        raise typer.Exit(1) from None

    simulated = simulate or config.host.simulate
    trigger, rebooter = build_host(config, simulate=simulated)
    resume_args = ["--settings", str(Path(settings).resolve())]
    if simulated:
        resume_args.append("--simulate")

    target = resume_target or config.checkpoint.resume_target or default_resume_target()

    with _open_store(config) as store:
        orchestrator = Orchestrator(
            registry,
            store,
            trigger,
            rebooter,
            resume_target=target,
            default_role=config.role,
            vault=vault,
            log=ProvisionLog(),
            resume_args=tuple(resume_args),
        )
        try:
            result = orchestrator.run(role, resume_only=resume_only)
        except StagehandError as e:
            typer.echo(f"Provisioning failed: {e}", err=True)
            raise typer.Exit(1) from None

    if json_output:
        typer.echo(json.dumps(result.summary(), indent=2))
        return

    if result.status == RunStatus.REBOOTING:
        typer.echo(f"Checkpoint '{result.checkpoint_name}' written; rebooting to continue.")
    else:
        typer.echo(f"Run completed: {result.status.value}")
    typer.echo(f"  Role: {result.role}")
    typer.echo(f"  Resumed: {'yes' if result.resumed else 'no'}")
    typer.echo(f"  Steps executed: {len(result.executed)}")
    if result.skipped:
        typer.echo(f"  Steps skipped (completed before reboot): {result.skipped}")
    if result.best_effort_failures:
        typer.echo(f"  Best-effort failures: {', '.join(result.best_effort_failures)}")


@app.command()
def plan(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    role: str | None = typer.Option(
        None,
        "--role",
        "-r",
        help="Role to plan for (default: checkpoint role, then settings role).",
    ),
) -> None:
    """Show the execution plan for a role without running it.

    Steps a pending checkpoint would skip are marked; the checkpoint is not consumed.
    """
    from stagehand.engine import build_plan, select_for_role

    config = _load_settings_or_exit(settings)
    registry = _build_registry(config)
    try:
        steps = registry.steps()
    except StagehandError as e:
        _registration_failed(e)

    with _open_store(config) as store:
        try:
            pending = store.read()
        except ResumeError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None

    plan_role = pending.role if pending is not None else (role or config.role)
    if not plan_role:
        typer.echo("Error: No role given: pass --role or set 'role' in settings", err=True)
        raise typer.Exit(1)

    execution_plan = build_plan(select_for_role(steps, plan_role))
    typer.echo(f"Plan for role {plan_role}: {len(execution_plan)} of {len(steps)} registered steps")
    if pending is not None:
        typer.echo(
            f"  Pending checkpoint '{pending.checkpoint_name}' resumes at "
            f"({pending.section}, {pending.next_priority})"
        )
    _echo_plan(execution_plan, pending.resume_position if pending is not None else None)


def _echo_plan(execution_plan: ExecutionPlan, resume_at: tuple[int, int] | None) -> None:
    for step in execution_plan:
        done = resume_at is not None and step.position < resume_at
        marker = "skip" if done else "run "
        flags = " best-effort" if step.best_effort else ""
        typer.echo(
            f"  {marker} [{step.section:>3}/{step.priority:>4}] {step.name} ({step.module}){flags}"
        )


@app.command()
def status(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Show the pending checkpoint, if any."""
    config = _load_settings_or_exit(settings)
    with _open_store(config) as store:
        try:
            pending = store.read()
        except ResumeError as e:
            typer.echo(f"Checkpoint record is corrupt: {e}", err=True)
            typer.echo("Run 'stagehand cancel' to clear it.", err=True)
            raise typer.Exit(1) from None

    if pending is None:
        typer.echo("No pending checkpoint.")
        return

    typer.echo(f"Pending checkpoint: {pending.checkpoint_name}")
    typer.echo(f"  Role: {pending.role}")
    typer.echo(f"  Resumes at: section {pending.section}, priority {pending.next_priority}")
    typer.echo(f"  Resume target: {pending.resume_target}")
    typer.echo(f"  Created: {pending.created_at.isoformat()}")


@app.command()
def cancel(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    simulate: bool = typer.Option(
        False,
        "--simulate",
        help="Do not touch the OS auto-resume trigger.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt.",
    ),
) -> None:
    """Remove the pending checkpoint and its auto-resume trigger.

    The next start becomes a fresh run.
    """
    from stagehand.host import build_host

    config = _load_settings_or_exit(settings)
    if not yes:
        confirm = typer.confirm("Remove the pending checkpoint and auto-resume trigger?")
        if not confirm:
            typer.echo("Cancelled.")
            raise typer.Exit(1)

    trigger, rebooter = build_host(config, simulate=simulate)
    with _open_store(config) as store:
        manager = CheckpointManager(store, trigger, rebooter)
        try:
            removed = manager.cancel()
        except OSError as e:
            typer.echo(f"Error removing auto-resume trigger: {e}", err=True)
            raise typer.Exit(1) from None

    if removed:
        typer.echo("Pending checkpoint removed.")
    else:
        typer.echo("Nothing to cancel.")


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate settings and step declarations without running."""
    config = _load_settings_or_exit(settings)
    registry = _build_registry(config)
    try:
        steps = registry.steps()
    except StagehandError as e:
        _registration_failed(e)

    roles = sorted({tag for step in steps for tag in step.tags})
    typer.echo(f"Configuration valid: {Path(settings).name}")
    typer.echo(f"  Modules: {', '.join(registry.module_names) or '(none)'}")
    typer.echo(f"  Steps: {len(steps)}")
    typer.echo(f"  Roles referenced: {', '.join(roles) or '(none)'}")
    typer.echo(f"  Checkpoint store: {config.checkpoint.path}")
    typer.echo(f"  Auto-resume trigger: {config.checkpoint.trigger.value}")


# Vault subcommand group
vault_app = typer.Typer(help="Credential vault commands.")
app.add_typer(vault_app, name="vault")


@vault_app.command("generate-key")
def vault_generate_key() -> None:
    """Print a new vault key.

    Store it in the environment variable named by vault.key_env on the
    target machine; never commit it next to the credentials file.
    """
    typer.echo(generate_key())


@vault_app.command("encrypt")
def vault_encrypt(
    key_env: str = typer.Option(
        "STAGEHAND_VAULT_KEY",
        "--key-env",
        help="Environment variable holding the vault key.",
    ),
    value: str | None = typer.Option(
        None,
        "--value",
        help="Secret to encrypt (prompted for when omitted).",
    ),
) -> None:
    """Encrypt a secret for the credentials file."""
    try:
        vault = Vault(get_vault_key(key_env))
    except (ValueError, VaultDecryptionError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if value is None:
        value = typer.prompt("Secret", hide_input=True, confirmation_prompt=True)
    typer.echo(vault.encrypt_text(value))


if __name__ == "__main__":
    app()
