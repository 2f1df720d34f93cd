"""
Configuration schema and loading for provisioning runs.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from stagehand.contracts import TriggerKind


class RebootSettings(BaseModel):
    """Checkpoint request declared by a configured step.

    Example YAML:
        - name: Checkpoint1
          section: 1
          priority: 39
          reboot:
            next_priority: 70
    """

    model_config = {"frozen": True}

    next_priority: int = Field(description="Priority to resume at after reboot")
    section: int | None = Field(
        default=None,
        description="Section to resume in (defaults to the step's own section)",
    )
    checkpoint_name: str | None = Field(
        default=None,
        description="Checkpoint name (defaults to the step name)",
    )


class CommandStepSettings(BaseModel):
    """A step declared in the settings file.

    Exactly one of command, powershell or reboot must be given.
    Environment values of the form "vault:<name>" are resolved from the
    credential vault for the run's role when the step executes.
    """

    model_config = {"frozen": True}

    name: str = Field(min_length=1, description="Step name (shown in logs)")
    section: int = Field(description="Coarse phase grouping")
    priority: int = Field(description="Order within the section")
    tags: list[str] = Field(
        default_factory=list,
        description="Roles this step applies to (empty = every role)",
    )
    command: list[str] | None = Field(
        default=None,
        description="argv to execute",
    )
    powershell: str | None = Field(
        default=None,
        description="PowerShell script text to execute",
    )
    reboot: RebootSettings | None = Field(
        default=None,
        description="Request a checkpoint and reboot",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the command",
    )
    best_effort: bool = Field(
        default=False,
        description="Log failure and continue instead of aborting the run",
    )
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Kill the command after this many seconds",
    )

    @field_validator("command")
    @classmethod
    def validate_command_not_empty(cls, v: list[str] | None) -> list[str] | None:
        if v is not None and not v:
            raise ValueError("command must contain at least the executable")
        return v

    @model_validator(mode="after")
    def validate_single_kind(self) -> "CommandStepSettings":
        """Exactly one of command / powershell / reboot."""
        kinds = [k for k in ("command", "powershell", "reboot") if getattr(self, k) is not None]
        if len(kinds) != 1:
            raise ValueError(
                f"Step '{self.name}' must declare exactly one of command, powershell "
                f"or reboot (got: {kinds or 'none'})"
            )
        return self

    @model_validator(mode="after")
    def validate_resume_after_step(self) -> "CommandStepSettings":
        """A reboot step must resume strictly after itself."""
        if self.reboot is None:
            return self
        section = self.reboot.section if self.reboot.section is not None else self.section
        if (section, self.reboot.next_priority) <= (self.section, self.priority):
            raise ValueError(
                f"Step '{self.name}': resume point ({section}, {self.reboot.next_priority}) "
                f"must come after the step itself ({self.section}, {self.priority})"
            )
        return self


class SoftwarePackageSettings(BaseModel):
    """A package installed by the built-in software module."""

    model_config = {"frozen": True}

    id: str = Field(min_length=1, description="winget package identifier")
    priority: int = Field(description="Order within the software section")
    version: str | None = Field(default=None, description="Pin a specific version")
    tags: list[str] = Field(default_factory=list)
    best_effort: bool = False


class SoftwareSettings(BaseModel):
    """Software installation via winget.

    Example YAML:
        software:
          section: 2
          packages:
            - id: Mozilla.Firefox
              priority: 70
    """

    model_config = {"frozen": True}

    section: int = Field(default=2, description="Section all package steps run in")
    packages: list[SoftwarePackageSettings] = Field(default_factory=list)


class CleanupSettings(BaseModel):
    """Removal of setup leftovers at the end of provisioning."""

    model_config = {"frozen": True}

    section: int = 9
    priority: int = 90
    paths: list[str] = Field(default_factory=list, description="Files or directories to remove")
    tags: list[str] = Field(default_factory=list)


class CheckpointSettings(BaseModel):
    """Where resume state lives and how the orchestrator is re-invoked.

    Trigger trade-offs:
    - run_once: fires at next interactive logon; Windows removes it on fire.
    - scheduled_task: fires at boot without a logon; removed on resume.
    """

    model_config = {"frozen": True}

    path: Path = Field(
        default=Path("C:/ProgramData/Stagehand/checkpoint.db"),
        description="SQLite file holding the checkpoint record",
    )
    trigger: TriggerKind = Field(
        default=TriggerKind.RUN_ONCE,
        description="Host primitive used for auto-resume",
    )
    task_name: str = Field(
        default="StagehandResume",
        min_length=1,
        description="RunOnce value name / scheduled task name",
    )
    resume_target: str | None = Field(
        default=None,
        description="Entry script or binary to re-invoke (defaults to the running one)",
    )


class HostSettings(BaseModel):
    """Host interaction configuration."""

    model_config = {"frozen": True}

    reboot_delay_seconds: int = Field(default=5, ge=0, le=315360000)
    simulate: bool = Field(
        default=False,
        description="Record trigger/reboot calls instead of touching the OS",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    path: Path | None = Field(default=None, description="Log file (console only when unset)")
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class VaultSettings(BaseModel):
    """Encrypted credential vault configuration."""

    model_config = {"frozen": True}

    path: Path | None = Field(default=None, description="Credentials YAML file")
    key_env: str = Field(
        default="STAGEHAND_VAULT_KEY",
        min_length=1,
        description="Environment variable holding the Fernet key",
    )


class StagehandSettings(BaseModel):
    """Top-level provisioning configuration.

    This is the single source of truth for a provisioning run.
    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    role: str | None = Field(
        default=None,
        description="Default role for fresh runs (overridden by --role)",
    )
    steps: list[CommandStepSettings] = Field(
        default_factory=list,
        description="Steps contributed by the built-in commands module",
    )
    software: SoftwareSettings = Field(default_factory=SoftwareSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    checkpoint: CheckpointSettings = Field(default_factory=CheckpointSettings)
    host: HostSettings = Field(default_factory=HostSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    vault: VaultSettings = Field(default_factory=VaultSettings)
    entrypoint_modules: bool = Field(
        default=True,
        description="Load provisioning modules from the stagehand.modules entry-point group",
    )

    @field_validator("role")
    @classmethod
    def validate_role_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("role must not be blank")
        return v


def load_settings(config_path: Path) -> StagehandSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STAGEHAND_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: STAGEHAND_CHECKPOINT__PATH for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated StagehandSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STAGEHAND",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): v
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return StagehandSettings(**raw_config)
