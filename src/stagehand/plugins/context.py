# src/stagehand/plugins/context.py
"""Execution context handed to every step action.

The ExecutionContext carries everything an action might need:
- Run metadata (role, resume target)
- The logging collaborator, bound to the current step
- The checkpoint manager (checkpoint request surface)
- The credential vault
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stagehand.core.logging import ProvisionLog

if TYPE_CHECKING:
    from stagehand.contracts import StepDefinition
    from stagehand.core.checkpoint.manager import CheckpointManager
    from stagehand.core.security.vault import Vault


@dataclass
class ExecutionContext:
    """Context passed to every step action.

    Owned by the Scheduler for the duration of one run; current_step and
    log are updated before each action is called.

    Example:
        def join_domain(ctx: ExecutionContext) -> StepResult:
            password = ctx.credential("domain_join")
            ...
            ctx.request_checkpoint("AfterDomainJoin", next_priority=50)
            return StepResult.reboot()
    """

    role: str
    resume_target: str
    log: ProvisionLog = field(default_factory=ProvisionLog)
    checkpoints: "CheckpointManager | None" = None
    vault: "Vault | None" = None
    options: dict[str, Any] = field(default_factory=dict)

    # Set by the scheduler while a step runs
    current_step: "StepDefinition | None" = None
    reboot_pending: bool = False
    checkpoint_name: str | None = None

    def request_checkpoint(
        self,
        name: str,
        next_priority: int,
        section: int | None = None,
    ) -> bool:
        """Checkpoint the run and reboot; the action must return right after.

        Args:
            name: Checkpoint name
            next_priority: Priority to resume at
            section: Section to resume in (defaults to the current step's)

        Returns:
            True - stop working, the machine is about to restart

        Raises:
            RuntimeError: No checkpoint manager, or called outside a step
            ValueError: Resume point is not after the current step
            CheckpointPersistError: Record or trigger could not be written
            RebootTriggerError: Host rejected the reboot
        """
        if self.checkpoints is None:
            raise RuntimeError("No checkpoint manager configured for this run")
        if self.current_step is None:
            raise RuntimeError("request_checkpoint() called outside a step")
        if self.reboot_pending:
            raise RuntimeError(
                f"Checkpoint '{self.checkpoint_name}' already requested by this step"
            )

        step = self.current_step
        resume_section = step.section if section is None else section
        # Resuming at or before the requesting step re-runs it and reboots forever
        if (resume_section, next_priority) <= step.position:
            raise ValueError(
                f"Checkpoint '{name}' resumes at ({resume_section}, {next_priority}), "
                f"which does not come after step {step.describe()}"
            )

        rebooting = self.checkpoints.request_checkpoint(
            name,
            section=resume_section,
            resume_target=self.resume_target,
            role=self.role,
            next_priority=next_priority,
        )
        self.reboot_pending = rebooting
        self.checkpoint_name = name
        return rebooting

    def credential(self, name: str) -> str:
        """Decrypt a vault credential for this run's role.

        Raises:
            RuntimeError: No vault configured
            KeyError: Unknown credential
            VaultDecryptionError: Token cannot be decrypted
        """
        if self.vault is None:
            raise RuntimeError(f"Credential '{name}' requested but no vault is configured")
        return self.vault.get_credential(self.role, name)
