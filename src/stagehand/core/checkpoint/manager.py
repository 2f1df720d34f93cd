"""Checkpoint manager: persist resume state, arm auto-resume, reboot.

Order matters and every step is checked before the next one runs:
1. Write the checkpoint record
2. Register the auto-resume trigger
3. Request the reboot
4. Return True ("do not continue; the process is about to end")

Rebooting without a resume marker would strand the machine mid-provisioning,
so a failure in 1 or 2 suppresses the reboot.
"""

import sys
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from stagehand.contracts import (
    Checkpoint,
    CheckpointPersistError,
    RebootTriggerError,
    ResumeError,
)
from stagehand.core.checkpoint.store import CheckpointStore
from stagehand.core.logging import ProvisionLog
from stagehand.host.protocols import AutoResumeScheduler, RebootTrigger


def build_resume_command(
    resume_target: str,
    role: str,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """argv that re-invokes the orchestrator for a role.

    A .py resume target runs through the current interpreter; anything
    else (a console script or frozen binary) is executed directly.
    With --resume-only, an invocation that finds no checkpoint exits
    without running any step.
    """
    argv: list[str] = []
    if Path(resume_target).suffix.lower() == ".py":
        argv.append(sys.executable)
    argv.extend([resume_target, "run", "--role", role, "--resume-only"])
    argv.extend(extra_args)
    return argv


class CheckpointManager:
    """Creates checkpoints and hands the machine over to a reboot.

    Usage:
        manager = CheckpointManager(store, scheduler, rebooter, log=log)
        rebooting = manager.request_checkpoint(
            "Checkpoint1", section=1, resume_target=target, role="MGR", next_priority=70
        )
    """

    def __init__(
        self,
        store: CheckpointStore,
        scheduler: AutoResumeScheduler,
        rebooter: RebootTrigger,
        *,
        log: ProvisionLog | None = None,
        resume_args: Sequence[str] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with storage and host primitives.

        Args:
            store: Durable checkpoint storage
            scheduler: Auto-resume trigger implementation
            rebooter: Reboot implementation
            log: Logging collaborator for CRITICAL failure reports
            resume_args: Extra CLI arguments appended to the resume command
                (e.g. ["--settings", "C:/provision/settings.yaml"])
            clock: Timestamp source, UTC now by default
        """
        self._store = store
        self._scheduler = scheduler
        self._rebooter = rebooter
        self._log = log or ProvisionLog()
        self._resume_args = list(resume_args)
        self._clock = clock or (lambda: datetime.now(UTC))
        # Set once this process has requested a reboot; nothing may run after it
        self.rebooting = False
        self.checkpoint_name: str | None = None

    def request_checkpoint(
        self,
        name: str,
        section: int,
        resume_target: str,
        role: str,
        next_priority: int,
    ) -> bool:
        """Persist a checkpoint, arm auto-resume and trigger a reboot.

        Args:
            name: Checkpoint name (for logs and diagnosis)
            section: Section the run resumes in
            resume_target: Entry script/binary to re-invoke
            role: Role passed back to the orchestrator on resume
            next_priority: Priority the run resumes at

        Returns:
            True - the caller must not continue this run

        Raises:
            CheckpointPersistError: Record or trigger could not be written;
                no reboot was requested
            RebootTriggerError: Host rejected the reboot; record and trigger
                are in place so a manual reboot resumes correctly
        """
        log = self._log.bind(
            checkpoint=name, role=role, section=section, next_priority=next_priority
        )
        checkpoint = Checkpoint(
            checkpoint_name=name,
            section=section,
            next_priority=next_priority,
            role=role,
            resume_target=resume_target,
            created_at=self._clock(),
        )

        try:
            self._store.write(checkpoint)
        except (SQLAlchemyError, OSError) as e:
            log.critical("Checkpoint record could not be written; reboot suppressed", error=str(e))
            raise CheckpointPersistError(
                f"Cannot write checkpoint '{name}' for role {role} at "
                f"({section}, {next_priority}): {e}"
            ) from e

        command = build_resume_command(resume_target, role, self._resume_args)
        try:
            self._scheduler.schedule(command)
        except OSError as e:
            self._withdraw_record(log)
            log.critical("Auto-resume trigger could not be registered; reboot suppressed", error=str(e))
            raise CheckpointPersistError(
                f"Cannot register auto-resume trigger for checkpoint '{name}' "
                f"(role {role}, resume at ({section}, {next_priority})): {e}"
            ) from e

        log.info("Checkpoint written", command=command)

        try:
            self._rebooter.reboot(f"Stagehand checkpoint '{name}' (role {role})")
        except OSError as e:
            log.critical(
                "Reboot request rejected; checkpoint is armed, reboot manually to resume",
                error=str(e),
            )
            raise RebootTriggerError(
                f"Reboot rejected after checkpoint '{name}' (role {role}, resume at "
                f"({section}, {next_priority})); reboot manually to resume: {e}"
            ) from e

        log.success("Reboot requested")
        self.rebooting = True
        self.checkpoint_name = name
        return True

    def pending(self) -> Checkpoint | None:
        """The live checkpoint, without consuming it."""
        return self._store.read()

    def cancel(self) -> bool:
        """Remove the live checkpoint and its trigger.

        Manual operator intervention: the next start becomes a fresh run.

        Returns:
            True if a checkpoint or trigger was removed
        """
        had_trigger = self._scheduler.is_scheduled()
        try:
            had_record = self._store.read() is not None
        except ResumeError:
            # A corrupt record is exactly what an operator needs to clear
            had_record = True
        self._scheduler.cancel()
        self._store.purge()
        if had_trigger or had_record:
            self._log.warning("Pending checkpoint cancelled by operator")
        return had_trigger or had_record

    def _withdraw_record(self, log: ProvisionLog) -> None:
        """Remove a record whose trigger could not be armed.

        A record without a trigger would make the next manual start skip
        the checkpoint step although the reboot never happened.
        """
        try:
            self._store.clear()
        except SQLAlchemyError as e:
            log.critical(
                "Checkpoint record could not be withdrawn; clear it with 'stagehand cancel'",
                error=str(e),
            )
