"""Resume protocol for runs interrupted by a checkpoint reboot.

Provides the API for deciding, on process start, whether this is a fresh
run or a resume:
- peek() - Inspect the pending checkpoint without consuming it
- try_resume() - Consume the pending checkpoint exactly once

The actual continuation (skipping completed steps) is done by the
Scheduler with the returned ResumePoint.
"""

from sqlalchemy.exc import SQLAlchemyError

from stagehand.contracts import Checkpoint, ResumeError, ResumePoint
from stagehand.core.checkpoint.store import CheckpointStore
from stagehand.core.logging import ProvisionLog
from stagehand.host.protocols import AutoResumeScheduler


class ResumeLauncher:
    """Detects and consumes the checkpoint left by a previous process.

    Resume protocol:
    1. Read the checkpoint record (absent = fresh run)
    2. Remove the auto-resume trigger so it fires at most once
    3. Delete the record (consume exactly once)
    4. Hand the resume point to the Scheduler

    A corrupt record stops the run: guessing where to resume could skip
    or re-run provisioning steps. The record stays on disk for diagnosis.

    Usage:
        launcher = ResumeLauncher(store, scheduler, log=log)
        resume_point = launcher.try_resume()
        if resume_point is not None:
            # Pass resume_point to Scheduler.run()
    """

    def __init__(
        self,
        store: CheckpointStore,
        scheduler: AutoResumeScheduler,
        *,
        log: ProvisionLog | None = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._log = log or ProvisionLog()

    def peek(self) -> Checkpoint | None:
        """Return the pending checkpoint without consuming it.

        Raises:
            ResumeError: If the record is unreadable
        """
        return self._store.read()

    def try_resume(self) -> ResumePoint | None:
        """Consume the pending checkpoint, if any.

        Returns:
            ResumePoint for a resumed run, or None for a fresh run

        Raises:
            ResumeError: Record corrupt, or trigger/record could not be removed
        """
        try:
            checkpoint = self._store.read()
        except ResumeError as e:
            self._log.critical(
                "Checkpoint record is corrupt; refusing to guess a resume point",
                error=str(e),
            )
            raise

        if checkpoint is None:
            self._log.debug("No pending checkpoint; starting fresh")
            return None

        log = self._log.bind(
            checkpoint=checkpoint.checkpoint_name,
            role=checkpoint.role,
            section=checkpoint.section,
            next_priority=checkpoint.next_priority,
        )

        try:
            self._scheduler.cancel()
        except OSError as e:
            # A trigger that survives would fire again after the record is
            # gone and start a second, fresh run.
            log.critical("Auto-resume trigger could not be removed", error=str(e))
            raise ResumeError(
                f"Cannot remove auto-resume trigger for checkpoint "
                f"'{checkpoint.checkpoint_name}': {e}"
            ) from e

        try:
            self._store.clear()
        except SQLAlchemyError as e:
            log.critical("Checkpoint record could not be consumed", error=str(e))
            raise ResumeError(
                f"Cannot delete checkpoint '{checkpoint.checkpoint_name}' after reading it: {e}"
            ) from e

        log.info("Resuming from checkpoint", created_at=checkpoint.created_at.isoformat())
        return ResumePoint.from_checkpoint(checkpoint)
