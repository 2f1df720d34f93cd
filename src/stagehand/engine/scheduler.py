# src/stagehand/engine/scheduler.py
"""Priority scheduler: orders steps and executes them one at a time.

Coordinates:
- Plan construction (stable sort by section, priority, module, sequence)
- Skipping of steps completed before a checkpoint reboot
- Section start/stop markers
- Fail-fast vs. best-effort failure handling
- Halting the run when a step requests a checkpoint
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from stagehand.contracts import (
    CheckpointPersistError,
    ExecutionError,
    ExecutionPlan,
    RebootTriggerError,
    ResumePoint,
    RunStatus,
    StepDefinition,
    StepResult,
)
from stagehand.core.logging import ProvisionLog
from stagehand.plugins.context import ExecutionContext

# Raised from inside an action, these always end the run, best-effort or not
FATAL_ERRORS = (CheckpointPersistError, RebootTriggerError)


def build_plan(steps: Iterable[StepDefinition]) -> ExecutionPlan:
    """Order steps by (section, priority, module, sequence).

    module and sequence are assigned by the StepRegistry, so ties keep
    declaration order within a module and module-name order across modules.
    """
    return ExecutionPlan(steps=tuple(sorted(steps, key=lambda s: s.plan_key)))


@dataclass
class ScheduleOutcome:
    """What one Scheduler.run() did."""

    status: RunStatus
    executed: list[str] = field(default_factory=list)
    skipped: int = 0
    best_effort_failures: list[str] = field(default_factory=list)
    checkpoint_name: str | None = None


def normalize_result(returned: object) -> StepResult:
    """Map an action's return value onto a StepResult.

    None and True mean success, False means failure.
    """
    if isinstance(returned, StepResult):
        return returned
    if returned is None or returned is True:
        return StepResult.success()
    if returned is False:
        return StepResult.failure("action returned False")
    return StepResult.failure(f"action returned unsupported value {returned!r}")


class Scheduler:
    """Executes an ExecutionPlan strictly sequentially.

    Usage:
        scheduler = Scheduler()
        outcome = scheduler.run(plan, ctx, resume_after=resume_point)
        if outcome.status == RunStatus.REBOOTING:
            # The process should exit; the machine is restarting
    """

    def run(
        self,
        plan: ExecutionPlan,
        ctx: ExecutionContext,
        resume_after: ResumePoint | None = None,
    ) -> ScheduleOutcome:
        """Run the plan.

        Args:
            plan: Ordered steps
            ctx: Execution context (mutated: current_step, log)
            resume_after: Resume point; steps before it are skipped

        Returns:
            ScheduleOutcome with COMPLETED or REBOOTING

        Raises:
            ExecutionError: A fail-fast step failed
            CheckpointPersistError: Checkpoint could not be persisted
            RebootTriggerError: Host rejected the reboot
        """
        base_log = ctx.log
        outcome = ScheduleOutcome(status=RunStatus.COMPLETED)
        current_section: int | None = None

        try:
            for step in plan:
                if resume_after is not None and not resume_after.includes(step.section, step.priority):
                    outcome.skipped += 1
                    continue

                if step.section != current_section:
                    if current_section is not None:
                        base_log.section_finished(current_section)
                    current_section = step.section
                    base_log.section_started(current_section)

                ctx.current_step = step
                ctx.log = base_log.bind(
                    step=step.name,
                    section=step.section,
                    priority=step.priority,
                    module=step.module,
                )
                result = self._execute(step, ctx)
                outcome.executed.append(step.name)

                if ctx.reboot_pending or self._reboot_armed(ctx):
                    if not result.ok:
                        ctx.log.error(
                            "Step failed after requesting a checkpoint; rebooting anyway",
                            reason=result.reason,
                        )
                    outcome.status = RunStatus.REBOOTING
                    outcome.checkpoint_name = ctx.checkpoint_name or ctx.checkpoints.checkpoint_name
                    break

                if result.status == "reboot":
                    self._require_checkpoint_on_record(step, ctx, outcome)
                    break

                if result.ok:
                    ctx.log.success("Step completed")
                    continue

                if step.best_effort:
                    ctx.log.warning("Best-effort step failed; continuing", reason=result.reason)
                    outcome.best_effort_failures.append(step.name)
                    continue

                ctx.log.critical("Step failed; aborting run", reason=result.reason, role=ctx.role)
                raise ExecutionError(
                    f"Step {step.describe()} failed for role {ctx.role}: {result.reason}",
                    step_name=step.name,
                    section=step.section,
                    priority=step.priority,
                    role=ctx.role,
                )
        except BaseException:
            if current_section is not None:
                base_log.section_finished(current_section, "failed")
            raise
        finally:
            ctx.current_step = None
            ctx.log = base_log

        if current_section is not None:
            halted = outcome.status == RunStatus.REBOOTING
            base_log.section_finished(current_section, "halted" if halted else "completed")
        return outcome

    def _execute(self, step: StepDefinition, ctx: ExecutionContext) -> StepResult:
        ctx.log.info("Step started")
        try:
            returned = step.action(ctx)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            ctx.log.exception("Step raised", error=str(e))
            return StepResult.failure(f"{type(e).__name__}: {e}")
        return normalize_result(returned)

    @staticmethod
    def _reboot_armed(ctx: ExecutionContext) -> bool:
        """Whether the checkpoint manager handed this process over to a reboot.

        Covers actions that call CheckpointManager.request_checkpoint directly
        and return its True instead of StepResult.reboot().
        """
        return ctx.checkpoints is not None and ctx.checkpoints.rebooting

    def _require_checkpoint_on_record(
        self,
        step: StepDefinition,
        ctx: ExecutionContext,
        outcome: ScheduleOutcome,
    ) -> None:
        """Accept a reboot() result only when a checkpoint was actually written.

        Actions may call the CheckpointManager directly instead of going
        through ctx.request_checkpoint; the store is the authority.
        """
        pending = ctx.checkpoints.pending() if ctx.checkpoints is not None else None
        if pending is None:
            ctx.log.critical("Step returned reboot without a checkpoint on record", role=ctx.role)
            raise ExecutionError(
                f"Step {step.describe()} returned reboot() but no checkpoint is on record; "
                f"use ctx.request_checkpoint() before returning reboot()",
                step_name=step.name,
                section=step.section,
                priority=step.priority,
                role=ctx.role,
            )
        outcome.status = RunStatus.REBOOTING
        outcome.checkpoint_name = pending.checkpoint_name
