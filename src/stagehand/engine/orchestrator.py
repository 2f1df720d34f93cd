# src/stagehand/engine/orchestrator.py
"""Orchestrator: full provisioning run lifecycle.

Coordinates:
- Step collection from the registry
- Resume detection (consume a pending checkpoint)
- Role resolution and filtering
- Plan construction and sequential execution
- Hand-over to the reboot when a step checkpoints
"""

from dataclasses import dataclass, field

from stagehand.contracts import (
    ExecutionPlan,
    RegistrationError,
    ResumePoint,
    RunState,
    RunStatus,
    RunSummary,
    StagehandError,
)
from stagehand.core.checkpoint import CheckpointManager, CheckpointStore, ResumeLauncher
from stagehand.core.logging import ProvisionLog
from stagehand.core.security.vault import Vault
from stagehand.engine.filter import select_for_role
from stagehand.engine.scheduler import Scheduler, build_plan
from stagehand.host.protocols import AutoResumeScheduler, RebootTrigger
from stagehand.plugins.context import ExecutionContext
from stagehand.plugins.manager import StepRegistry

# Legal lifecycle transitions within one process
_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.LOADING}),
    RunState.LOADING: frozenset({RunState.FRESH, RunState.RESUMED, RunState.COMPLETED, RunState.FAILED}),
    RunState.FRESH: frozenset({RunState.RUNNING, RunState.FAILED}),
    RunState.RESUMED: frozenset({RunState.RUNNING, RunState.FAILED}),
    RunState.RUNNING: frozenset({RunState.CHECKPOINT_PENDING, RunState.COMPLETED, RunState.FAILED}),
    RunState.CHECKPOINT_PENDING: frozenset({RunState.REBOOTING, RunState.FAILED}),
    RunState.REBOOTING: frozenset(),
    RunState.COMPLETED: frozenset(),
    RunState.FAILED: frozenset(),
}


@dataclass
class RunResult:
    """Result of one process lifetime of a provisioning run."""

    status: RunStatus
    role: str
    resumed: bool
    executed: list[str] = field(default_factory=list)
    skipped: int = 0
    best_effort_failures: list[str] = field(default_factory=list)
    checkpoint_name: str | None = None

    def summary(self) -> RunSummary:
        return RunSummary(
            status=self.status.value,
            role=self.role,
            resumed=self.resumed,
            executed=list(self.executed),
            skipped=self.skipped,
            best_effort_failures=list(self.best_effort_failures),
            checkpoint=self.checkpoint_name,
        )


class Orchestrator:
    """Entry surface for a provisioning run.

    Resumes automatically when a checkpoint is pending, otherwise starts
    fresh. Each instance drives one process lifetime; after REBOOTING the
    next process starts again at IDLE.

    Usage:
        orchestrator = Orchestrator(registry, store, trigger, rebooter,
                                    resume_target=sys.argv[0])
        result = orchestrator.run(role="MGR")
    """

    def __init__(
        self,
        registry: StepRegistry,
        store: CheckpointStore,
        trigger: AutoResumeScheduler,
        rebooter: RebootTrigger,
        *,
        resume_target: str,
        default_role: str | None = None,
        vault: Vault | None = None,
        log: ProvisionLog | None = None,
        resume_args: tuple[str, ...] = (),
    ) -> None:
        self._registry = registry
        self._store = store
        self._trigger = trigger
        self._rebooter = rebooter
        self._resume_target = resume_target
        self._default_role = default_role
        self._vault = vault
        self._log = log or ProvisionLog()
        self._resume_args = resume_args
        self._scheduler = Scheduler()
        self.state = RunState.IDLE

    def _transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal run state transition {self.state.value} -> {new_state.value}")
        self._log.debug("Run state changed", previous=self.state.value, state=new_state.value)
        self.state = new_state

    def run(self, role: str | None = None, *, resume_only: bool = False) -> RunResult:
        """Execute (or continue) the provisioning run.

        Args:
            role: Requested role; a pending checkpoint's role takes precedence
            resume_only: Do nothing unless a checkpoint is pending (set by
                the auto-resume trigger)

        Returns:
            RunResult with COMPLETED or REBOOTING

        Raises:
            StagehandError: Any fatal error; state is FAILED
        """
        self._transition(RunState.LOADING)
        try:
            # Collect steps before consuming a checkpoint: a registration
            # error must not lose the resume point.
            steps = self._registry.steps()
            resume = ResumeLauncher(self._store, self._trigger, log=self._log).try_resume()
        except RegistrationError as e:
            self._log.critical("Step registration failed", error=str(e))
            self._transition(RunState.FAILED)
            raise
        except BaseException:
            self._transition(RunState.FAILED)
            raise

        if resume is None and resume_only:
            self._log.warning("Auto-resume invoked but no checkpoint is pending; nothing to do")
            self._transition(RunState.COMPLETED)
            return RunResult(status=RunStatus.COMPLETED, role=role or "", resumed=False)

        try:
            run_role = self._resolve_role(role, resume)
        except StagehandError:
            self._transition(RunState.FAILED)
            raise
        self._transition(RunState.FRESH if resume is None else RunState.RESUMED)

        log = self._log.bind(role=run_role)
        plan = build_plan(select_for_role(steps, run_role))
        log.info(
            "Provisioning run starting",
            resumed=resume is not None,
            planned=len(plan),
            registered=len(steps),
        )
        return self._execute(plan, run_role, resume, log)

    def _resolve_role(self, requested: str | None, resume: ResumePoint | None) -> str:
        if resume is not None:
            if requested is not None and requested != resume.role:
                self._log.warning(
                    "Requested role differs from checkpoint role; using checkpoint role",
                    requested_role=requested,
                    checkpoint_role=resume.role,
                )
            return resume.role
        chosen = requested or self._default_role
        if not chosen:
            self._log.critical("No role given and none configured")
            raise StagehandError("No role given: pass --role or set 'role' in settings")
        return chosen

    def _execute(
        self,
        plan: ExecutionPlan,
        role: str,
        resume: ResumePoint | None,
        log: ProvisionLog,
    ) -> RunResult:
        self._transition(RunState.RUNNING)
        manager = CheckpointManager(
            self._store,
            self._trigger,
            self._rebooter,
            log=log,
            resume_args=self._resume_args,
        )
        ctx = ExecutionContext(
            role=role,
            resume_target=self._resume_target,
            log=log,
            checkpoints=manager,
            vault=self._vault,
        )

        try:
            outcome = self._scheduler.run(plan, ctx, resume_after=resume)
        except BaseException:
            self._transition(RunState.FAILED)
            raise

        result = RunResult(
            status=outcome.status,
            role=role,
            resumed=resume is not None,
            executed=outcome.executed,
            skipped=outcome.skipped,
            best_effort_failures=outcome.best_effort_failures,
            checkpoint_name=outcome.checkpoint_name,
        )
        if outcome.status == RunStatus.REBOOTING:
            self._transition(RunState.CHECKPOINT_PENDING)
            self._transition(RunState.REBOOTING)
            log.info("Run paused for reboot", checkpoint=outcome.checkpoint_name)
        else:
            self._transition(RunState.COMPLETED)
            log.success(
                "Provisioning run completed",
                executed=len(outcome.executed),
                best_effort_failures=outcome.best_effort_failures,
            )
        return result
