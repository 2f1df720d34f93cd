"""Engine: role filter, priority scheduler and orchestrator."""

from stagehand.engine.filter import select_for_role
from stagehand.engine.orchestrator import Orchestrator, RunResult
from stagehand.engine.scheduler import ScheduleOutcome, Scheduler, build_plan

__all__ = [
    "Orchestrator",
    "RunResult",
    "ScheduleOutcome",
    "Scheduler",
    "build_plan",
    "select_for_role",
]
