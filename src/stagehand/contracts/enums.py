"""Status codes and kinds used across subsystem boundaries."""

from enum import Enum


class RunStatus(str, Enum):
    """Final status of one process lifetime of a provisioning run.

    Uses (str, Enum) because it is echoed by the CLI and written to logs.
    """

    COMPLETED = "completed"
    REBOOTING = "rebooting"
    FAILED = "failed"


class RunState(str, Enum):
    """Lifecycle state of the orchestrator within one process.

    REBOOTING is terminal for the current process; the next process
    starts again at IDLE and moves to RESUMED if a checkpoint is found.
    """

    IDLE = "idle"
    LOADING = "loading"
    FRESH = "fresh"
    RESUMED = "resumed"
    RUNNING = "running"
    CHECKPOINT_PENDING = "checkpoint_pending"
    REBOOTING = "rebooting"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerKind(str, Enum):
    """Host primitive used to re-invoke the orchestrator after reboot.

    RUN_ONCE: HKLM RunOnce value, fires at next interactive logon and is
        removed by Windows when it fires.
    SCHEDULED_TASK: Task Scheduler task, fires at next boot even without
        a logon; removed by the resume launcher.
    """

    RUN_ONCE = "run_once"
    SCHEDULED_TASK = "scheduled_task"
