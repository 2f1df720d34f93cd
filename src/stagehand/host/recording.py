"""Recording host: stands in for the OS scheduler and reboot primitive.

Used by `stagehand run --simulate` and by the test suite. Calls are
recorded instead of touching the registry, Task Scheduler or shutdown.exe.
The fail_* flags inject host failures.
"""

from dataclasses import dataclass, field

from stagehand.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RecordingHost:
    """Implements both AutoResumeScheduler and RebootTrigger.

    Attributes:
        scheduled: Command of the live trigger, or None
        schedule_calls: Every command passed to schedule()
        cancel_calls: Number of cancel() calls
        reboots: Reason of every accepted reboot request
    """

    fail_schedule: bool = False
    fail_cancel: bool = False
    fail_reboot: bool = False
    scheduled: list[str] | None = None
    schedule_calls: list[list[str]] = field(default_factory=list)
    cancel_calls: int = 0
    reboots: list[str] = field(default_factory=list)

    def schedule(self, command: list[str]) -> None:
        if self.fail_schedule:
            raise OSError("simulated: trigger registration refused")
        self.schedule_calls.append(list(command))
        self.scheduled = list(command)
        logger.info("Simulated auto-resume trigger registered", command=command)

    def cancel(self) -> None:
        if self.fail_cancel:
            raise OSError("simulated: trigger removal refused")
        self.cancel_calls += 1
        self.scheduled = None

    def is_scheduled(self) -> bool:
        return self.scheduled is not None

    def reboot(self, reason: str) -> None:
        if self.fail_reboot:
            raise OSError("simulated: reboot refused")
        self.reboots.append(reason)
        logger.info("Simulated reboot requested", reason=reason)
