"""Host integration: auto-resume trigger, reboot and command execution."""

from stagehand.contracts import TriggerKind
from stagehand.core.config import StagehandSettings
from stagehand.host.protocols import AutoResumeScheduler, RebootTrigger
from stagehand.host.recording import RecordingHost


def build_host(
    settings: StagehandSettings,
    *,
    simulate: bool = False,
) -> tuple[AutoResumeScheduler, RebootTrigger]:
    """Create the trigger scheduler and reboot primitive for these settings.

    Args:
        settings: Validated settings
        simulate: Force the recording host regardless of settings
    """
    if simulate or settings.host.simulate:
        recorder = RecordingHost()
        return recorder, recorder

    from stagehand.host.windows import (
        RunOnceScheduler,
        ScheduledTaskScheduler,
        ShutdownReboot,
    )

    scheduler: AutoResumeScheduler
    if settings.checkpoint.trigger == TriggerKind.SCHEDULED_TASK:
        scheduler = ScheduledTaskScheduler(settings.checkpoint.task_name)
    else:
        scheduler = RunOnceScheduler(settings.checkpoint.task_name)
    return scheduler, ShutdownReboot(settings.host.reboot_delay_seconds)


__all__ = ["AutoResumeScheduler", "RebootTrigger", "RecordingHost", "build_host"]
