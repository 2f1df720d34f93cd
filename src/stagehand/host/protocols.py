"""Host primitives the checkpoint subsystem depends on.

These protocols keep the checkpoint manager and resume launcher testable:
the Windows implementations touch the registry, Task Scheduler and
shutdown.exe, while RecordingHost only records calls.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AutoResumeScheduler(Protocol):
    """Arranges for the orchestrator to be re-invoked after reboot."""

    def schedule(self, command: list[str]) -> None:
        """Register the auto-resume trigger, replacing any existing one.

        Raises:
            OSError: If the host refuses the registration
        """
        ...

    def cancel(self) -> None:
        """Remove the auto-resume trigger (no-op when none exists)."""
        ...

    def is_scheduled(self) -> bool:
        ...


@runtime_checkable
class RebootTrigger(Protocol):
    """Requests an operating-system reboot."""

    def reboot(self, reason: str) -> None:
        """Ask the host to reboot.

        Returns once the request is accepted; the process is expected to be
        terminated by the host shortly after.

        Raises:
            OSError: If the host rejects the request
        """
        ...
