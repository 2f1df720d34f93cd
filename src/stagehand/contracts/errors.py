"""Error taxonomy for provisioning runs.

Every fatal category aborts the current process with a nonzero exit and a
CRITICAL log entry. Only ExecutionError raised for a best-effort step is
recovered by the scheduler.
"""


class StagehandError(Exception):
    """Base class for all provisioning errors."""


class RegistrationError(StagehandError, ValueError):
    """A step declaration or provisioning module is malformed."""


class ExecutionError(StagehandError):
    """A step action reported failure or raised.

    Attributes:
        step_name: Name of the failing step
        section: Section of the failing step
        priority: Priority of the failing step
        role: Role the run executes for
    """

    def __init__(
        self,
        message: str,
        *,
        step_name: str | None = None,
        section: int | None = None,
        priority: int | None = None,
        role: str | None = None,
    ) -> None:
        super().__init__(message)
        self.step_name = step_name
        self.section = section
        self.priority = priority
        self.role = role


class CheckpointPersistError(StagehandError):
    """The checkpoint record or the auto-resume trigger could not be written.

    The reboot is suppressed when this is raised.
    """


class RebootTriggerError(StagehandError):
    """The host rejected the reboot request.

    The checkpoint and trigger are already in place, so a manual reboot
    resumes the run correctly.
    """


class ResumeError(StagehandError):
    """A checkpoint record exists but cannot be read.

    The run must stop rather than guess a resume point.
    """


class VaultDecryptionError(StagehandError):
    """A vault token could not be decrypted with the configured key."""
