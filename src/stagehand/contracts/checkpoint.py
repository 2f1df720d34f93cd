"""Checkpoint and resume contracts.

A Checkpoint on disk is the sole signal that a resume, rather than a
fresh run, is in progress.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Checkpoint:
    """Durable record of where a provisioning run paused for reboot."""

    checkpoint_name: str
    section: int
    next_priority: int
    role: str
    resume_target: str
    created_at: datetime

    @property
    def resume_position(self) -> tuple[int, int]:
        return (self.section, self.next_priority)


@dataclass(frozen=True)
class ResumePoint:
    """Information needed to continue a run after reboot.

    Steps whose (section, priority) is >= (section, next_priority)
    execute; everything before was completed by an earlier process.
    """

    role: str
    section: int
    next_priority: int
    checkpoint: Checkpoint

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "ResumePoint":
        return cls(
            role=checkpoint.role,
            section=checkpoint.section,
            next_priority=checkpoint.next_priority,
            checkpoint=checkpoint,
        )

    @property
    def position(self) -> tuple[int, int]:
        return (self.section, self.next_priority)

    def includes(self, section: int, priority: int) -> bool:
        """Whether a step at (section, priority) still runs after resume."""
        return (section, priority) >= self.position
