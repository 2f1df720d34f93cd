"""Checkpoint subsystem for reboot-safe resumption.

Provides:
- CheckpointStore: Durable single-record storage (SQLite)
- CheckpointManager: Write checkpoint, arm auto-resume, reboot
- ResumeLauncher: Detect and consume a pending checkpoint on start
"""

from stagehand.core.checkpoint.manager import CheckpointManager, build_resume_command
from stagehand.core.checkpoint.recovery import ResumeLauncher
from stagehand.core.checkpoint.store import CheckpointStore

__all__ = ["CheckpointManager", "CheckpointStore", "ResumeLauncher", "build_resume_command"]
