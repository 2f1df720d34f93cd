"""Shared contracts for cross-boundary data types.

All dataclasses, enums and exceptions that cross subsystem boundaries
are defined here.

Import pattern:
    from stagehand.contracts import StepDefinition, StepResult, Checkpoint
"""

from stagehand.contracts.enums import RunState, RunStatus, TriggerKind
from stagehand.contracts.errors import (
    CheckpointPersistError,
    ExecutionError,
    RebootTriggerError,
    RegistrationError,
    ResumeError,
    StagehandError,
    VaultDecryptionError,
)
from stagehand.contracts.checkpoint import Checkpoint, ResumePoint
from stagehand.contracts.steps import (
    ExecutionPlan,
    StepAction,
    StepDefinition,
    StepResult,
)
from stagehand.contracts.cli import RunSummary

__all__ = [
    # checkpoint
    "Checkpoint",
    "ResumePoint",
    # enums
    "RunState",
    "RunStatus",
    "TriggerKind",
    # errors
    "CheckpointPersistError",
    "ExecutionError",
    "RebootTriggerError",
    "RegistrationError",
    "ResumeError",
    "StagehandError",
    "VaultDecryptionError",
    # steps
    "ExecutionPlan",
    "StepAction",
    "StepDefinition",
    "StepResult",
    # cli
    "RunSummary",
]
