"""CLI-related type contracts."""

from typing import TypedDict


class RunSummary(TypedDict, total=False):
    """Summary of one process lifetime of a provisioning run.

    Built by RunResult.summary() and echoed by `stagehand run --json`.

    Required fields (always present in practice):
        status: "completed" or "rebooting".
        role: Role the run executed for.
        resumed: Whether this process resumed from a checkpoint.
        executed: Names of steps executed by this process.

    Optional fields:
        skipped: Steps skipped because an earlier process completed them.
        best_effort_failures: Names of best-effort steps that failed.
        checkpoint: Name of the checkpoint written before reboot.
    """

    status: str
    role: str
    resumed: bool
    executed: list[str]
    skipped: int
    best_effort_failures: list[str]
    checkpoint: str | None
