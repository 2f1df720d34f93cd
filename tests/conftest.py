# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from stagehand.contracts import StepDefinition, StepResult
from stagehand.core.checkpoint import CheckpointStore
from stagehand.host.recording import RecordingHost

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Step helpers
# =============================================================================


class ActionLog:
    """Records which step actions ran, in order.

    Usage:
        calls = ActionLog()
        step = StepDefinition("Configure", 1, 10, calls.action("Configure"))
    """

    def __init__(self) -> None:
        self.names: list[str] = []

    def action(self, name: str, result: Any = None) -> Callable[[Any], Any]:
        def run(ctx: Any) -> Any:
            self.names.append(name)
            return result

        return run

    def raising(self, name: str, exc: BaseException) -> Callable[[Any], Any]:
        def run(ctx: Any) -> Any:
            self.names.append(name)
            raise exc

        return run

    def checkpointing(self, name: str, next_priority: int, section: int | None = None) -> Callable[[Any], Any]:
        """Action that requests a checkpoint and returns reboot()."""

        def run(ctx: Any) -> StepResult:
            self.names.append(name)
            ctx.request_checkpoint(name, next_priority=next_priority, section=section)
            return StepResult.reboot()

        return run


def _make_step(
    name: str,
    section: int,
    priority: int,
    action: Callable[[Any], Any] | None = None,
    *,
    tags: set[str] | frozenset[str] = frozenset(),
    best_effort: bool = False,
) -> StepDefinition:
    return StepDefinition(
        name=name,
        section=section,
        priority=priority,
        action=action or (lambda ctx: None),
        tags=frozenset(tags),
        best_effort=best_effort,
    )


@pytest.fixture
def calls() -> ActionLog:
    return ActionLog()


@pytest.fixture
def step_factory() -> Callable[..., StepDefinition]:
    """make_step(name, section, priority, action=None, *, tags=(), best_effort=False)."""
    return _make_step


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[CheckpointStore]:
    with CheckpointStore.from_path(tmp_path / "checkpoint.db") as s:
        yield s


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by CLI tests."""
    yield
    import logging

    import structlog

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_stagehand", False):
            root.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()
