"""Step declarations, step outcomes and execution plans.

These types answer: "What work is there, in what order, and how did it go?"

IMPORTANT:
- StepDefinition is frozen; the registry stamps `module` and `sequence`
  onto a copy at registration time.
- StepResult.status uses Literal["success", "failure", "reboot"], NOT an enum.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Union

if TYPE_CHECKING:
    from stagehand.plugins.context import ExecutionContext


@dataclass(frozen=True)
class StepResult:
    """Result of a step action.

    Use the factory methods to create instances.
    """

    status: Literal["success", "failure", "reboot"]
    reason: str | None = None

    @classmethod
    def success(cls) -> StepResult:
        return cls(status="success")

    @classmethod
    def failure(cls, reason: str) -> StepResult:
        return cls(status="failure", reason=reason)

    @classmethod
    def reboot(cls) -> StepResult:
        """Signal that the action requested a checkpoint and the run must halt."""
        return cls(status="reboot")

    @property
    def ok(self) -> bool:
        return self.status != "failure"


# Actions may also return a bare bool or None (None means success).
ActionReturn = Union[StepResult, bool, None]
StepAction = Callable[["ExecutionContext"], ActionReturn]


@dataclass(frozen=True)
class StepDefinition:
    """A unit of provisioning work.

    Attributes:
        name: Human-readable name, not required to be unique
        section: Coarse phase grouping
        priority: Fine-grained order within a section
        action: Deferred work, called with the ExecutionContext
        tags: Roles the step applies to; empty means every role
        best_effort: Log failure at WARNING and continue instead of aborting
        module: Name of the registering module (set by the registry)
        sequence: Declaration index within the module (set by the registry)
    """

    name: str
    section: int
    priority: int
    action: StepAction
    tags: frozenset[str] = field(default_factory=frozenset)
    best_effort: bool = False
    module: str = field(default="", compare=False)
    sequence: int = field(default=0, compare=False)

    @property
    def position(self) -> tuple[int, int]:
        """(section, priority) - the key checkpoints resume against."""
        return (self.section, self.priority)

    @property
    def plan_key(self) -> tuple[int, int, str, int]:
        return (self.section, self.priority, self.module, self.sequence)

    def describe(self) -> str:
        return f"{self.name} [{self.section}/{self.priority}]"

    def applies_to(self, role: str) -> bool:
        return not self.tags or role in self.tags


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered steps for one process lifetime.

    Rebuilt on every process start (fresh or resumed); never persisted.
    """

    steps: tuple[StepDefinition, ...]

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def names(self) -> list[str]:
        return [step.name for step in self.steps]

    def remaining_after(self, section: int, next_priority: int) -> list[StepDefinition]:
        """Steps a resume at (section, next_priority) would still execute."""
        return [s for s in self.steps if s.position >= (section, next_priority)]
