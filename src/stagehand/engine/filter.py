"""Role filter: narrows the registered step set to one role."""

from collections.abc import Iterable

from stagehand.contracts import StepDefinition


def select_for_role(steps: Iterable[StepDefinition], role: str) -> list[StepDefinition]:
    """Keep steps whose tags are empty or contain role.

    Pure and order-preserving. Role comparison is exact (case-sensitive);
    an unknown role matches only untagged steps.
    """
    return [step for step in steps if step.applies_to(role)]
