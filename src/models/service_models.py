"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel, computed_field

from src.domain.progression import ProgressionState
from src.domain.task import Task


class CompletionResult(BaseModel):
    """Outcome of completing a task."""

    task: Task
    progression: ProgressionState
    xp_awarded: int
    levels_gained: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0
