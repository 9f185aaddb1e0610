"""Task (quest) domain models and enums."""

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, model_validator


class TaskCategory(StrEnum):
    """Closed set of quest categories."""

    WORK = "Work"
    DSA = "DSA"
    PERSONAL = "Personal"


class TaskStatus(StrEnum):
    """Task lifecycle state. Pending -> Completed happens exactly once."""

    PENDING = "pending"
    COMPLETED = "completed"


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    user_id: str = Field(..., description="Owner user ID")
    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Optional task description")
    category: TaskCategory = Field(..., description="Work, DSA or Personal")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    xp_reward: int = Field(..., gt=0, description="XP granted on completion")
    created: datetime = Field(..., description="Creation timestamp")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp")

    @model_validator(mode="after")
    def check_completed_at_matches_status(self) -> Self:
        """completed_at is set if and only if the task is completed."""
        if (self.status == TaskStatus.COMPLETED) != (self.completed_at is not None):
            msg = f"completed_at must be set exactly when status is completed (status={self.status})"
            raise ValueError(msg)
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED
