"""Per-user progression (XP, level, streak) domain model."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import constants


class ProgressionState(BaseModel):
    """Normalized progression of one user.

    xp is always held in [0, XP_PER_LEVEL); overflow has already been converted
    into levels.
    """

    model_config = ConfigDict(frozen=True)

    xp: int = Field(default=0, ge=0, lt=constants.XP_PER_LEVEL, description="XP inside the current level")
    level: int = Field(default=1, ge=1, description="Current level")
    streak: int = Field(default=0, ge=0, description="Consecutive days with at least one completion")
    last_completed: date | None = Field(default=None, description="Calendar date of the latest completion")


class DashboardStats(BaseModel):
    """Progression figures shown on the dashboard."""

    xp: int
    level: int
    streak: int
    last_completed: date | None
    xp_to_next_level: int
    level_progress: int
    pending_count: int
    completed_count: int
    completed_today: int
