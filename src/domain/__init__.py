"""Domain models and DTOs."""

from src.domain.create_models import TaskCreate, UserCreate
from src.domain.progression import DashboardStats, ProgressionState
from src.domain.task import Task, TaskCategory, TaskStatus
from src.domain.update_models import ProfileUpdate
from src.domain.user import Profile, Session, User


__all__ = [
    "DashboardStats",
    "Profile",
    "ProfileUpdate",
    "ProgressionState",
    "Session",
    "Task",
    "TaskCategory",
    "TaskCreate",
    "TaskStatus",
    "User",
    "UserCreate",
]
