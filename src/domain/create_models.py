"""Pydantic models for creating records in database."""

import re

from pydantic import BaseModel, Field, field_validator

from src.core.config import constants
from src.domain.task import TaskCategory


MIN_PASSWORD_LENGTH = 6


class UserCreate(BaseModel):
    """Pydantic model for signing up a user."""

    email: str = Field(..., description="Sign-in email address")
    password: str = Field(..., description="Plain-text password, hashed before storage")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate email shape and normalize case."""
        v = v.strip().lower()
        if not re.match(r"^[^@\s\"']+@[^@\s\"']+\.[^@\s\"']+$", v):
            msg = "Email address is not valid"
            raise ValueError(msg)
        return v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password is long enough."""
        if len(v) < MIN_PASSWORD_LENGTH:
            msg = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            raise ValueError(msg)
        return v


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., description="Quest title")
    description: str | None = Field(default=None, description="Optional description")
    category: TaskCategory = Field(default=TaskCategory.WORK, description="Quest category")
    xp_reward: int = Field(default=constants.DEFAULT_XP_REWARD, description="XP granted on completion")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title is trimmed and must not be empty."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        if len(v) > constants.MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {constants.MAX_TITLE_LENGTH} characters)")
        return v

    @field_validator("description")
    @classmethod
    def normalize_description(cls, v: str | None) -> str | None:
        """Blank descriptions are stored as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("xp_reward")
    @classmethod
    def validate_reward_positive(cls, v: int) -> int:
        """Reward must be a positive integer; the tier list is a client convenience."""
        if v <= 0:
            raise ValueError("XP reward must be a positive integer")
        if v > constants.MAX_XP_REWARD:
            raise ValueError(f"XP reward must be at most {constants.MAX_XP_REWARD}")
        return v
