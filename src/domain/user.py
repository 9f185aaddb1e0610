"""User, session and profile domain models."""

from pydantic import BaseModel, Field


# Constants for validation
MAX_NAME_LENGTH = 50


class User(BaseModel):
    """User data transfer object (never carries the password hash)."""

    id: str = Field(..., description="Unique user ID from database")
    email: str = Field(..., description="Sign-in email address")
    created: str = Field(..., description="Creation timestamp (ISO format)")


class Session(BaseModel):
    """Signed session issued on sign-in."""

    token: str = Field(..., description="Signed, time-limited session token")
    user_id: str = Field(..., description="User the session is bound to")
    expires_in: int = Field(..., description="Seconds until the token stops validating")


class Profile(BaseModel):
    """Mutable profile record of a user.

    A user without a stored profile row gets exactly these defaults.
    """

    user_id: str = Field(..., description="Owner user ID")
    display_name: str | None = Field(default=None, description="Display name; clients fall back to the email prefix")
    avatar_url: str | None = Field(default=None, description="Public address of the avatar object")
    dark_mode: bool = Field(default=False, description="Theme preference")
