"""Update models for database operations."""

from pydantic import BaseModel, field_validator

from src.domain.user import MAX_NAME_LENGTH


class ProfileUpdate(BaseModel):
    """Partial profile update. Only fields explicitly set are written."""

    display_name: str | None = None
    avatar_url: str | None = None
    dark_mode: bool | None = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str | None) -> str | None:
        """Display name is trimmed, non-empty and bounded."""
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Display name cannot be empty")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Display name too long (max {MAX_NAME_LENGTH} characters)")
        return v

    def changes(self) -> dict[str, object]:
        """Return only the fields the caller supplied.

        An explicit null clears display_name or avatar_url; dark_mode cannot be cleared.
        """
        changes = self.model_dump(exclude_unset=True)
        if changes.get("dark_mode", False) is None:
            del changes["dark_mode"]
        return changes
