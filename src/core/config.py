"""Configuration management for questlog."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    sqlite_db_path: str = Field(default="./data/questlog.db", description="SQLite database file path")

    # Session Configuration
    secret_key: str | None = Field(default=None, description="Secret used to sign session tokens")
    session_max_age_seconds: int = Field(
        default=7 * 24 * 3600, description="Lifetime of an issued session token (in seconds)"
    )

    # Avatar Storage Configuration
    avatar_storage_dir: str = Field(default="./data/avatars", description="Directory where avatar objects are stored")
    public_base_url: str = Field(
        default="http://127.0.0.1:8000", description="Public base URL used to build avatar addresses"
    )
    max_avatar_bytes: int = Field(default=2 * 1024 * 1024, description="Maximum accepted avatar size (in bytes)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO", description="Minimum level of forwarded log records")

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production."""
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Progression
    XP_PER_LEVEL: int = 100
    XP_REWARD_TIERS: tuple[int, ...] = (5, 10, 20, 50, 100)
    DEFAULT_XP_REWARD: int = 10
    MAX_XP_REWARD: int = 1_000_000

    # Tasks
    MAX_TITLE_LENGTH: int = 200

    # Avatars
    AVATAR_EXTENSIONS: frozenset[str] = frozenset({"png", "jpg", "jpeg", "gif", "webp"})
    AVATAR_URL_PREFIX: str = "/avatars"

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Page size when walking an owner's task list


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
