"""Configuration management for fantastic-task."""

from pathlib import Path

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

    # PocketBase Configuration
    pocketbase_url: str = Field(default="http://127.0.0.1:8090", description="PocketBase server URL")
    pocketbase_admin_email: str = Field(
        default="admin@test.local", description="PocketBase admin email for schema sync and service access"
    )
    pocketbase_admin_password: str = Field(
        default="testpassword123", description="PocketBase admin password for schema sync and service access"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Points rules
    bonus_minutes_per_point: int = Field(
        default=5, gt=0, description="Overtime minutes needed to earn one bonus point"
    )
    default_require_child_verification: bool = Field(
        default=True,
        description="Verification policy used when a family record does not set require_child_verification",
    )

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

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Recurrence
    DAYS_PER_WEEK: int = 7

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Default pagination limit for list queries
    LEDGER_PAGE_SIZE: int = 500  # Page size when walking a member's whole ledger

    # Statistics
    DEFAULT_STATS_PERIOD_DAYS: int = 7

    # HTTP
    MEMBER_HEADER: str = "X-Member-Id"

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
