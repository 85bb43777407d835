"""Configuration management for walkmate."""

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
        default="admin@test.local", description="PocketBase admin email for schema sync"
    )
    pocketbase_admin_password: str = Field(
        default="testpassword123", description="PocketBase admin password for schema sync"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Local warm-start cache
    local_cache_path: str = Field(
        default="./.walkmate/cache.db", description="SQLite file used as the device-local warm-start cache"
    )

    # Session restore
    session_check_timeout_seconds: float = Field(
        default=5.0, description="Upper bound on the startup session check before the loading state is cleared"
    )

    # Accept workflow
    use_batch_accept: bool = Field(
        default=True, description="Run accept-one/reject-rest/mark-matched as one transactional batch request"
    )

    # Identity
    require_verified_email: bool = Field(
        default=False, description="Refuse sign-in until the account e-mail has been confirmed"
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

    # Walk requests
    MIN_LEAD_TIME_HOURS: int = 1
    ALLOWED_DURATIONS_MINUTES: tuple[int, ...] = (30, 60, 90, 120)

    # Profiles
    DEFAULT_TRUST_SCORE: float = 36.5
    DEFAULT_REGION_CODE: str = "unset"
    MIN_NICKNAME_LENGTH: int = 2
    MAX_NICKNAME_LENGTH: int = 20
    MIN_PASSWORD_LENGTH: int = 8  # PocketBase auth collection minimum

    # Object storage
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5 MB

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 200

    # Requests allowed in one /api/batch call
    MAX_BATCH_REQUESTS: int = 1000

    # Warm-start cache keys
    CACHE_KEY_REQUESTS: str = "requests"
    CACHE_KEY_APPLICATIONS: str = "applications"
    CACHE_KEY_DOGS: str = "dogs"
    CACHE_KEY_SESSION_USER_ID: str = "session_user_id"
    CACHE_KEY_SESSION_TOKEN: str = "session_token"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
