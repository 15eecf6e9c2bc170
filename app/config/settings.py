import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is for local development only. Set DATABASE_URL to a PostgreSQL
    connection string in production.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info("Using DATABASE_URL from environment")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "activity_insights.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}. Set DATABASE_URL to use PostgreSQL in production.")
    return db_url


class Settings(BaseSettings):
    app_url: str = Field(
        default="http://localhost:8000",  # Default for local dev; MUST be set to the public URL in production
        validation_alias="APP_URL",
    )
    app_env: str = Field(default="development", validation_alias="APP_ENV")
    use_mock_data: bool = Field(default=False, validation_alias="USE_MOCK_DATA")
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="", validation_alias="LOG_FILE")

    session_cookie_name: str = Field(default="session", validation_alias="SESSION_COOKIE_NAME")
    session_ttl_days: int = Field(default=7, validation_alias="SESSION_TTL_DAYS")
    max_login_attempts: int = Field(default=5, validation_alias="MAX_LOGIN_ATTEMPTS")
    lockout_minutes: int = Field(default=15, validation_alias="LOCKOUT_MINUTES")
    login_rate_limit: int = Field(default=10, validation_alias="LOGIN_RATE_LIMIT")  # Attempts per window
    login_rate_window_seconds: int = Field(default=60, validation_alias="LOGIN_RATE_WINDOW_SECONDS")

    strava_client_id: str = Field(default="", validation_alias="STRAVA_CLIENT_ID")
    strava_client_secret: str = Field(default="", validation_alias="STRAVA_CLIENT_SECRET")
    strava_webhook_verify_token: str = Field(default="", validation_alias="STRAVA_WEBHOOK_VERIFY_TOKEN")

    google_photos_client_id: str = Field(default="", validation_alias="GOOGLE_PHOTOS_CLIENT_ID")
    google_photos_client_secret: str = Field(default="", validation_alias="GOOGLE_PHOTOS_CLIENT_SECRET")

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_organization_id: str = Field(default="", validation_alias="OPENAI_ORGANIZATION_ID")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")

    admin_user_ids: str = Field(default="", validation_alias="ADMIN_USER_IDS")  # Comma-separated list
    admin_emails: str = Field(default="", validation_alias="ADMIN_EMAILS")  # Comma-separated list

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("app_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize APP_URL so redirect URIs can be built by concatenation."""
        return value.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def admin_user_id_list(self) -> list[str]:
        return [uid.strip() for uid in self.admin_user_ids.split(",") if uid.strip()]

    @property
    def admin_email_list(self) -> list[str]:
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]


settings = Settings()
