from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database / runtime
    APP_VERSION: str = "0.1.0"
    DATABASE_URL: str | None = None
    ENVIRONMENT: str = "development"  # development | production | test
    ALLOWED_ORIGINS: list[str] = ["*"]

    # Token configuration
    JWT_SECRET: str = "dev-only-secret-change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"  # plain | json

    # Account protection
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 120

    # Resource limits
    INVITATION_TTL_DAYS: int = 7
    DEFAULT_PRODUCT_MAX_USERS: int = 10
    DEFAULT_FAMILY_MAX_MEMBERS: int = 20
    MAX_BULK_ENTRIES: int = 100
    MAX_TAGS_PER_ENTRY: int = 20
    MAX_SHARED_USERS: int = 100
    MAX_ENTRIES_PER_PRODUCT: int = 10000
    MAX_TEXT_LENGTH: int = 10000
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Background jobs
    ARCHIVE_SWEEP_INTERVAL_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
