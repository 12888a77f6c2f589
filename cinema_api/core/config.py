# cinema_api/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Everything has a local-development default; production deployments
    override at least:
      - DATABASE_URL (Postgres connection string)
      - FRONTEND_BASE_URL / API_BASE_URL
      - SMTP_* (password reset and verification emails)
      - COOKIE_SECURE=true

    Rate limits, session lifetime and token lifetimes are exposed here so
    operators can tune them without code changes.
    """

    PROJECT_NAME: str = "Cinema API"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./cinema.db"
    DATABASE_ECHO: bool = False

    # Public URLs (used for email links and OAuth redirects)
    FRONTEND_BASE_URL: str = "http://localhost:3000"
    API_BASE_URL: str = "http://localhost:3001"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Sessions
    SESSION_TTL_DAYS: int = 30
    SESSION_COOKIE_NAME: str = "session"
    OAUTH_STATE_COOKIE_NAME: str = "oauth_state"
    COOKIE_SECURE: bool = False

    # Single-use tokens
    PASSWORD_RESET_TOKEN_TTL_MINUTES: int = 60
    EMAIL_VERIFICATION_TOKEN_TTL_HOURS: int = 24

    # Rate limits (per client IP)
    RATE_LIMIT_LOGIN_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_LOGIN_WINDOW_MINUTES: int = 15
    RATE_LIMIT_FORGOT_PASSWORD_MAX_ATTEMPTS: int = 3
    RATE_LIMIT_FORGOT_PASSWORD_WINDOW_MINUTES: int = 15

    # Accounts
    PASSWORD_MIN_LENGTH: int = 8
    DEFAULT_TIMEZONE: str = "Asia/Vientiane"

    # SMTP (see core/email_client.py)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "Lao Cinema"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
