"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env
file as a fallback. Nothing here is a secret by default: bearer tokens are
opaque random values fingerprinted with SHA-256, so no signing key is needed.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from impart.config import settings
    print(settings.AUTH_TOKEN_TTL_HOURS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Impart API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Impart API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local work; point at postgresql+asyncpg://... in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./impart.db"
    # Upper bound for any single persistence call
    DB_TIMEOUT_SECONDS: float = 3.0

    # --- Tokens ---
    AUTH_TOKEN_TTL_HOURS: int = 24
    ACTIVATION_TOKEN_TTL_HOURS: int = 72

    # --- Roles ---
    # Role given to self-registered users
    DEFAULT_ROLE_NAME: str = "Teacher"

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]
    # e.g. r"http://localhost:\d+" to trust every local dev port
    ALLOWED_ORIGIN_REGEX: str | None = None

    # --- SMTP (activation emails) ---
    # Leave SMTP_HOST empty to skip delivery, e.g. in development
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_SENDER: str = "Impart <no-reply@impart.local>"

    # --- Rate limiter ---
    LIMITER_ENABLED: bool = True
    LIMITER_RPS: float = 2.0
    LIMITER_BURST: int = 5
    # Clients unseen for this long are evicted by the sweep
    LIMITER_IDLE_SECONDS: float = 180.0
    LIMITER_SWEEP_SECONDS: float = 60.0


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
