"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "LC Compliance Engine API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Server ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'lc_compliance.db'}"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]

    # --- Field Matching ---
    NUMERIC_TOLERANCE_PCT: float = 0.5       # percent, e.g. 0.5 => +/-0.5%
    TEXT_OVERLAP_THRESHOLD: float = 0.5      # share of LC tokens found in document text
    PRESENTATION_PERIOD_DAYS: int = 21       # UCP 600 Art. 14(c)

    # --- Case Lifecycle ---
    MAX_FREE_RECHECKS: int = 3

    # --- Audit Chain ---
    AUDIT_APPEND_MAX_ATTEMPTS: int = 5

    # --- Public Verification ---
    PUBLIC_VERIFY_RATE_LIMIT: int = 30
    PUBLIC_VERIFY_RATE_WINDOW: int = 60      # seconds
    PUBLIC_VERIFY_RATE_MAX_CLIENTS: int = 10_000

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
