"""
Application settings.

Everything configurable is read from the environment (or .env) once, into the
module-level `settings`. Nothing else in the codebase reads os.environ for
configuration.
"""
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # --- Database ---
    # DATABASE_URL wins when set (sqlite:///./runclub.db works for local runs).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="running_club")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)

    # --- Strava ---
    STRAVA_API_BASE: str = Field(default="https://www.strava.com/api/v3")
    STRAVA_PAGE_SIZE: int = Field(default=200, ge=1, le=200)
    # Pause between full pages so a long backfill stays inside the 15-minute request budget.
    STRAVA_PAGE_PAUSE_S: float = Field(default=1.0, ge=0)
    EXTERNAL_API_TIMEOUT: int = Field(default=30)
    EXTERNAL_API_RETRY_ATTEMPTS: int = Field(default=3, ge=1)

    # Look-back windows in days: /v1/sync uses the incremental one, /v1/sync/full the backfill.
    SYNC_INCREMENTAL_DAYS: int = Field(default=365, ge=1)
    SYNC_BACKFILL_DAYS: int = Field(default=5 * 365, ge=1)

    # Fernet key for stored Strava tokens
    TOKEN_ENCRYPTION_KEY: Optional[str] = Field(default=None)

    # --- Club ---
    # Unset disables every admin-only endpoint.
    ADMIN_PASSWORD: Optional[str] = Field(default=None)
    # Offset used for all calendar-day boundaries (race days, challenge windows, gift days).
    CLUB_UTC_OFFSET_HOURS: int = Field(default=9, ge=-12, le=14)
    # Each member's daily gift allowance is drawn uniformly from 0..GIFT_QUOTA_CEILING.
    GIFT_QUOTA_CEILING: int = Field(default=3, ge=0)

    # --- HTTP server ---
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)
    # Comma-separated origins; DEBUG allows any.
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # --- Logging ---
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # --- Celery ---
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    @field_validator("LOG_FORMAT")
    @classmethod
    def _known_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        if self.DEBUG:
            return ["*"]
        if self.CORS_ORIGINS:
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return ["http://localhost:3000", "http://127.0.0.1:3000"]


settings = Settings()
