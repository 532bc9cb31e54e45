from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./freightdocs.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Freight Documents Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Regulatory Settings
    REGULATING_COUNTRY: str = "BR"  # Carriers from other countries must carry an idoneidade number
    LICENSE_EXPIRING_SOON_DAYS: int = 30  # Operational warning band
    LICENSE_ADVISORY_DAYS: int = 183  # ~6 months, display only
    ENFORCE_LICENSE_VALIDITY: bool = False  # If True, expired licenses no longer authorize routes

    # Issuance Settings
    MAX_BATCH_SIZE: int = 100  # Documents per request
    SEQUENCE_MAX_RETRIES: int = 5  # Attempts on bucket contention
    SEQUENCE_RETRY_BACKOFF_MS: int = 20  # Base backoff, grows linearly per attempt

    # Number formats (tokens: {ORIGIN}, {DESTINATION}, {IDONEIDADE}, {REGISTRATION}, {TYPE}, {NUMBER:05})
    CRT_NUMBER_FORMAT: str = "{ORIGIN}.{IDONEIDADE}.{NUMBER:05}"
    MIC_DTA_NUMBER_FORMAT: str = "{ORIGIN}-{DESTINATION}.{IDONEIDADE}.{TYPE}{NUMBER:05}"

    # Cache Settings
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    DASHBOARD_CACHE_TTL: int = 300  # 5 minutes for aggregate views

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('REGULATING_COUNTRY')
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
