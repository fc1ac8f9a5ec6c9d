"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Slot Symbol Isolation Pipeline"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD

    # ==========================================================================
    # Batch Settings
    # ==========================================================================
    # None -> os.cpu_count()
    ISOLATION_MAX_WORKERS: Optional[int] = None
    # Wall-clock budget per symbol; blur/cleanup passes dominate
    ISOLATION_TIMEOUT_SECONDS: float = 10.0

    # ==========================================================================
    # Source Hints (filename / URL keywords)
    # ==========================================================================
    ISOLATION_FORCE_HINTS: str = "white,background"
    ISOLATION_SKIP_HINTS: str = "placeholder,placehold.co,processed,transparent,no-bg"

    # ==========================================================================
    # Pipeline Defaults
    # ==========================================================================
    ISOLATION_SHARPEN_ENABLED: bool = True

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def force_hints(self) -> List[str]:
        return _split_keywords(self.ISOLATION_FORCE_HINTS)

    @property
    def skip_hints(self) -> List[str]:
        return _split_keywords(self.ISOLATION_SKIP_HINTS)


def _split_keywords(raw: str) -> List[str]:
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


# Global settings instance
settings = Settings()
