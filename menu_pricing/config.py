"""Centralized configuration from environment variables.

All configuration that varies between environments (local dev, CI, production)
is read from environment variables here. Import from this module instead of
reading os.environ directly in service code.
"""
import os
from functools import lru_cache


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "5432")
    DB_NAME: str = os.getenv("DB_NAME", "menu_pricing")
    DB_USER: str = os.getenv("DB_USER", "menu_pricing")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")

    # Pricing defaults, used until the business saves its own pricing config
    DEFAULT_TARGET_MARGIN_RATE: float = float(os.getenv("DEFAULT_TARGET_MARGIN_RATE", "0.30"))
    DEFAULT_TARGET_CMV_RATE: float = float(os.getenv("DEFAULT_TARGET_CMV_RATE", "0.35"))
    DEFAULT_AVERAGE_TAX_RATE: float = float(os.getenv("DEFAULT_AVERAGE_TAX_RATE", "0.08"))

    # Trailing windows (days)
    SALES_WINDOW_DAYS: int = int(os.getenv("SALES_WINDOW_DAYS", "30"))
    COST_HISTORY_WINDOW_DAYS: int = int(os.getenv("COST_HISTORY_WINDOW_DAYS", "60"))

    # CORS
    CORS_ORIGINS: list[str] = os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
