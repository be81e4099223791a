"""Centralized configuration - env settings and analysis knobs."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_env: str = "development"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./adfatigue.db"

    # --- Analysis ---
    min_data_points: int = 3
    lookback_days: int = 30

    # --- Batch pipeline ---
    batch_group_size: int = 10  # full-account scan
    explicit_batch_group_size: int = 5  # explicit ad id lists
    batch_pause_seconds: float = 1.0  # rate-limit backoff between groups

    # --- Scheduler ---
    scheduler_enabled: bool = True
    fatigue_interval_minutes: int = 15

    # --- Alerts ---
    alert_suppression_hours: int = 24
    min_score_for_alert: int = 50

    # --- Default analysis context (used when an account has none) ---
    default_industry: str = "b2c_ecommerce"
    default_product_price: float = 100.0
    default_campaign_goal: str = "conversions"
    default_season: str = "normal"


@lru_cache
def get_settings() -> Settings:
    return Settings()
