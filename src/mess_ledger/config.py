"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    fcm_server_key: str
    fcm_base_url: str = "https://fcm.googleapis.com/fcm/send"
    push_title: str = "Mess Ledger"
    default_link: str = "/dashboard"
    default_timezone: str = "Asia/Dhaka"
    meal_ledger_days: int = 30
    page_size: int = 20
    report_cache_ttl_seconds: int = 300
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
