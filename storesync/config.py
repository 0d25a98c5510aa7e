"""
Configuration management for the store sync engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "StoreSync"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Database
    database_url: str = "sqlite:///./storesync.db"

    # Remote commerce API (WooCommerce REST)
    remote_api_prefix: str = "wp-json"
    remote_api_version: str = "wc/v3"
    remote_request_timeout_seconds: float = 30.0

    # Pull sync
    sync_page_size: int = 100  # Fixed by convention, the remote caps per_page at 100
    sync_job_timeout_seconds: float = 1800.0  # Hard wall-clock limit per job
    sync_entity_types: str = "product,customer,order"

    # Rate limiting (HTTP 429 only)
    rate_limit_max_attempts: int = 3
    rate_limit_max_delay_seconds: float = 60.0
    rate_limit_default_retry_after: float = 60.0

    # Sync Schedules
    sync_store_schedule: str = "0 */6 * * *"
    scheduler_timezone: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
