"""Application settings from environment variables."""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # Steam Web API (stage 1: profile and ban lookup)
    steam_api_key: str = ""
    steam_api_base_url: str = "https://api.steampowered.com/"

    # Inventory valuation API (stage 2)
    valuation_api_key: str = ""
    valuation_base_url: str = "https://montuga.com/api/IPricing/inventory"
    valuation_app_id: int = 730
    usd_to_brl_rate: float = 5.25
    upstream_timeout_seconds: float = 15.0

    # History
    history_file: str = "history.json"
    history_window_hours: int = 24

    # Jobs
    job_retention_seconds: float = 300.0
    sink_queue_size: int = 1000

    # Notifications
    notify_webhook_url: Optional[str] = None
    notify_timeout_seconds: float = 5.0

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    model_config = {"env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
