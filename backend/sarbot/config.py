"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (use_database=False keeps trades in memory)
    database_url: str = "postgresql://localhost/sar_bot"
    use_database: bool = True

    # Primary candle service
    candle_service_url: str = "http://127.0.0.1:5001"
    candle_request_timeout: float = 5.0
    candle_cache_ttl_ms: int = 3000
    candle_window: int = 50
    synthetic_fallback: bool = True

    # Broker session payload (SSID)
    pocket_option_ssid: str = ""

    # Scheduler
    tick_interval_seconds: float = 2.0

    # Readiness / lifecycle
    ready_percentage: float = 92.0
    require_confluence_for_ready: bool = True
    cooldown_seconds: float = 60.0

    # Trading
    auto_trade: bool = True
    trade_amount: float = 1.0
    trade_duration_seconds: int = 60
    recent_trades_limit: int = 50

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
