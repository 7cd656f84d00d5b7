from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CALLPRICE_",
        extra="ignore",
    )

    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"
    redis_namespace: str = "callprice"

    yahoo_base: str = "https://query2.finance.yahoo.com/v8/finance/chart"
    coingecko_base: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str = ""
    coingecko_pro: bool = False
    coinmarketcap_base: str = "https://pro-api.coinmarketcap.com"
    coinmarketcap_api_key: str = ""
    dexscreener_base: str = "https://api.dexscreener.com/latest/dex"
    geckoterminal_base: str = "https://api.geckoterminal.com/api/v2"

    http_timeout: float = Field(default=8.0, gt=0)
    http_retries: int = Field(default=1, ge=0)
    http_backoff_base: float = Field(default=0.4, ge=0)
    breaker_threshold: int = Field(default=4, ge=1)
    breaker_cooldown: int = Field(default=60, ge=0)
    http_max_concurrency_per_host: int = Field(default=4, ge=1)

    provider_timeout: float = Field(default=12.0, gt=0)
    max_concurrent_queries: int = Field(default=8, ge=1)

    recent_window_hours: float = Field(default=24.0, gt=0)
    observation_ttl: int = Field(default=7 * 24 * 3600, ge=1)
    coingecko_max_history_days: int = Field(default=365, ge=1)
    geckoterminal_max_history_days: int = Field(default=180, ge=1)

    test_mode: bool = False
    mock_prices: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
