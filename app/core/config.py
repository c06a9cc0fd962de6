"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_tick_debug: Emit per-tick DEBUG lines from the feed and hub.
        rate_limit_default: Default rate limit for all endpoints.
        rate_limit_heavy: Rate limit for compute-heavy endpoints.
        tracked_symbols: Comma separated base assets to follow (quoted in USDT).
        feed_url_template: Ticker stream URL, formatted with the lowercase symbol.
        feed_reconnect_delay: Seconds to wait before reconnecting a dropped feed.
        feeds_enabled: Start live feed tasks on application startup.
        cache_capacity: Maximum points kept per symbol.
        history_bootstrap: Seed each symbol from the REST klines endpoint on startup.
        history_limit: Number of klines fetched per symbol (Binance caps at 1000).
        history_interval: Kline interval used for the bootstrap.
        history_base_url: Binance REST base URL.
        broadcast_send_timeout: Seconds a single subscriber write may take.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    project_name: str = "AI Trading Charts"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    log_tick_debug: bool = False
    rate_limit_default: str = "60/minute"
    rate_limit_heavy: str = "10/minute"

    # Live feed
    tracked_symbols: str = "BTC,SOL,TAO,WIF"
    feed_url_template: str = "wss://stream.binance.com:9443/ws/{symbol}usdt@ticker"
    feed_reconnect_delay: float = 30.0
    feeds_enabled: bool = True

    # Rolling history
    cache_capacity: int = 20_000
    history_bootstrap: bool = False
    history_limit: int = 1000
    history_interval: str = "1h"
    history_base_url: str = "https://api.binance.com"

    broadcast_send_timeout: float = 5.0

    def get_tracked_symbols(self) -> tuple[str, ...]:
        """Return the tracked symbols, upper-cased, blanks dropped."""
        return tuple(
            s.strip().upper() for s in self.tracked_symbols.split(",") if s.strip()
        )


settings = Settings()
