"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _int_env(name: str, default: int) -> int:
    """Read an integer variable, falling back to default on bad input."""
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Read a float variable, falling back to default on bad input."""
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Bot settings
    bot_token: str
    bot_mode: Literal["webhook", "polling"]
    webhook_url: str | None
    webhook_path: str
    host: str
    port: int
    database_url: str
    api_token: str | None
    log_level: str

    # TMDB settings
    tmdb_bearer_token: str | None
    tmdb_language: str
    tmdb_max_retries: int
    tmdb_timeout_seconds: float

    # Discovery feed settings
    feed_initial_pages: int
    feed_low_water_mark: int
    feed_exhausted_after: int
    feed_session_ttl_seconds: int
    feed_sweep_interval_seconds: int

    # Poster cache
    poster_cache_max_bytes: int
    poster_width: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        bot_token = os.getenv("BOT_TOKEN")
        if not bot_token:
            raise ConfigurationError("BOT_TOKEN environment variable is required")

        bot_mode = os.getenv("BOT_MODE", "polling").lower()
        if bot_mode not in ("webhook", "polling"):
            raise ConfigurationError("BOT_MODE must be 'webhook' or 'polling'")

        webhook_url = os.getenv("WEBHOOK_URL")
        webhook_path = os.getenv("WEBHOOK_PATH", "/telegram/webhook")

        if bot_mode == "webhook" and not webhook_url:
            raise ConfigurationError("WEBHOOK_URL is required when BOT_MODE=webhook")

        host = os.getenv("HOST", "0.0.0.0")
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cineco.db")
        api_token = os.getenv("API_TOKEN") or None
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # TMDB settings
        tmdb_bearer_token = os.getenv("TMDB_BEARER_TOKEN") or None
        tmdb_language = os.getenv("TMDB_LANGUAGE", "en-US")
        tmdb_max_retries = max(1, _int_env("TMDB_MAX_RETRIES", 3))
        tmdb_timeout_seconds = _float_env("TMDB_TIMEOUT_SECONDS", 15.0)

        # Discovery feed settings
        feed_initial_pages = max(1, _int_env("FEED_INITIAL_PAGES", 3))
        feed_low_water_mark = max(0, _int_env("FEED_LOW_WATER_MARK", 5))
        feed_exhausted_after = max(1, _int_env("FEED_EXHAUSTED_AFTER", 3))
        feed_session_ttl_seconds = _int_env("FEED_SESSION_TTL_SECONDS", 1800)
        feed_sweep_interval_seconds = _int_env("FEED_SWEEP_INTERVAL_SECONDS", 300)

        # Poster cache
        poster_cache_max_bytes = _int_env("POSTER_CACHE_MAX_BYTES", 32 * 1024 * 1024)
        poster_width = _int_env("POSTER_WIDTH", 342)

        return cls(
            bot_token=bot_token,
            bot_mode=bot_mode,  # type: ignore[arg-type]
            webhook_url=webhook_url,
            webhook_path=webhook_path,
            host=host,
            port=port,
            database_url=database_url,
            api_token=api_token,
            log_level=log_level,
            tmdb_bearer_token=tmdb_bearer_token,
            tmdb_language=tmdb_language,
            tmdb_max_retries=tmdb_max_retries,
            tmdb_timeout_seconds=tmdb_timeout_seconds,
            feed_initial_pages=feed_initial_pages,
            feed_low_water_mark=feed_low_water_mark,
            feed_exhausted_after=feed_exhausted_after,
            feed_session_ttl_seconds=feed_session_ttl_seconds,
            feed_sweep_interval_seconds=feed_sweep_interval_seconds,
            poster_cache_max_bytes=poster_cache_max_bytes,
            poster_width=poster_width,
        )


config = Config.from_env()
