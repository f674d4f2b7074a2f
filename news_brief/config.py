"""Configuration for news_brief.

Settings come from an optional YAML file and then from environment variables
(a local .env file is loaded first), so secrets never have to live in YAML.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


CACHE_KEY_PREFIX = "article:"
CACHE_TTL_SECONDS = 86400  # 24 hours
DEFAULT_MAIN_URL = "https://www.myjoyonline.com/"
DEFAULT_FEED_URL = "https://www.myjoyonline.com/feed/"
DEFAULT_LISTING_SELECTOR = "div.home-post-list-title a"
FALLBACK_IMAGE_URL = (
    "https://images.unsplash.com/photo-1504711434969-e33886168f5c"
    "?ixlib=rb-4.0.3&q=80&fm=jpg&crop=entropy&cs=tinysrgb&w=800&h=400&fit=crop"
)


def _default_db_path() -> str:
    env_path = os.environ.get("NEWS_BRIEF_DB_PATH")
    if env_path:
        return env_path
    return str(Path.home() / ".news_brief" / "news_brief.db")


@dataclass
class ServerConfig:
    """Runtime settings shared by the server, the pipeline and the scheduler."""

    name: str = "news_brief"
    log_level: str = "INFO"
    db_path: str = field(default_factory=_default_db_path)

    # Sources
    main_url: str = DEFAULT_MAIN_URL
    feed_url: str = DEFAULT_FEED_URL
    listing_selector: str = DEFAULT_LISTING_SELECTOR
    request_timeout: float = 10.0

    # Delivery cache
    cache_key_prefix: str = CACHE_KEY_PREFIX
    cache_ttl_seconds: int = CACHE_TTL_SECONDS

    # Summarizer
    openai_api_key: Optional[str] = None
    summarizer_model: str = "gpt-4o-mini"

    # Notifier
    telegram_bot_token: Optional[str] = None
    telegram_channel_id: Optional[str] = None
    fallback_image_url: str = FALLBACK_IMAGE_URL

    # Periodic discovery, 0 disables the schedule
    discovery_interval_hours: float = 3.0


# Environment variable -> ServerConfig field
ENV_OVERRIDES = {
    "NEWS_BRIEF_NAME": "name",
    "NEWS_BRIEF_LOG_LEVEL": "log_level",
    "NEWS_BRIEF_DB_PATH": "db_path",
    "NEWS_BRIEF_MAIN_URL": "main_url",
    "NEWS_BRIEF_FEED_URL": "feed_url",
    "NEWS_BRIEF_LISTING_SELECTOR": "listing_selector",
    "NEWS_BRIEF_REQUEST_TIMEOUT": "request_timeout",
    "NEWS_BRIEF_CACHE_TTL_SECONDS": "cache_ttl_seconds",
    "NEWS_BRIEF_DISCOVERY_INTERVAL_HOURS": "discovery_interval_hours",
    "OPENAI_API_KEY": "openai_api_key",
    "NEWS_BRIEF_SUMMARIZER_MODEL": "summarizer_model",
    "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
    "TELEGRAM_CHANNEL_ID": "telegram_channel_id",
}


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/env value to the type of the ServerConfig field."""
    if value is None:
        return None
    if name in ("request_timeout", "discovery_interval_hours"):
        return float(value)
    if name == "cache_ttl_seconds":
        return int(value)
    return str(value)


def load_config(path: Optional[str] = None) -> ServerConfig:
    """Load configuration from YAML (optional) and the environment.

    Args:
        path: YAML file to read. Falls back to the NEWS_BRIEF_CONFIG env var;
            when neither is set only defaults and env vars are used.

    Returns:
        Populated ServerConfig

    Raises:
        FileNotFoundError: If an explicit config path does not exist
        ValueError: If the YAML file contains unknown keys
    """
    load_dotenv()

    values: Dict[str, Any] = {}
    known = {f.name for f in fields(ServerConfig)}

    config_path = path or os.environ.get("NEWS_BRIEF_CONFIG")
    if config_path:
        with open(config_path, encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown config keys in {config_path}: {sorted(unknown)}")
        for key, value in raw.items():
            values[key] = _coerce(key, value)

    for env_name, field_name in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value:
            values[field_name] = _coerce(field_name, env_value)

    return ServerConfig(**values)


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[ServerConfig]) -> None:
    """Replace the process-wide config (None forces a reload on next use)."""
    global _config
    _config = config
