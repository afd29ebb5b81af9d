"""
Runtime configuration for Pantry Pal.

Values come from the environment (optionally seeded from a .env file).
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Application settings."""

    spoonacular_api_key: Optional[str] = None
    spoonacular_base_url: str = "https://api.spoonacular.com"
    spoonacular_timeout: float = 10.0

    data_dir: str = "data"

    # Discovery query options
    discovery_count: int = 10
    discovery_ranking: int = 2
    discovery_max_missing: int = 3

    # Response cache freshness windows
    cache_ttl_hours: float = 24.0
    random_cache_ttl_minutes: float = 30.0

    default_budget: float = 100.0
    persist_debounce_seconds: float = 0.5
    skip_history_enabled: bool = True
    monitor_history_size: int = 50

    log_level: str = "INFO"
    flask_secret_key: str = "dev-secret-key-change-in-production"

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_hours * 3600

    @property
    def random_cache_ttl_seconds(self) -> float:
        return self.random_cache_ttl_minutes * 60

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "Settings":
        """Build settings from environment variables.

        Args:
            load_dotenv_file: Read a .env file into the environment first

        Returns:
            Settings populated from the environment, with defaults for
            anything missing or malformed
        """
        if load_dotenv_file:
            load_dotenv()

        defaults = cls()
        return cls(
            spoonacular_api_key=os.environ.get("SPOONACULAR_API_KEY") or None,
            spoonacular_base_url=os.environ.get("SPOONACULAR_BASE_URL", defaults.spoonacular_base_url),
            spoonacular_timeout=_env_float("SPOONACULAR_TIMEOUT", defaults.spoonacular_timeout),
            data_dir=os.environ.get("PANTRY_PAL_DATA_DIR", defaults.data_dir),
            discovery_count=_env_int("DISCOVERY_COUNT", defaults.discovery_count),
            discovery_ranking=_env_int("DISCOVERY_RANKING", defaults.discovery_ranking),
            discovery_max_missing=_env_int("DISCOVERY_MAX_MISSING", defaults.discovery_max_missing),
            cache_ttl_hours=_env_float("CACHE_TTL_HOURS", defaults.cache_ttl_hours),
            random_cache_ttl_minutes=_env_float("RANDOM_CACHE_TTL_MINUTES", defaults.random_cache_ttl_minutes),
            default_budget=_env_float("DEFAULT_BUDGET", defaults.default_budget),
            persist_debounce_seconds=_env_float("PERSIST_DEBOUNCE_SECONDS", defaults.persist_debounce_seconds),
            skip_history_enabled=_env_bool("SKIP_HISTORY_ENABLED", defaults.skip_history_enabled),
            monitor_history_size=_env_int("MONITOR_HISTORY_SIZE", defaults.monitor_history_size),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level).upper(),
            flask_secret_key=os.environ.get("FLASK_SECRET_KEY", defaults.flask_secret_key),
        )
