from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class LocationPolicy(str, Enum):
    FALLBACK = "fallback"
    BLOCK = "block"


class SuggestionMode(str, Enum):
    REMOTE = "remote"
    FUZZY = "fuzzy"


class Settings(BaseSettings):
    """App configuration (env-friendly).

    Every field can be overridden with a ``STOREFINDER_`` prefixed env var or a .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="STOREFINDER_")

    app_name: str = "Store Finder API"
    version: str = "0.1.0"

    api_base_url: AnyHttpUrl = "https://locoshop-backend.onrender.com/api"
    ip_geolocation_url: AnyHttpUrl = "http://ip-api.com/json/"

    user_agent: str = "store-finder/0.1.0"
    http_timeout_s: float = 20.0

    debounce_s: float = 0.3
    # Search as soon as typing pauses instead of waiting for an explicit search.
    auto_search: bool = False
    max_load_count: int = 20
    # Browsing without a query shows the promoted stores.
    default_query: str = "advertisement"

    location_policy: LocationPolicy = LocationPolicy.FALLBACK
    fallback_latitude: float = 18.5204
    fallback_longitude: float = 73.8567

    default_country_code: str = "91"

    suggestion_mode: SuggestionMode = SuggestionMode.REMOTE
    fuzzy_max_distance: int = 3
    max_suggestions: int = 8

    session_ttl_s: float = 1800.0
    session_max_size: int = 1024

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
