import os
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime configuration for the geocoding proxy.

    Notes
    -----
    - Defaults below are used as-is unless overridden through environment
      variables by `load_settings()`.
    - TTLs (time-to-live) are expressed in seconds and control how long cached
      lookups are considered fresh.
    """

    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "PinQuest/1.0 (contact your app developers for issues)"
    request_timeout: float = 5.0
    search_limit: int = 10
    # TTLs (in seconds) for the in-memory cache
    cache_default_ttl: int = 5 * 60
    cache_ttl_search: int = 10 * 60  # place names resolve to the same spots
    cache_ttl_reverse: int = 60 * 60  # coordinates -> address changes rarely
    log_level: str = "INFO"


def _as_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build `Settings` from the environment, keeping defaults for unset or bad values."""

    defaults = Settings()
    return Settings(
        nominatim_base_url=os.getenv("NOMINATIM_BASE_URL", defaults.nominatim_base_url).rstrip("/"),
        user_agent=os.getenv("GEOCODER_USER_AGENT", defaults.user_agent),
        request_timeout=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), defaults.request_timeout),
        search_limit=_as_int(os.getenv("SEARCH_LIMIT"), defaults.search_limit),
        cache_default_ttl=_as_int(os.getenv("CACHE_DEFAULT_TTL"), defaults.cache_default_ttl),
        cache_ttl_search=_as_int(os.getenv("CACHE_TTL_SEARCH"), defaults.cache_ttl_search),
        cache_ttl_reverse=_as_int(os.getenv("CACHE_TTL_REVERSE"), defaults.cache_ttl_reverse),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )


settings = load_settings()
