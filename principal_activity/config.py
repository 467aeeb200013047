"""
Centralized configuration for the Principal Activity Engine.

All values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


# ============================================================
# Cache
# ============================================================

CACHE_TTL_SECONDS: float = _env_float("PAE_CACHE_TTL_SECONDS", 300.0)
"""How long a fetched timeline snapshot stays fresh (5 minutes)."""

CACHE_ENABLED: bool = _env_bool("PAE_CACHE_ENABLED", True)
"""Disable to always hit the records provider."""

# ============================================================
# Timeline view
# ============================================================

DEFAULT_PAGE_SIZE: int = _env_int("PAE_DEFAULT_PAGE_SIZE", 20)
"""Timeline entries per page."""

MAX_PAGE_SIZE: int = 500
"""Upper bound accepted by PaginationParams."""

DEFAULT_VIEW_MODE: str = os.environ.get("PAE_VIEW_MODE", "grouped")
"""One of list, grouped, compact."""

SEARCH_DEBOUNCE_SECONDS: float = _env_float("PAE_SEARCH_DEBOUNCE_SECONDS", 0.3)
"""Quiet period before a typed search is applied."""

# ============================================================
# Refresh
# ============================================================

REFRESH_INTERVAL_SECONDS: float = _env_float("PAE_REFRESH_INTERVAL_SECONDS", 60.0)
"""Auto-refresh period for the timeline."""

AUTO_REFRESH_ENABLED: bool = _env_bool("PAE_AUTO_REFRESH", True)

# ============================================================
# Analytics
# ============================================================

TOP_PERFORMERS_LIMIT: int = _env_int("PAE_TOP_PERFORMERS", 10)

MAX_SELECTIONS: int = _env_int("PAE_MAX_SELECTIONS", 0)
"""Cap on selected principals. 0 means unlimited."""

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("PAE_LOG_LEVEL", "INFO")

LOG_JSON: bool | None = (
    _env_bool("PAE_LOG_JSON", False) if os.environ.get("PAE_LOG_JSON") is not None else None
)
"""Force JSON logs. None auto-detects from the terminal."""


@dataclass
class EngineConfig:
    """Settings an engine instance is constructed with."""

    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    cache_enabled: bool = CACHE_ENABLED
    default_page_size: int = DEFAULT_PAGE_SIZE
    view_mode: str = DEFAULT_VIEW_MODE
    search_debounce_seconds: float = SEARCH_DEBOUNCE_SECONDS
    refresh_interval_seconds: float = REFRESH_INTERVAL_SECONDS
    auto_refresh: bool = AUTO_REFRESH_ENABLED
    top_performers: int = TOP_PERFORMERS_LIMIT
    max_selections: int = MAX_SELECTIONS

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Re-read the environment (module constants are read once at import)."""
        return cls(
            cache_ttl_seconds=_env_float("PAE_CACHE_TTL_SECONDS", 300.0),
            cache_enabled=_env_bool("PAE_CACHE_ENABLED", True),
            default_page_size=_env_int("PAE_DEFAULT_PAGE_SIZE", 20),
            view_mode=os.environ.get("PAE_VIEW_MODE", "grouped"),
            search_debounce_seconds=_env_float("PAE_SEARCH_DEBOUNCE_SECONDS", 0.3),
            refresh_interval_seconds=_env_float("PAE_REFRESH_INTERVAL_SECONDS", 60.0),
            auto_refresh=_env_bool("PAE_AUTO_REFRESH", True),
            top_performers=_env_int("PAE_TOP_PERFORMERS", 10),
            max_selections=_env_int("PAE_MAX_SELECTIONS", 0),
        )
