from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from .errors import ConfigurationError


_TEMPLATE_MARKERS = ("your-project-id", "your_supabase_anon_key")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(float(str(raw).strip()))
    except ValueError:
        return default
    return max(minimum, value)


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration read from the environment.

    Store credentials are optional at construction time so that tests and
    fixture-backed CLI runs can build settings; `validate_store` is the gate
    the API process calls before it serves anything.
    """

    supabase_url: Optional[str]
    supabase_key: Optional[str]
    table: str
    webhook_url: Optional[str]
    batch_size: int
    max_scan: int
    fast_path_max_page_size: int
    filter_options_ttl_s: int
    log_level: str
    log_json: bool

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=_env_str("SUPABASE_URL"),
            supabase_key=_env_str("SUPABASE_ANON_KEY"),
            table=_env_str("INVENTORY_TABLE") or "inventory_unit_preference",
            webhook_url=_env_str("WEBHOOK_URL"),
            batch_size=_env_int("SEARCH_BATCH_SIZE", 1000),
            max_scan=_env_int("SEARCH_MAX_SCAN", 50000),
            fast_path_max_page_size=_env_int("SEARCH_FAST_PATH_MAX_PAGE_SIZE", 100),
            filter_options_ttl_s=_env_int("FILTER_OPTIONS_TTL_S", 86400),
            log_level=(_env_str("LOG_LEVEL") or "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
        )

    def validate_store(self) -> None:
        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", self.supabase_url),
                ("SUPABASE_ANON_KEY", self.supabase_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing)
            )
        for value in (self.supabase_url or "", self.supabase_key or ""):
            if any(marker in value for marker in _TEMPLATE_MARKERS):
                raise ConfigurationError(
                    "Environment variables contain template values; configure real store credentials"
                )
        if not (self.supabase_url or "").startswith(("https://", "http://")):
            raise ConfigurationError("SUPABASE_URL must start with https:// or http://")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Test helper to force env re-read."""

    get_settings.cache_clear()
