"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the GeekCraft server happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Every field is read from a
      GEEKCRAFT_-prefixed variable (e.g. db_backend -> GEEKCRAFT_DB_BACKEND).

Backend selection:
  db_backend picks exactly one credential store at process start. Accepted
  values are case-insensitive; the legacy spellings INMEMORY and MONGO are
  normalized so existing deployment scripts keep working.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or game/.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("geekcraft.config")

VERSION = "0.3.0"

# Canonical backend names and the aliases accepted for each.
_BACKEND_ALIASES = {
    "memory": "memory",
    "inmemory": "memory",
    "in-memory": "memory",
    "redis": "redis",
    "mongodb": "mongodb",
    "mongo": "mongodb",
    "sqlite": "sqlite",
    "sql": "sqlite",
}


class Settings(BaseSettings):
    """Server settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEEKCRAFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 3030

    # ------------------------------------------------------------------
    # Credential store
    # ------------------------------------------------------------------

    db_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    mongodb_url: str = "mongodb://localhost:27017/geekcraft"
    sql_url: str = "sqlite:///geekcraft_auth.db"
    # Ceiling on every remote store round trip. A slow backend fails the
    # request with StoreUnavailable instead of hanging it.
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    session_sweep_seconds: int = Field(default=600, gt=0)

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    max_body_bytes: int = Field(default=1024 * 1024, gt=0)
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # WebSocket gate
    # ------------------------------------------------------------------

    # Consecutive failed auth attempts before the socket is closed. 0 = never.
    ws_max_auth_failures: int = Field(default=5, ge=0)

    # ------------------------------------------------------------------
    # Game loop
    # ------------------------------------------------------------------

    tick_interval_seconds: float = Field(default=1 / 60, gt=0)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("db_backend", mode="before")
    @classmethod
    def normalize_backend(cls, value: str) -> str:
        """Map the configured backend name onto its canonical spelling.

        Unknown names fail at startup rather than silently falling back to
        the in-memory store, which would lose every account on restart.
        """
        key = str(value).strip().lower()
        if key not in _BACKEND_ALIASES:
            allowed = ", ".join(sorted(set(_BACKEND_ALIASES.values())))
            raise ValueError(f"Unknown db_backend {value!r}. Expected one of: {allowed}.")
        return _BACKEND_ALIASES[key]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
