"""
Service configuration.

Values come from environment variables and can be overridden with a mapping
keyed by `Settings` field name (handy for tests and embedding).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from .errors import ConfigurationError

DEFAULT_DATABASE_URL = "postgresql://localhost:5432/wiki"
DEFAULT_DRIVER = "asyncpg"
DEFAULT_MAX_POOL_SIZE = 30
DEFAULT_COMMAND_TIMEOUT = 30.0
# Must stay below the bus send timeout (bus.DEFAULT_SEND_TIMEOUT).
DEFAULT_ACQUIRE_TIMEOUT = 10.0
DEFAULT_QUEUE = "wikidb.queue"
DEFAULT_INSTANCES = 1


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    driver: str = DEFAULT_DRIVER
    max_pool_size: int = DEFAULT_MAX_POOL_SIZE
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT
    queries_file: str | None = None
    queue: str = DEFAULT_QUEUE
    instances: int = DEFAULT_INSTANCES


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def database_url() -> str:
    return _env_str("WIKIDB_DATABASE_URL", _env_str("DATABASE_URL", DEFAULT_DATABASE_URL))


def load_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    settings = Settings(
        database_url=database_url(),
        driver=_env_str("WIKIDB_DB_DRIVER", DEFAULT_DRIVER),
        max_pool_size=_env_int("WIKIDB_MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE),
        command_timeout=_env_float("WIKIDB_COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT),
        acquire_timeout=_env_float("WIKIDB_ACQUIRE_TIMEOUT", DEFAULT_ACQUIRE_TIMEOUT),
        queries_file=os.environ.get("WIKIDB_SQL_QUERIES_FILE", "").strip() or None,
        queue=_env_str("WIKIDB_QUEUE", DEFAULT_QUEUE),
        instances=_env_int("WIKIDB_INSTANCES", DEFAULT_INSTANCES),
    )

    if overrides:
        known = {f.name for f in fields(Settings)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")
        settings = replace(settings, **dict(overrides))

    if settings.max_pool_size < 1:
        raise ConfigurationError("max_pool_size must be at least 1.")
    if settings.instances < 1:
        raise ConfigurationError("instances must be at least 1.")
    if settings.acquire_timeout <= 0:
        raise ConfigurationError("acquire_timeout must be positive.")
    return settings
