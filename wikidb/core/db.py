"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. The service lifecycle initializes it on
startup and closes it on shutdown (see `wikidb/main.py`). Every dispatcher
instance shares the same pool.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...

Failure policy:
- anything that goes wrong while talking to the database is raised as
  `DbError` (or `DbConnectionError` when no connection could be obtained),
  with the driver's message as the cause text. Nothing here retries.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from .errors import ConfigurationError, DbConnectionError, DbError
from .settings import Settings

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., Awaitable[Any]]

DRIVERS: dict[str, PoolFactory] = {
    "asyncpg": asyncpg.create_pool,
}

# Driver failures that are reported per request instead of crashing.
DRIVER_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
    TypeError,
    ValueError,
)

_pool: Any | None = None
_acquire_timeout: float | None = None


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def pool_factory_for(driver: str) -> PoolFactory:
    factory = DRIVERS.get((driver or "").strip().lower())
    if factory is None:
        raise ConfigurationError(f"Unsupported database driver '{driver}'. Known: {sorted(DRIVERS)}")
    return factory


async def init_pool(settings: Settings, *, pool_factory: PoolFactory | None = None) -> None:
    global _pool, _acquire_timeout
    if _pool is not None:
        return None

    factory = pool_factory or pool_factory_for(settings.driver)
    try:
        _pool = await factory(
            dsn=_sanitize_database_url(settings.database_url),
            min_size=1,
            max_size=settings.max_pool_size,
            command_timeout=settings.command_timeout,
        )
    except DRIVER_ERRORS as exc:
        raise DbConnectionError(f"Could not open the database pool: {_describe(exc)}") from exc

    _acquire_timeout = settings.acquire_timeout
    logger.info("db_pool_opened driver=%s max_size=%s", settings.driver, settings.max_pool_size)


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    current, _pool = _pool, None
    await current.close()
    logger.info("db_pool_closed")


def pool() -> Any:
    if _pool is None:
        raise DbConnectionError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


@asynccontextmanager
async def connection() -> AsyncIterator[Any]:
    """
    Scoped connection: acquired on enter, returned to the pool on every exit
    path (normal exit, statement failure, cancellation).

    Waiting for a free slot is bounded by `Settings.acquire_timeout`; an
    exhausted pool raises DbConnectionError instead of queueing the request.
    """
    current = pool()
    try:
        conn = await current.acquire(timeout=_acquire_timeout)
    except DRIVER_ERRORS as exc:
        raise DbConnectionError(f"Could not acquire a database connection: {_describe(exc)}") from exc

    try:
        yield conn
    finally:
        await current.release(conn)


def _record_to_tuple(record: Any) -> tuple[Any, ...]:
    return tuple(record)


async def fetch_all(sql: str, *args: Any) -> list[tuple[Any, ...]]:
    """
    Run a query and return all rows as tuples, read by column position so
    statements loaded from an override file may alias their columns freely.
    """
    async with connection() as conn:
        try:
            rows = await conn.fetch(sql, *args)
        except DRIVER_ERRORS as exc:
            raise DbError(_describe(exc)) from exc
    return [_record_to_tuple(r) for r in rows]


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL) and return the driver's status
    tag, e.g. "UPDATE 0". Zero affected rows is not an error.
    """
    async with connection() as conn:
        try:
            return await conn.execute(sql, *args)
        except DRIVER_ERRORS as exc:
            raise DbError(_describe(exc)) from exc
