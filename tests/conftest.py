# tests/conftest.py
"""
Pytest fixtures.

`FakePool` stands in for an asyncpg pool: it keeps an in-memory `pages`
table, understands the bundled statements (plus any registered overrides),
returns rows as positional tuples, and counts acquire/release so tests can
check that every connection goes back to the pool. With `size` set, acquire
waits for a free slot and times out like asyncpg.
"""

from __future__ import annotations

import asyncio
from typing import Any

import asyncpg
import pytest

from wikidb.core import db
from wikidb.core.bus import EventBus
from wikidb.core.queries import SqlQuery, load_queries
from wikidb.core.settings import Settings
from wikidb.main import lifespan
from wikidb.pages.client import PagesClient
from wikidb.pages.repository import PageRepository

BUNDLED = load_queries()
STATEMENTS = {sql: key for key, sql in BUNDLED.statements.items()}


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    def _statement(self, sql: str) -> SqlQuery:
        self.pool.statements.append(sql)
        if self.pool.statement_error is not None:
            raise self.pool.statement_error
        key = self.pool.statement_keys.get(sql)
        if key is None:
            raise asyncpg.InterfaceError(f"unexpected statement: {sql}")
        return key

    def _rows(self, key: SqlQuery, args: tuple) -> list[tuple[Any, ...]]:
        pages = sorted(self.pool.pages.items())
        if key is SqlQuery.ALL_PAGES:
            return [(page["title"],) for _, page in pages]
        if key is SqlQuery.GET_PAGE:
            (title,) = args
            return [(page_id, page["content"]) for page_id, page in pages if page["title"] == title]
        raise asyncpg.InterfaceError(f"{key.name} does not return rows")

    async def fetch(self, sql: str, *args: Any) -> list[tuple[Any, ...]]:
        rows = self._rows(self._statement(sql), args)
        width = self.pool.row_widths.get(sql)
        return [row[:width] for row in rows] if width else rows

    async def execute(self, sql: str, *args: Any) -> str:
        key = self._statement(sql)
        pages = self.pool.pages

        if key is SqlQuery.CREATE_PAGES_TABLE:
            return "CREATE TABLE"

        if key is SqlQuery.CREATE_PAGE:
            title, content = args
            if title is None:
                raise asyncpg.DataError('null value in column "title" violates not-null constraint')
            self.pool.next_id += 1
            pages[self.pool.next_id] = {"title": title, "content": content}
            return "INSERT 0 1"

        if key is SqlQuery.SAVE_PAGE:
            content, page_id = args
            self._check_id(page_id, 2)
            if page_id not in pages:
                return "UPDATE 0"
            pages[page_id]["content"] = content
            return "UPDATE 1"

        if key is SqlQuery.DELETE_PAGE:
            (page_id,) = args
            self._check_id(page_id, 1)
            return "DELETE 1" if pages.pop(page_id, None) is not None else "DELETE 0"

        raise asyncpg.InterfaceError(f"{key.name} is not a command")

    @staticmethod
    def _check_id(page_id: Any, position: int) -> None:
        # NULL binds fine and simply matches no row.
        if page_id is not None and not isinstance(page_id, int):
            raise asyncpg.DataError(f"invalid input for query argument ${position}: {page_id!r} (an integer is required)")


class FakePool:
    def __init__(self, size: int | None = None) -> None:
        self.size = size
        self.slots = asyncio.Semaphore(size) if size else None
        self.acquire_timeouts: list[float | None] = []
        self.statement_keys: dict[str, SqlQuery] = dict(STATEMENTS)
        self.row_widths: dict[str, int] = {}
        self.pages: dict[int, dict[str, Any]] = {}
        self.next_id = 0
        self.statements: list[str] = []
        self.acquired = 0
        self.released = 0
        self.closed = False
        self.acquire_error: BaseException | None = None
        self.statement_error: BaseException | None = None
        self.create_kwargs: dict[str, Any] = {}

    @property
    def in_use(self) -> int:
        return self.acquired - self.released

    async def acquire(self, *, timeout: float | None = None) -> FakeConnection:
        self.acquire_timeouts.append(timeout)
        if self.acquire_error is not None:
            raise self.acquire_error
        if self.slots is not None:
            await asyncio.wait_for(self.slots.acquire(), timeout)
        self.acquired += 1
        return FakeConnection(self)

    async def release(self, conn: FakeConnection) -> None:
        self.released += 1
        if self.slots is not None:
            self.slots.release()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_pool(request) -> FakePool:
    # Parametrize indirectly with a slot count to get a pool that can run dry.
    return FakePool(size=getattr(request, "param", None))


@pytest.fixture
def pool_factory(fake_pool: FakePool):
    async def factory(**kwargs: Any) -> FakePool:
        fake_pool.create_kwargs = kwargs
        return fake_pool

    return factory


@pytest.fixture(autouse=True)
def _reset_pool():
    yield
    db._pool = None


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="postgresql://test@localhost/wiki_test", max_pool_size=4, acquire_timeout=0.1)


@pytest.fixture
async def opened_pool(settings: Settings, pool_factory, fake_pool: FakePool) -> FakePool:
    await db.init_pool(settings, pool_factory=pool_factory)
    return fake_pool


@pytest.fixture
def repository() -> PageRepository:
    return PageRepository(BUNDLED)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def service(bus: EventBus, settings: Settings, pool_factory):
    async with lifespan(bus, settings, pool_factory=pool_factory) as running:
        yield running


@pytest.fixture
def client(bus: EventBus, settings: Settings) -> PagesClient:
    return PagesClient(bus, settings.queue, timeout=2.0)
