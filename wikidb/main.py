"""
Service lifecycle for the page store.

Startup (each step fatal, nothing left half-open on failure):
1) load the SQL query catalog
2) open the shared connection pool
3) create the pages table if needed (one scoped connection)
4) register `instances` dispatchers on the bus address

Shutdown unregisters the dispatchers and closes the pool.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from wikidb.core import db
from wikidb.core.bus import EventBus, Registration
from wikidb.core.errors import DbError
from wikidb.core.queries import QueryCatalog, load_queries
from wikidb.core.settings import Settings, load_settings
from wikidb.pages.dispatcher import PageDispatcher
from wikidb.pages.repository import PageRepository

logger = logging.getLogger(__name__)


class WikiDatabaseService:
    def __init__(
        self,
        bus: EventBus,
        settings: Settings | None = None,
        *,
        pool_factory: db.PoolFactory | None = None,
    ):
        self.bus = bus
        self.settings = settings or load_settings()
        self.pool_factory = pool_factory
        self.queries: QueryCatalog | None = None
        self.registrations: list[Registration] = []

    @property
    def running(self) -> bool:
        return bool(self.registrations)

    async def start(self) -> None:
        if self.running:
            return None

        self.queries = load_queries(self.settings.queries_file)
        await db.init_pool(self.settings, pool_factory=self.pool_factory)

        repository = PageRepository(self.queries)
        try:
            await repository.create_pages_table()
        except DbError:
            logger.exception("database_preparation_failed")
            await db.close_pool()
            raise
        logger.info("database_ready")

        for _ in range(self.settings.instances):
            dispatcher = PageDispatcher(repository)
            self.registrations.append(self.bus.consumer(self.settings.queue, dispatcher.on_message))

        logger.info(
            "wikidb_service_started queue=%s instances=%s",
            self.settings.queue,
            self.settings.instances,
        )

    async def stop(self) -> None:
        for registration in self.registrations:
            registration.unregister()
        self.registrations = []
        await db.close_pool()
        logger.info("wikidb_service_stopped queue=%s", self.settings.queue)


@asynccontextmanager
async def lifespan(
    bus: EventBus,
    settings: Settings | None = None,
    *,
    pool_factory: db.PoolFactory | None = None,
) -> AsyncIterator[WikiDatabaseService]:
    service = WikiDatabaseService(bus, settings, pool_factory=pool_factory)
    await service.start()
    try:
        yield service
    finally:
        await service.stop()
