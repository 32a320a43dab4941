"""
Page persistence (raw SQL from the query catalog).

Each operation runs exactly one statement on a scoped connection. Failures
are raised as `DbError` and never retried.
"""

from __future__ import annotations

import logging
from typing import Any

from wikidb.core import db
from wikidb.core.errors import DbError
from wikidb.core.queries import QueryCatalog, SqlQuery

from .schemas import PageLookup

logger = logging.getLogger(__name__)


def _column(row: tuple[Any, ...], index: int, query: SqlQuery) -> Any:
    try:
        return row[index]
    except IndexError:
        raise DbError(f"{query.value} returned {len(row)} column(s), expected at least {index + 1}") from None


class PageRepository:
    def __init__(self, queries: QueryCatalog):
        self.queries = queries

    async def create_pages_table(self) -> None:
        await db.execute(self.queries[SqlQuery.CREATE_PAGES_TABLE])

    async def fetch_all_pages(self) -> list[str]:
        """
        Return every page title, sorted ascending.
        """
        rows = await db.fetch_all(self.queries[SqlQuery.ALL_PAGES])
        return sorted(str(_column(row, 0, SqlQuery.ALL_PAGES)) for row in rows)

    async def fetch_page(self, title: str | None) -> PageLookup:
        rows = await db.fetch_all(self.queries[SqlQuery.GET_PAGE], title)
        if not rows:
            return PageLookup(found=False)

        if len(rows) > 1:
            # Titles are not unique in the schema; the first match wins.
            logger.warning("page_title_ambiguous title=%s matches=%s", title, len(rows))

        row = rows[0]
        content = _column(row, 1, SqlQuery.GET_PAGE)
        try:
            page_id = int(_column(row, 0, SqlQuery.GET_PAGE))
        except (TypeError, ValueError) as exc:
            raise DbError(f"{SqlQuery.GET_PAGE.value} returned a non-integer id: {exc}") from exc
        return PageLookup(found=True, id=page_id, raw_content=content)

    async def create_page(self, title: str | None, markdown: str | None) -> None:
        await db.execute(self.queries[SqlQuery.CREATE_PAGE], title, markdown)

    async def save_page(self, page_id: int | str | None, markdown: str | None) -> None:
        # An id matching no row updates nothing and still succeeds.
        await db.execute(self.queries[SqlQuery.SAVE_PAGE], markdown, page_id)

    async def delete_page(self, page_id: int | str | None) -> None:
        await db.execute(self.queries[SqlQuery.DELETE_PAGE], page_id)
