"""
Bus endpoint for the page store.

Flow per message:
1) read the `action` header (missing -> NO_ACTION_SPECIFIED)
2) look up the handler (unknown -> BAD_ACTION, echoing the tag)
3) run the repository operation and reply, or fail with DB_ERROR

Routing failures are answered before any database access.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ValidationError

from wikidb.core.bus import Message
from wikidb.core.errors import DbError

from . import schemas
from .repository import PageRepository
from .schemas import ACTION_HEADER, OK, Action, ErrorCode

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Any], Awaitable[Any]]


def _coerce_id(value: int | str | None) -> int | str | None:
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return value


def _parse(model: type[BaseModel], body: Any) -> Any:
    return model.model_validate(body if isinstance(body, Mapping) else {})


class PageDispatcher:
    def __init__(self, repository: PageRepository):
        self.repository = repository
        self.handlers: Mapping[Action, ActionHandler] = MappingProxyType(
            {
                Action.ALL_PAGES: self._all_pages,
                Action.GET_PAGE: self._get_page,
                Action.CREATE_PAGE: self._create_page,
                Action.UPDATE_PAGE: self._update_page,
                Action.DELETE_PAGE: self._delete_page,
            }
        )

    async def on_message(self, message: Message) -> None:
        tag = message.headers.get(ACTION_HEADER)
        if tag is None:
            message.fail(ErrorCode.NO_ACTION_SPECIFIED, "No action header specified")
            return

        try:
            action = Action(tag)
        except ValueError:
            message.fail(ErrorCode.BAD_ACTION, f"Bad action: {tag}")
            return

        try:
            payload = await self.handlers[action](message.body)
        except (DbError, ValidationError) as exc:
            logger.error("pages_query_failed action=%s cause=%s", action.value, exc, exc_info=exc)
            message.fail(ErrorCode.DB_ERROR, str(exc))
            return

        message.reply(payload)

    async def _all_pages(self, body: Any) -> dict:
        titles = await self.repository.fetch_all_pages()
        return schemas.PagesReply(pages=titles).model_dump()

    async def _get_page(self, body: Any) -> dict:
        request = _parse(schemas.GetPageRequest, body)
        lookup = await self.repository.fetch_page(request.page)
        return lookup.to_reply()

    async def _create_page(self, body: Any) -> str:
        request = _parse(schemas.CreatePageRequest, body)
        await self.repository.create_page(request.title, request.markdown)
        return OK

    async def _update_page(self, body: Any) -> str:
        request = _parse(schemas.UpdatePageRequest, body)
        await self.repository.save_page(_coerce_id(request.id), request.markdown)
        return OK

    async def _delete_page(self, body: Any) -> str:
        request = _parse(schemas.DeletePageRequest, body)
        await self.repository.delete_page(_coerce_id(request.id))
        return OK
