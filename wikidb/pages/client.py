"""
Typed client for the page store bus endpoint.

Collaborators (HTTP handlers, scripts, tests) use this instead of building
action-tagged messages by hand. Failed replies raise `ReplyError`.
"""

from __future__ import annotations

from typing import Any

from wikidb.core.bus import DEFAULT_SEND_TIMEOUT, EventBus
from wikidb.core.settings import DEFAULT_QUEUE

from .schemas import ACTION_HEADER, Action, PageLookup


class PagesClient:
    def __init__(self, bus: EventBus, address: str = DEFAULT_QUEUE, *, timeout: float = DEFAULT_SEND_TIMEOUT):
        self.bus = bus
        self.address = address
        self.timeout = timeout

    async def _send(self, action: Action, body: dict[str, Any] | None = None) -> Any:
        return await self.bus.request(
            self.address,
            body or {},
            headers={ACTION_HEADER: action.value},
            timeout=self.timeout,
        )

    async def fetch_all_pages(self) -> list[str]:
        reply = await self._send(Action.ALL_PAGES)
        return list(reply["pages"])

    async def fetch_page(self, title: str) -> PageLookup:
        reply = await self._send(Action.GET_PAGE, {"page": title})
        return PageLookup.model_validate(reply)

    async def create_page(self, title: str, markdown: str) -> None:
        await self._send(Action.CREATE_PAGE, {"title": title, "markdown": markdown})

    async def save_page(self, page_id: int, markdown: str, *, title: str | None = None) -> None:
        body: dict[str, Any] = {"id": page_id, "markdown": markdown}
        if title is not None:
            body["title"] = title
        await self._send(Action.UPDATE_PAGE, body)

    async def delete_page(self, page_id: int) -> None:
        await self._send(Action.DELETE_PAGE, {"id": page_id})
