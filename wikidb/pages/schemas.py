"""
Pydantic schemas for page messages (request bodies and reply payloads).

Request fields are optional on purpose: shape validation belongs to the
caller, and a missing value surfaces as a storage error (e.g. NOT NULL).
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ACTION_HEADER = "action"
OK = "ok"


class Action(str, enum.Enum):
    ALL_PAGES = "all-pages"
    GET_PAGE = "get-page"
    CREATE_PAGE = "create-page"
    UPDATE_PAGE = "update-page"
    DELETE_PAGE = "delete-page"


class ErrorCode(enum.IntEnum):
    NO_ACTION_SPECIFIED = 0
    BAD_ACTION = 1
    DB_ERROR = 2


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GetPageRequest(_Request):
    page: str | None = None


class CreatePageRequest(_Request):
    title: str | None = None
    markdown: str | None = None


class UpdatePageRequest(_Request):
    id: int | str | None = None
    # Carried by callers for symmetry with create; update never changes it.
    title: str | None = None
    markdown: str | None = None


class DeletePageRequest(_Request):
    id: int | str | None = None


class PagesReply(BaseModel):
    pages: list[str] = Field(default_factory=list)


class PageLookup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    found: bool
    id: int | None = None
    raw_content: str | None = Field(default=None, alias="rawContent")

    def to_reply(self) -> dict[str, Any]:
        if not self.found:
            return {"found": False}
        return {"found": True, "id": self.id, "rawContent": self.raw_content}
