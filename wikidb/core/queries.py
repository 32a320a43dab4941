"""
Named SQL statements, loaded once at startup.

The statements live in an INI resource (section `[queries]`) so deployments
can point at another dialect without touching code. The bundled default is
`sql/db-queries.ini`.
"""

from __future__ import annotations

import configparser
import enum
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SECTION = "queries"
BUNDLED_RESOURCE = "sql/db-queries.ini"


class SqlQuery(enum.Enum):
    CREATE_PAGES_TABLE = "sql.create.db"
    ALL_PAGES = "sql.page.get.all"
    GET_PAGE = "sql.page.get.one"
    CREATE_PAGE = "sql.page.create"
    SAVE_PAGE = "sql.page.update"
    DELETE_PAGE = "sql.page.delete"


@dataclass(frozen=True)
class QueryCatalog:
    statements: Mapping[SqlQuery, str]

    def __getitem__(self, key: SqlQuery) -> str:
        return self.statements[key]

    def __len__(self) -> int:
        return len(self.statements)


def _read_source(path: str | None) -> tuple[str, str]:
    if path:
        try:
            return Path(path).read_text(encoding="utf-8"), path
        except OSError as exc:
            raise ConfigurationError(f"Cannot read SQL queries file {path}: {exc}") from exc

    try:
        resource = resources.files(__package__).joinpath(BUNDLED_RESOURCE)
        return resource.read_text(encoding="utf-8"), f"<bundled {BUNDLED_RESOURCE}>"
    except (OSError, ModuleNotFoundError) as exc:
        raise ConfigurationError(f"Cannot read bundled SQL queries: {exc}") from exc


def parse_queries(text: str, *, source: str = "<string>") -> QueryCatalog:
    parser = configparser.ConfigParser(interpolation=None)
    # Keys are the dotted property names; keep them case-sensitive.
    parser.optionxform = str  # type: ignore[assignment]
    try:
        parser.read_string(text, source=source)
    except configparser.Error as exc:
        raise ConfigurationError(f"Malformed SQL queries in {source}: {exc}") from exc

    if not parser.has_section(SECTION):
        raise ConfigurationError(f"Missing [{SECTION}] section in {source}.")

    statements: dict[SqlQuery, str] = {}
    for key in SqlQuery:
        sql = parser.get(SECTION, key.value, fallback="").strip()
        if not sql:
            raise ConfigurationError(f"Missing SQL query '{key.value}' in {source}.")
        statements[key] = sql

    return QueryCatalog(MappingProxyType(statements))


def load_queries(path: str | None = None) -> QueryCatalog:
    """
    Load all statements from `path`, or from the bundled resource when unset.

    Raises ConfigurationError when the source cannot be read or any key is
    missing; the service must not start with a partial catalog.
    """
    text, source = _read_source(path)
    catalog = parse_queries(text, source=source)
    logger.info("sql_queries_loaded source=%s count=%s", source, len(catalog))
    return catalog
