"""
Error taxonomy.

- ConfigurationError: startup-fatal (settings, query catalog, driver).
- DbError: per-request database failure, reported to the caller.
"""

from __future__ import annotations


class WikiDbError(RuntimeError):
    pass


class ConfigurationError(WikiDbError):
    pass


class DbError(WikiDbError):
    pass


# Pool exhaustion, connectivity loss or a pool that is not open.
class DbConnectionError(DbError):
    pass
