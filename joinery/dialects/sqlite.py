"""SQLite dialect, on top of aiosqlite."""

import logging
import urllib.parse

from typing import Any, ClassVar, Optional

import aiosqlite

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)
    SUPPORTS_LOCKING: ClassVar[bool] = False

    def limit_offset(self, limit: Optional[int], offset: Optional[int]) -> str:
        # SQLite does not accept OFFSET without LIMIT
        if limit is None and offset is not None:
            limit = -1
        return super().limit_offset(limit, offset)

    async def connect(self, url: str) -> aiosqlite.Connection:
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname
        logger.debug("Connecting to SQLite database %s", path)
        connection = await aiosqlite.connect(path, isolation_level=None)
        connection.row_factory = aiosqlite.Row
        await connection.execute("PRAGMA foreign_keys = ON")
        return connection

    async def execute(self, connection: aiosqlite.Connection, sql: str, parameters: tuple = ()) -> list[dict[str, Any]]:
        async with connection.execute(sql, tuple(parameters)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]
