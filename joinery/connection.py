import asyncio
import logging
import urllib.parse
from typing import Any

from .dialects import Dialect, get_dialect_for_scheme
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


_urls: dict[str, str] = {}
_managers: dict[str, "ConnectionManager"] = {}


def connect(database_url: str, name: str = "default"):
    """Register the database URL for a connection name. Nothing is opened until first use."""
    if not isinstance(database_url, str):
        raise ConfigurationError(f"database_url must be a str, got {type(database_url).__name__}")
    previous = _managers.pop(name, None)
    if previous is not None and previous.is_open:
        logger.warning("Connection `%s` re-registered while open; call close_connections()", name)
    _urls[name] = database_url


class ConnectionManager:
    """Holds the shared driver connection for one connection name."""

    def __init__(self, url: str):
        self.url = url
        self.dialect: Dialect = get_dialect_for_scheme(urllib.parse.urlparse(url).scheme)
        self._connection: Any = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    async def open(self) -> Any:
        """Open a new connection, independent from the shared one (used by transactions)."""
        return await self.dialect.connect(self.url)

    async def get_connection(self) -> Any:
        async with self._lock:
            if self._connection is None:
                self._connection = await self.open()
        return self._connection

    async def execute(self, sql: str, parameters: tuple = ()) -> list[dict[str, Any]]:
        connection = await self.get_connection()
        return await self.dialect.execute(connection, sql, parameters)

    async def close(self):
        if self._connection is not None:
            connection, self._connection = self._connection, None
            await connection.close()


def get_connection_manager(name: str = "default") -> ConnectionManager:
    try:
        url = _urls[name]
    except KeyError as error:
        raise ConfigurationError(f"No connection configured with name=`{name}`") from error
    if name not in _managers:
        _managers[name] = ConnectionManager(url)
    return _managers[name]


def get_dialect(name: str = "default") -> Dialect:
    return get_connection_manager(name).dialect


async def close_connections():
    """Close every shared connection; they reopen on next use."""
    managers = list(_managers.values())
    _managers.clear()
    for manager in managers:
        await manager.close()
