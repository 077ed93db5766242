import logging
import contextvars
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from .connection import ConnectionManager, get_connection_manager
from .errors import TransactionError

logger = logging.getLogger(__name__)


class TransactionManager:

    def __init__(self, name: str):
        """
        Initialize the transaction manager.

        Args:
            name: The connection name transactions are opened on
        """
        self.name = name
        self._current: contextvars.ContextVar = contextvars.ContextVar(f"joinery_transaction_{name}", default=None)

    @property
    def connection_manager(self) -> ConnectionManager:
        return get_connection_manager(self.name)

    # transaction level

    def get_transaction_level(self) -> int:
        """Get current transaction nesting level in this context"""
        current = self._current.get()
        return current.level if current is not None else 0

    # actual transaction itself

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Transaction"]:
        """
        Async context manager for database transactions with SAVEPOINT support.

        The outermost level runs on a dedicated connection, so statements
        issued outside the transaction never join it.

        Yields:
            Transaction: handle to pass to Query.transaction()
        """
        parent = self._current.get()
        manager = self.connection_manager
        if parent is None:
            connection = await manager.open()
            level = 1
        else:
            connection = parent.connection
            level = parent.level + 1

        savepoint_name = f"savepoint_{level}" if level > 1 else None
        transaction_obj = Transaction(connection, self, level, manager.dialect)
        token = self._current.set(transaction_obj)

        try:
            if savepoint_name:
                await transaction_obj.run(f"SAVEPOINT {savepoint_name}")
            else:
                await transaction_obj.run("BEGIN")

            yield transaction_obj

            if savepoint_name:
                await transaction_obj.run(f"RELEASE SAVEPOINT {savepoint_name}")
            else:
                await transaction_obj.run("COMMIT")

        except BaseException:
            if savepoint_name:
                await transaction_obj.run(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
                await transaction_obj.run(f"RELEASE SAVEPOINT {savepoint_name}")
            else:
                await transaction_obj.run("ROLLBACK")
            raise
        finally:
            transaction_obj._active = False
            self._current.reset(token)
            if parent is None:
                await connection.close()


class Transaction:
    """A transaction handle: statements executed through it share one connection."""

    def __init__(self, connection: Any, manager: TransactionManager, level: int, dialect):
        self.connection = connection
        self.level = level
        self.dialect = dialect
        self._manager = manager
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    async def run(self, sql: str):
        logger.debug(sql)
        await self.dialect.execute(self.connection, sql)

    async def execute(self, sql: str, parameters: tuple = ()) -> list[dict[str, Any]]:
        """
        Execute a statement within this transaction.

        Args:
            sql: SQL statement to execute
            parameters: Bound values, in placeholder order

        Returns:
            list[dict]: the rows returned by the statement

        Raises:
            TransactionError: If the transaction is closed, or a nested one is active
        """
        if not self._active:
            raise TransactionError("Transaction is no longer active")

        current_level = self._manager.get_transaction_level()
        if current_level > self.level:
            raise TransactionError(
                f"Cannot use transaction level {self.level} from level {current_level}. "
                "Higher-level transactions cannot be accessed from nested transactions."
            )
        return await self.dialect.execute(self.connection, sql, parameters)


_transaction_managers: dict[str, TransactionManager] = {}


def transaction(connection_name: str = "default"):
    """Open a transaction (or a savepoint, when nested) on a named connection.

    Usage::

        async with transaction() as trx:
            await Query(User).transaction(trx).insert({"name": "Alice"})
    """
    if connection_name not in _transaction_managers:
        _transaction_managers[connection_name] = TransactionManager(connection_name)
    return _transaction_managers[connection_name].transaction()
