"""Statement builder: accumulates clauses, renders parameterized SQL and runs it.

The builder knows nothing about schemas. Callers hand it SQL fragments that
are already rendered (qualified columns, predicates with ``?`` placeholders)
together with their values; the builder puts them in SQL order and keeps
the values aligned with the placeholders.
"""

import logging
from typing import Any, Iterable, Literal, Optional

from .connection import get_connection_manager
from .dialects import Dialect

logger = logging.getLogger("joinery")


# (boolean, negated, sql, values)
Predicate = tuple[str, bool, str, tuple]


class SqlBuilder:

    def __init__(self, table: str, alias: Optional[str] = None, *, dialect: Dialect, connection_name: str = "default"):
        self.table = table
        self.alias = alias or table
        self.dialect = dialect
        self.connection_name = connection_name
        self._columns: list[tuple[str, Optional[str], tuple]] = []
        self._returning: list[tuple[str, str]] = []
        self._where: list[Predicate] = []
        self._having: list[Predicate] = []
        self._joins: list[str] = []
        self._group_by: list[str] = []
        self._order_by: list[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._count: Optional[str] = None
        self._transaction: Any = None
        self._for_update = False
        self._for_share = False

    def quote(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    def qualify(self, alias: str, column: str) -> str:
        """Render a qualified column, e.g. "t1"."user_id"."""
        return f"{self.quote(alias)}.{self.quote(column)}"

    # select list

    def columns(self, columns: Iterable[tuple[str, Optional[str], tuple]]) -> "SqlBuilder":
        """Add (sql, output alias, values) entries to the select list."""
        self._columns.extend(columns)
        return self

    def returning(self, columns: Iterable[tuple[str, str]]) -> "SqlBuilder":
        """Add (column, output alias) entries to the RETURNING list."""
        self._returning.extend(columns)
        return self

    def count(self, column: Optional[str] = None, distinct: bool = False) -> "SqlBuilder":
        expression = f"DISTINCT {column}" if distinct and column else (column or "*")
        self._count = f"COUNT({expression}) AS {self.quote('count')}"
        return self

    # predicates

    def where(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._where.append(("AND", False, sql, tuple(values)))
        return self

    def where_not(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._where.append(("AND", True, sql, tuple(values)))
        return self

    def or_where(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._where.append(("OR", False, sql, tuple(values)))
        return self

    def or_where_not(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._where.append(("OR", True, sql, tuple(values)))
        return self

    def having(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._having.append(("AND", False, sql, tuple(values)))
        return self

    def having_not(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._having.append(("AND", True, sql, tuple(values)))
        return self

    def or_having(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._having.append(("OR", False, sql, tuple(values)))
        return self

    def or_having_not(self, sql: str, values: Iterable[Any] = ()) -> "SqlBuilder":
        self._having.append(("OR", True, sql, tuple(values)))
        return self

    # other clauses

    def join(self, kind: Literal["inner", "left"], table: str, alias: str, on: dict[str, str]) -> "SqlBuilder":
        """Add a join; `on` maps rendered child columns to rendered parent columns."""
        condition = " AND ".join(f"{left} = {right}" for left, right in on.items())
        self._joins.append(f"{kind.upper()} JOIN {self.quote(table)} AS {self.quote(alias)} ON {condition}")
        return self

    def group_by(self, *columns: str) -> "SqlBuilder":
        self._group_by.extend(columns)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "SqlBuilder":
        self._order_by.append(f"{column} {direction.upper()}")
        return self

    def limit(self, limit: int) -> "SqlBuilder":
        self._limit = limit
        return self

    def offset(self, offset: int) -> "SqlBuilder":
        self._offset = offset
        return self

    def transacting(self, transaction: Any) -> "SqlBuilder":
        self._transaction = transaction
        return self

    def for_update(self) -> "SqlBuilder":
        self._for_update = True
        return self

    def for_share(self) -> "SqlBuilder":
        self._for_share = True
        return self

    # rendering

    @staticmethod
    def _render_predicates(predicates: list[Predicate]) -> tuple[str, tuple]:
        sql, values = "", ()
        for index, (boolean, negated, text, text_values) in enumerate(predicates):
            if negated:
                text = f"NOT ({text})"
            sql += text if index == 0 else f" {boolean} {text}"
            values += text_values
        return sql, values

    def _render_from(self) -> str:
        if self.alias == self.table:
            return f"FROM {self.quote(self.table)}"
        return f"FROM {self.quote(self.table)} AS {self.quote(self.alias)}"

    def _render_where(self) -> tuple[str, tuple]:
        if not self._where:
            return "", ()
        sql, values = self._render_predicates(self._where)
        return f"WHERE {sql}", values

    def _render_returning(self) -> str:
        if not self._returning:
            return ""
        return "RETURNING " + ", ".join(
            f"{column} AS {self.quote(alias)}" for column, alias in self._returning
        )

    def to_select(self) -> tuple[str, tuple]:
        """Render the SELECT statement and its values."""
        values: tuple = ()
        if self._count is not None:
            select = self._count
        elif self._columns:
            parts = []
            for sql, alias, column_values in self._columns:
                parts.append(f"{sql} AS {self.quote(alias)}" if alias else sql)
                values += tuple(column_values)
            select = ", ".join(parts)
        else:
            select = "*"
        clauses = [f"SELECT {select}", self._render_from(), *self._joins]
        where, where_values = self._render_where()
        clauses.append(where)
        values += where_values
        if self._group_by:
            clauses.append("GROUP BY " + ", ".join(self._group_by))
        if self._having:
            having, having_values = self._render_predicates(self._having)
            clauses.append(f"HAVING {having}")
            values += having_values
        if self._order_by:
            clauses.append("ORDER BY " + ", ".join(self._order_by))
        clauses.append(self.dialect.limit_offset(self._limit, self._offset))
        clauses.append(self.dialect.lock_clause(self._for_update, self._for_share))
        return " ".join(clause for clause in clauses if clause), values

    def to_insert(self, rows: list[dict[str, Any]]) -> tuple[str, tuple]:
        """Render a multi-row INSERT; columns missing from a row are bound as NULL."""
        columns: list[str] = []
        for row in rows:
            columns.extend(column for column in row if column not in columns)
        table = self.quote(self.table)
        if not columns:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
            values: tuple = ()
        else:
            placeholders = "(" + ", ".join("?" for _ in columns) + ")"
            sql = (
                f"INSERT INTO {table} ({', '.join(self.quote(column) for column in columns)}) "
                f"VALUES {', '.join(placeholders for _ in rows)}"
            )
            values = tuple(row.get(column) for row in rows for column in columns)
        returning = self._render_returning()
        return f"{sql} {returning}".strip(), values

    def to_update(self, row: dict[str, Any]) -> tuple[str, tuple]:
        assignments = ", ".join(f"{self.quote(column)} = ?" for column in row)
        values = tuple(row.values())
        where, where_values = self._render_where()
        clauses = [f"UPDATE {self.quote(self.table)} SET {assignments}", where, self._render_returning()]
        return " ".join(clause for clause in clauses if clause), values + where_values

    def to_delete(self) -> tuple[str, tuple]:
        where, values = self._render_where()
        clauses = [f"DELETE FROM {self.quote(self.table)}", where, self._render_returning()]
        return " ".join(clause for clause in clauses if clause), values

    # execution

    async def execute(self, sql: str, values: tuple = ()) -> list[dict[str, Any]]:
        logger.debug("%s %s", sql, values)
        if self._transaction is not None:
            return await self._transaction.execute(sql, values)
        return await get_connection_manager(self.connection_name).execute(sql, values)

    async def select(self) -> list[dict[str, Any]]:
        return await self.execute(*self.to_select())

    async def first(self) -> Optional[dict[str, Any]]:
        self._limit = 1
        rows = await self.select()
        return rows[0] if rows else None

    async def insert(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if rows and not any(rows):
            # DEFAULT VALUES inserts a single row
            result = []
            for _ in rows:
                result += await self.execute(*self.to_insert([{}]))
            return result
        return await self.execute(*self.to_insert(rows))

    async def update(self, row: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.execute(*self.to_update(row))

    async def delete(self) -> list[dict[str, Any]]:
        return await self.execute(*self.to_delete())
