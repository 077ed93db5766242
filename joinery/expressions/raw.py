from typing import Any

from pydantic import Field as PydanticField

from ._bases import Expression, SqlFragment


class Raw(Expression):
    """SQL inserted verbatim, with its own bound values."""

    sql: str
    values: tuple[Any, ...] = PydanticField(default_factory=tuple)

    def __init__(self, sql: str, values: Any = (), **data):
        super().__init__(sql=sql, values=tuple(values), **data)

    def render(self, query: Any) -> SqlFragment:
        return self.sql, self.values
