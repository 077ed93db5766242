"""Base expression type, and rendering of values found inside expressions."""

from __future__ import annotations
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel


SqlFragment = tuple[str, tuple[Any, ...]]


class Expression(BaseModel):
    """Base type for boolean expression nodes.

    Subclasses implement ``render(query)``, returning the SQL text with ``?``
    placeholders and the bound values in the same order. The query supplies
    field resolution (columns are qualified with its alias).
    """

    model_config = {"arbitrary_types_allowed": True}

    def render(self, query: Any) -> SqlFragment:
        raise NotImplementedError("Subclasses must implement `render`")

    def __and__(self, other: Any):
        from .grouping import Grouping
        return Grouping(type="and", value=[self, other])

    def __or__(self, other: Any):
        from .grouping import Grouping
        return Grouping(type="or", value=[self, other])

    def __invert__(self):
        from .condition import Condition
        return Condition(type="not", value=self)


def render_value(value: Any, query: Any, serialize: Optional[Callable[[Any], Any]] = None) -> SqlFragment:
    """Render an operand: expressions and subqueries inline, anything else as a placeholder.

    Operands compared with a field pass that field's ``serialize``, which
    converts plain values (mappings included) for binding. Elsewhere a
    ``{field: value}`` mapping renders as an AND of its conditions.
    """
    from ..query import Query

    if isinstance(value, Expression):
        return value.render(query)
    if isinstance(value, Query):
        sql, values = value.to_subquery_sql()
        return f"({sql})", values
    if serialize is not None:
        return "?", (serialize(value),)
    if isinstance(value, Mapping):
        from .condition import Condition
        from .grouping import Grouping
        return Grouping(type="and", value=Condition.from_mapping(value)).render(query)
    return "?", (value,)
