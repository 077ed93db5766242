"""AND/OR groupings of conditions, subqueries and raw fragments."""

from __future__ import annotations
from typing import Any, Literal

from ._bases import Expression, SqlFragment, render_value


class Grouping(Expression):
    """Combine items with AND or OR.

    ``value`` is one item or a list of items. An item can be an expression,
    a subquery, a ``{field: value}`` mapping (an AND of its conditions) or a
    plain value, bound as a parameter. A single item renders without
    parentheses; two or more are wrapped in one pair.
    """

    type: Literal["and", "or"]
    value: Any = None

    def render(self, query: Any) -> SqlFragment:
        items = self.value if isinstance(self.value, (list, tuple)) else [self.value]
        parts: list[str] = []
        values: tuple[Any, ...] = ()
        for item in items:
            sql, item_values = render_value(item, query)
            if not sql:
                continue
            parts.append(sql)
            values += item_values
        if not parts:
            return "", ()
        if len(parts) == 1:
            return parts[0], values
        return "(" + f" {self.type.upper()} ".join(parts) + ")", values


def and_(*items: Any) -> Grouping:
    return Grouping(type="and", value=list(items))


def or_(*items: Any) -> Grouping:
    return Grouping(type="or", value=list(items))
