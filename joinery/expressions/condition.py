"""Leaf conditions of a boolean expression tree."""

from __future__ import annotations
from typing import Any, Callable, Literal, Mapping

from ..errors import UsageError
from ._bases import Expression, SqlFragment, render_value


ConditionType = Literal[
    "equal_to", "not_equal_to",
    "greater_than", "greater_than_or_equal_to",
    "less_than", "less_than_or_equal_to",
    "like", "ilike",
    "in", "not_in",
    "between", "not_between",
    "is_null", "is_not_null",
    "exists", "not_exists",
    "not",
]

COMPARISON_OPERATORS: dict[str, str] = {
    "equal_to": "=",
    "not_equal_to": "<>",
    "greater_than": ">",
    "greater_than_or_equal_to": ">=",
    "less_than": "<",
    "less_than_or_equal_to": "<=",
    "like": "LIKE",
}

# types that take no field: they wrap their value
_UNARY = {"exists": "EXISTS", "not_exists": "NOT EXISTS", "not": "NOT"}


class Condition(Expression):
    """A typed condition on one field, e.g. ``Condition(type="greater_than", field="age", value=18)``.

    ``exists``, ``not_exists`` and ``not`` take no field and wrap their value
    (a subquery, a raw fragment, another expression or a ``{field: value}``
    mapping). Plain operands are bound through the field's ``serialize``.
    """

    type: ConditionType
    field: Any = None
    value: Any = None

    @classmethod
    def from_pair(cls, field: Any, value: Any) -> Condition:
        """Build the condition implied by a ``{field: value}`` mapping entry.

        None tests for NULL, sequences test membership, a field-less Condition
        is bound to the field, and anything else is compared for equality.
        """
        if value is None:
            return cls(type="is_null", field=field)
        if isinstance(value, Condition) and value.field is None and value.type not in _UNARY:
            return value.model_copy(update={"field": field})
        if isinstance(value, (list, tuple, set, frozenset)):
            return cls(type="in", field=field, value=list(value))
        return cls(type="equal_to", field=field, value=value)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> list[Condition]:
        return [cls.from_pair(field, value) for field, value in mapping.items()]

    def render(self, query: Any) -> SqlFragment:
        if self.type in _UNARY:
            sql, values = render_value(self.value, query)
            if not sql:
                return "", ()
            if self.type == "not" and not isinstance(self.value, Condition):
                sql = f"({sql})"
            return f"{_UNARY[self.type]} {sql}", values

        if self.field is None:
            raise UsageError(f"Condition '{self.type}' requires a field")
        field = query.get_field(self.field)
        column = query.get_column(field)
        serialize = field.serialize

        if self.type == "is_null":
            return f"{column} IS NULL", ()
        if self.type == "is_not_null":
            return f"{column} IS NOT NULL", ()
        if self.type in ("in", "not_in"):
            operator = "IN" if self.type == "in" else "NOT IN"
            sql, values = self._render_list(query, serialize)
            return f"{column} {operator} {sql}", values
        if self.type in ("between", "not_between"):
            operator = "BETWEEN" if self.type == "between" else "NOT BETWEEN"
            try:
                low, high = self.value
            except (TypeError, ValueError):
                raise UsageError(f"'{self.type}' needs exactly two values, got {self.value!r}") from None
            low_sql, low_values = render_value(low, query, serialize)
            high_sql, high_values = render_value(high, query, serialize)
            return f"{column} {operator} {low_sql} AND {high_sql}", low_values + high_values
        if self.type == "ilike":
            sql, values = render_value(self.value, query, serialize)
            return f"LOWER({column}) LIKE LOWER({sql})", values

        sql, values = render_value(self.value, query, serialize)
        return f"{column} {COMPARISON_OPERATORS[self.type]} {sql}", values

    def _render_list(self, query: Any, serialize: Callable[[Any], Any]) -> SqlFragment:
        value = self.value
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=repr)
        if not isinstance(value, (list, tuple)):
            sql, values = render_value(value, query, serialize)
            if sql == "?":
                return "(?)", values
            return sql, values
        parts, values = [], ()
        for item in value:
            item_sql, item_values = render_value(item, query, serialize)
            parts.append(item_sql)
            values += item_values
        return f"({', '.join(parts)})", values
