"""Boolean expression trees for where/having clauses.

Every node renders against a query to ``(sql, values)``: SQL text with ``?``
placeholders and the bound values in the same left-to-right order.
"""

from ._bases import Expression, SqlFragment, render_value
from .condition import Condition, ConditionType
from .grouping import Grouping, and_, or_
from .raw import Raw

__all__ = [
    "Condition",
    "ConditionType",
    "Expression",
    "Grouping",
    "Raw",
    "SqlFragment",
    "and_",
    "or_",
    "render_value",
]
