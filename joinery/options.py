"""Query options: the value object a Query carries, and the names `set_options` accepts."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field as PydanticField


class SelectedField(BaseModel):
    """One output column: a schema field, or a raw expression, under an output key."""

    model_config = {"arbitrary_types_allowed": True}

    alias: str
    field: Any = None  # Field
    raw: Any = None  # Raw


class OrderBy(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    field: Any  # Field
    direction: Literal["asc", "desc"] = "asc"


class Locking(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    transaction: Any = None
    for_update: bool = False
    for_share: bool = False


WHERE_FAMILY = ("where", "where_not", "or_where", "or_where_not")
HAVING_FAMILY = ("having", "having_not", "or_having", "or_having_not")


class QueryOptions(BaseModel):
    """Everything configured on one query. Children carry their own instance."""

    model_config = {"arbitrary_types_allowed": True}

    fields: Optional[list[SelectedField]] = None
    where: list[Any] = PydanticField(default_factory=list)
    where_not: list[Any] = PydanticField(default_factory=list)
    or_where: list[Any] = PydanticField(default_factory=list)
    or_where_not: list[Any] = PydanticField(default_factory=list)
    having: list[Any] = PydanticField(default_factory=list)
    having_not: list[Any] = PydanticField(default_factory=list)
    or_having: list[Any] = PydanticField(default_factory=list)
    or_having_not: list[Any] = PydanticField(default_factory=list)
    group_by: list[Any] = PydanticField(default_factory=list)
    order_by: list[OrderBy] = PydanticField(default_factory=list)
    on: list[Any] = PydanticField(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    first: bool = False
    require: bool = False
    forge: bool = True
    as_: Optional[str] = None
    batch_size: Optional[int] = None
    locking: Optional[Locking] = None

    def copy_lists(self) -> "QueryOptions":
        """Copy whose list options can be extended without touching this one."""
        update = {
            name: list(value)
            for name, value in self.__dict__.items()
            if isinstance(value, list)
        }
        return self.model_copy(update=update)


# option name -> Query method
OPTION_METHODS: dict[str, str] = {
    "fields": "fields",
    "field": "field",
    "returning": "returning",
    "where": "where",
    "where_not": "where_not",
    "or_where": "or_where",
    "or_where_not": "or_where_not",
    "having": "having",
    "having_not": "having_not",
    "or_having": "or_having",
    "or_having_not": "or_having_not",
    "group_by": "group_by",
    "order_by": "order_by",
    "limit": "limit",
    "offset": "offset",
    "first": "first",
    "require": "require",
    "forge": "forge",
    "as": "as_",
    "on": "on",
    "join": "join",
    "inner_join": "inner_join",
    "left_join": "left_join",
    "transaction": "transaction",
    "within": "within",
    "batch_size": "batch_size",
}

# names that exist on Query but cannot be set as options
DISALLOWED_OPTIONS = frozenset({
    "fetch", "insert", "update", "delete", "count", "save",
    "set_options", "clone", "to_sql", "to_subquery_sql",
})
