"""Query configuration, compilation and execution for one schema.

A Query is configured through fluent option methods, and runs one of
``fetch``, ``count``, ``insert``, ``update``, ``delete`` or ``save``. Other
queries can be joined to it: a joined (child) query keeps its own options
and is compiled into the same statement as its parent, under an alias of
its own, so that a fetch runs a single SELECT whatever the join depth.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Iterable, Iterator, Mapping, Optional

from pydantic import BaseModel, Field as PydanticField

from .builder import SqlBuilder
from .connection import get_dialect
from .dialects import Dialect
from .errors import (
    ConfigurationError,
    JoineryError,
    NOT_FOUND_ERRORS,
    NoRowsCountedError,
    OPERATION_ERRORS,
    UsageError,
)
from .expressions import Condition, Expression, Grouping, Raw, render_value
from .field import Field
from .join import get_join_columns, has_reference_path, join_kind, next_alias
from .options import (
    DISALLOWED_OPTIONS,
    HAVING_FAMILY,
    OPTION_METHODS,
    WHERE_FAMILY,
    Locking,
    OrderBy,
    QueryOptions,
    SelectedField,
)
from .parser import RowParser, parse_scalars, split_row
from .schema import Schema
from .utils.naming import snake_case
from .utils.records import get_value, has_value

logger = logging.getLogger("joinery")

_DIRECTIONS = {1: "asc", -1: "desc", "asc": "asc", "desc": "desc"}


def _flatten(items: Iterable[Any]) -> Iterator[Any]:
    for item in items:
        if isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            yield item


def _chunks(items: list[Any], size: Optional[int]) -> list[list[Any]]:
    if not size:
        return [items]
    return [items[index:index + size] for index in range(0, len(items), size)]


class Query(BaseModel):
    """Fluent query on a schema: options, joins and async operations.

    Examples:
        users = await Query(User).where({"name": "Alice"}).order_by("id").fetch()
        user = await Query(User).join(Query(Image)).first().fetch()
    """

    model_config = {"arbitrary_types_allowed": True}

    model: Any
    """The Schema this query targets."""
    options: QueryOptions = PydanticField(default_factory=QueryOptions)
    children: list[Any] = PydanticField(default_factory=list)
    """Joined queries, compiled into this query's statement."""
    parent: Any = PydanticField(default=None, repr=False)
    alias: Optional[str] = None
    """Table alias in the compiled statement: the table name for roots, t<N> for children."""

    def __init__(self, model: Any = None, /, **data: Any):
        if model is None:
            raise ConfigurationError("Query requires a Schema")
        if not isinstance(model, Schema):
            raise ConfigurationError("Query requires a Schema instance")
        if not model.table:
            raise ConfigurationError(f"'{model.name}.table' is not configured")
        super().__init__(model=model, **data)
        if self.alias is None:
            self.alias = model.table

    def __eq__(self, other):
        return self is other

    def __hash__(self):
        return id(self)

    # structure

    @property
    def is_child(self) -> bool:
        return self.parent is not None

    @property
    def root(self) -> Query:
        query = self
        while query.parent is not None:
            query = query.parent
        return query

    @property
    def output_key(self) -> str:
        """Key under which this query's records are attached to parent records."""
        return self.options.as_ or snake_case(self.model.name)

    @property
    def dialect(self) -> Dialect:
        root = self.root
        locking = root.options.locking
        if locking is not None and getattr(locking.transaction, "dialect", None) is not None:
            return locking.transaction.dialect
        return get_dialect(root.model.connection_name)

    def _walk(self) -> Iterator[Query]:
        yield self
        for child in self.children:
            yield from child._walk()

    def clone(self) -> Query:
        """Copy of this query and its children, detached from any parent."""
        query = self.model_copy(update={
            "options": self.options.copy_lists(),
            "children": [],
            "parent": None,
            "alias": self.model.table,
        })
        for child in self.children:
            copy = child.clone()
            copy.parent = query
            query.children.append(copy)
        return query

    # field resolution

    def get_field(self, field: Any) -> Field:
        """Resolve a field name or Field to a field of this query's schema.

        Raises:
            UsageError: If the name is unknown, or the Field belongs to another schema.
        """
        if isinstance(field, Field):
            if field.model is not self.model:
                owner = field.model.name if field.model is not None else "?"
                raise UsageError(f"Field '{owner}.{field.name}' is not a field of '{self.model.name}'")
            return field
        if isinstance(field, str):
            return self.model.get_field(field)
        raise UsageError(f"Invalid field {field!r} for '{self.model.name}'")

    def get_column(self, field: Any) -> str:
        """Qualified column for a field, e.g. "t1"."user_id"."""
        field = self.get_field(field)
        quote = self.dialect.quote
        return f"{quote(self.alias)}.{quote(field.column)}"

    @property
    def selected_fields(self) -> list[SelectedField]:
        """Configured output fields (all fields by default), identity always included."""
        if self.options.fields is not None:
            selected = list(self.options.fields)
        else:
            selected = [SelectedField(alias=name, field=field) for name, field in self.model.fields.items()]
        identity = self.model.identity
        if not any(selection.field is identity for selection in selected):
            selected.insert(0, SelectedField(alias=identity.name, field=identity))
        return selected

    @property
    def selected_by_key(self) -> dict[str, SelectedField]:
        return {selection.alias: selection for selection in self.selected_fields}

    @property
    def identity_key(self) -> str:
        identity = self.model.identity
        for selection in self.selected_fields:
            if selection.field is identity:
                return selection.alias
        return identity.name

    # options

    def set_options(self, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Query:
        """Apply several options at once, e.g. ``set_options({"where": {...}, "first": True})``.

        Raises:
            UsageError: For unknown options, and for names that are not options
                (operations, private attributes).
        """
        for name, value in {**(options or {}), **kwargs}.items():
            if name in OPTION_METHODS:
                getattr(self, OPTION_METHODS[name])(value)
            elif name in DISALLOWED_OPTIONS or name.startswith("_"):
                raise UsageError(f"'{name}' is not an allowed option")
            else:
                raise UsageError(f"Unknown option '{name}'")
        return self

    def fields(self, *fields: Any) -> Query:
        """Select output fields.

        Accepts field names, Field instances, lists of them, or a mapping of
        output key -> field (or -> Raw for a computed column).
        """
        selected = list(self.options.fields or [])
        for item in _flatten(fields):
            if isinstance(item, Mapping):
                for alias, value in item.items():
                    if isinstance(value, Raw):
                        selected.append(SelectedField(alias=alias, raw=value))
                    else:
                        selected.append(SelectedField(alias=alias, field=self.get_field(value)))
            else:
                field = self.get_field(item)
                selected.append(SelectedField(alias=field.name, field=field))
        self.options.fields = selected
        return self

    field = fields
    returning = fields

    def _add_conditions(self, family: str, items: Iterable[Any], kwargs: Mapping[str, Any]) -> Query:
        expressions = getattr(self.options, family)
        for item in itertools.chain(_flatten(items), [kwargs] if kwargs else []):
            if isinstance(item, Mapping):
                for name in item:
                    self.get_field(name)
                expressions.append(Grouping(type="and", value=Condition.from_mapping(item)))
            elif isinstance(item, (Expression, Query)):
                expressions.append(item)
            else:
                raise UsageError(f"Invalid {family} clause for '{self.model.name}': {item!r}")
        return self

    def where(self, *items: Any, **kwargs: Any) -> Query:
        """Add conditions, ANDed with the ones already set.

        Mappings compare fields: None tests for NULL, sequences test
        membership, other values are compared for equality.
        """
        return self._add_conditions("where", items, kwargs)

    def where_not(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("where_not", items, kwargs)

    def or_where(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("or_where", items, kwargs)

    def or_where_not(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("or_where_not", items, kwargs)

    def having(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("having", items, kwargs)

    def having_not(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("having_not", items, kwargs)

    def or_having(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("or_having", items, kwargs)

    def or_having_not(self, *items: Any, **kwargs: Any) -> Query:
        return self._add_conditions("or_having_not", items, kwargs)

    def group_by(self, *fields: Any) -> Query:
        self.options.group_by.extend(self.get_field(field) for field in _flatten(fields))
        return self

    def order_by(self, *orders: Any) -> Query:
        """Order by fields: names or Fields sort ascending; mappings give the
        direction as 1 / -1 / "asc" / "desc"."""
        for order in _flatten(orders):
            if isinstance(order, Mapping):
                for field, direction in order.items():
                    key = direction.lower() if isinstance(direction, str) else direction
                    if key not in _DIRECTIONS:
                        raise UsageError(f"Invalid order direction {direction!r} for '{field}'")
                    self.options.order_by.append(OrderBy(field=self.get_field(field), direction=_DIRECTIONS[key]))
            else:
                self.options.order_by.append(OrderBy(field=self.get_field(order)))
        return self

    @staticmethod
    def _check_count(name: str, value: Any) -> Optional[int]:
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            raise UsageError(f"'{name}' must be a non-negative integer, got {value!r}")
        return value

    def limit(self, limit: Optional[int]) -> Query:
        self.options.limit = self._check_count("limit", limit)
        return self

    def offset(self, offset: Optional[int]) -> Query:
        self.options.offset = self._check_count("offset", offset)
        return self

    def batch_size(self, batch_size: Optional[int]) -> Query:
        self.options.batch_size = self._check_count("batch_size", batch_size) or None
        return self

    def first(self, first: bool = True) -> Query:
        self.options.first = bool(first)
        return self

    def require(self, require: bool = True) -> Query:
        self.options.require = bool(require)
        return self

    def forge(self, forge: bool = True) -> Query:
        self.options.forge = bool(forge)
        return self

    def as_(self, key: str) -> Query:
        """Key under which joined records are attached to their parent."""
        self.options.as_ = key
        return self

    def on(self, *fields: Any) -> Query:
        """Restrict a join to the given fields of this (joined) query's schema."""
        self.options.on.extend(self.get_field(field) for field in _flatten(fields))
        return self

    def transaction(self, transaction: Any, for_update: bool = False, for_share: bool = False) -> Query:
        """Run this query's statements within a transaction handle, optionally locking rows."""
        if isinstance(transaction, Mapping):
            return self.transaction(**transaction)
        self.options.locking = Locking(transaction=transaction, for_update=for_update, for_share=for_share)
        return self

    within = transaction

    def _add_children(self, queries: Iterable[Any], required: bool, options: Optional[Mapping[str, Any]]) -> Query:
        for query in _flatten(queries):
            if isinstance(query, Schema):
                query = Query(query)
            if not isinstance(query, Query):
                raise UsageError(f"Cannot join {query!r}: expected a Query or a Schema")
            if query is self or query.is_child or any(query is node for node in self.root._walk()):
                raise UsageError(f"'{query.model.name}' query is already part of this join tree")
            if not has_reference_path(self.model, query.model):
                raise UsageError(f"'{self.model.name}' has no references to '{query.model.name}'")
            if options:
                query.set_options(options)
            if required:
                query.options.require = True
            query.parent = self
            self.children.append(query)
        return self

    def left_join(self, *queries: Any, options: Optional[Mapping[str, Any]] = None) -> Query:
        """Join queries (or schemas); parents without a match are kept.

        ``options`` are applied to every joined query, as with ``set_options``.
        """
        return self._add_children(queries, required=False, options=options)

    def inner_join(self, *queries: Any, options: Optional[Mapping[str, Any]] = None) -> Query:
        """Join queries (or schemas), which become required: parents without a match are dropped."""
        return self._add_children(queries, required=True, options=options)

    join = inner_join

    # compilation

    def _apply_predicates(self, builder: SqlBuilder, families: Iterable[str]):
        for family in families:
            add = getattr(builder, family)
            for expression in getattr(self.options, family):
                sql, values = render_value(expression, self)
                if sql:
                    add(sql, values)

    def _select_columns(self) -> list[tuple[str, str, tuple]]:
        columns = []
        for selection in self.selected_fields:
            key = f"{self.alias}.{selection.alias}"
            if selection.raw is not None:
                columns.append((selection.raw.sql, key, selection.raw.values))
            else:
                columns.append((self.get_column(selection.field), key, ()))
        return columns

    def _returning_columns(self) -> list[tuple[str, str]]:
        quote = self.dialect.quote
        return [
            (quote(selection.field.column), f"{self.alias}.{selection.alias}")
            for selection in self.selected_fields
            if selection.field is not None
        ]

    def _prepare_builder(
        self,
        builder: Optional[SqlBuilder] = None,
        aliases: Optional[Iterator[int]] = None,
        *,
        operation: str = "fetch",
        include_fields: bool = True,
    ) -> SqlBuilder:
        """Add this query's clauses (and its children's) to a builder.

        Clauses are added in a fixed order: transaction, returning (writes),
        where family, then for reads: fields, joins, group by, having family,
        order by and, for the root only, limit and offset.
        """
        if builder is None:
            self.alias = self.model.table
            builder = SqlBuilder(
                self.model.table,
                self.alias,
                dialect=self.dialect,
                connection_name=self.model.connection_name,
            )
            aliases = itertools.count(1)
            locking = self.options.locking
            if locking is not None:
                if locking.transaction is not None:
                    builder.transacting(locking.transaction)
                if locking.for_update:
                    builder.for_update()
                elif locking.for_share:
                    builder.for_share()

        if operation in ("insert", "update", "delete"):
            builder.returning(self._returning_columns())
            if operation == "insert":
                return builder

        self._apply_predicates(builder, WHERE_FAMILY)
        if operation in ("update", "delete"):
            return builder

        if include_fields:
            builder.columns(self._select_columns())

        for child in self.children:
            child.alias = next_alias(aliases)
            builder.join(join_kind(child), child.model.table, child.alias, get_join_columns(self, child, builder))
            child._prepare_builder(builder, aliases, operation=operation, include_fields=include_fields)

        if self.options.group_by:
            builder.group_by(*(self.get_column(field) for field in self.options.group_by))
        self._apply_predicates(builder, HAVING_FAMILY)
        for order in self.options.order_by:
            builder.order_by(self.get_column(order.field), order.direction)

        if self.is_child:
            return builder
        if self.options.first:
            builder.limit(1)
        elif self.options.limit is not None:
            builder.limit(self.options.limit)
        if self.options.offset is not None:
            builder.offset(self.options.offset)
        return builder

    def to_sql(self) -> tuple[str, tuple[Any, ...]]:
        """Compile the fetch statement without running it."""
        return self._prepare_builder().to_select()

    def to_subquery_sql(self) -> tuple[str, tuple[Any, ...]]:
        """Compile this query for use inside another statement.

        Only explicitly configured fields are selected, without output aliases
        (``*`` when none are configured).
        """
        builder = self._prepare_builder(include_fields=False)
        for selection in self.options.fields or []:
            if selection.raw is not None:
                builder.columns([(selection.raw.sql, None, selection.raw.values)])
            else:
                builder.columns([(self.get_column(selection.field), None, ())])
        return builder.to_select()

    # execution

    def _ensure_root(self, operation: str):
        if self.is_child:
            raise UsageError(
                f"Cannot {operation} from a child query. "
                f"({self.model.name} query is {self.parent.model.name} query's child)"
            )

    async def _execute(self, operation: str, statement) -> list[dict[str, Any]]:
        try:
            return await statement
        except JoineryError:
            raise
        except Exception as error:
            raise OPERATION_ERRORS[operation](error, query=self) from error

    def _raise_if_required(self, operation: str):
        for query in self._walk():
            if query.options.require:
                plural, singular = NOT_FOUND_ERRORS[operation]
                raise (singular if query is self and self.options.first else plural)(query=query)

    def _prepare_record(self, data: Any, operation: str) -> Any:
        if isinstance(data, BaseModel):
            if not isinstance(data, self.model.record_type):
                raise UsageError(
                    f"Cannot {operation} a {type(data).__name__} record with a '{self.model.name}' query"
                )
            return data
        if isinstance(data, Mapping):
            return self.model.make_record(dict(data)) if self.options.forge else dict(data)
        raise UsageError(f"Cannot {operation} {data!r}: expected a '{self.model.name}' record or a mapping")

    def _set_data(self, record: Any, row: Mapping[str, Any]) -> Any:
        return parse_scalars(self, split_row(row).get(self.alias, {}), record=record)

    async def fetch(self) -> Any:
        """Run the SELECT and rebuild its records, nested records included.

        Returns:
            A list of records; with ``first``, the first record or None.

        Raises:
            UsageError: If this query is joined to another one.
            FetchError: If the database rejects the statement.
            NoRowsFetchedError: If ``require`` is set (on this query or a
                joined one) and nothing matched; NoRowFetchedError with ``first``.
        """
        self._ensure_root("fetch")
        builder = self._prepare_builder()
        rows = await self._execute("fetch", builder.select())
        if not rows:
            self._raise_if_required("fetch")
            return None if self.options.first else []
        records = RowParser(self).parse(rows)
        return records[0] if self.options.first else records

    async def count(self, field: Any = None, distinct: bool = False) -> int:
        """Count matching rows, or non-null (optionally distinct) values of a field."""
        self._ensure_root("count")
        builder = self._prepare_builder(operation="count", include_fields=False)
        column = self.get_column(field) if field is not None else None
        builder.count(column, distinct=distinct)
        rows = await self._execute("count", builder.select())
        count = int(rows[0]["count"] or 0) if rows else 0
        if not count and self.options.require:
            raise NoRowsCountedError(query=self)
        return count

    async def insert(self, data: Any) -> Any:
        """Insert one record (or mapping) or a list of them.

        Defaults are applied and values validated first. With ``batch_size``,
        lists are split into several INSERT statements run concurrently; the
        order of the returned records is then unspecified.

        Returns:
            The inserted records, updated with the values the database returned.
        """
        self._ensure_root("insert")
        is_batch = isinstance(data, (list, tuple))
        records = [self._prepare_record(item, "insert") for item in (data if is_batch else [data])]
        if not records:
            return []
        identity = self.model.identity
        pairs = []
        for record in records:
            fields = list(self.model.fields.values())
            if get_value(record, identity.name) is None:
                fields.remove(identity)
            self.model.set_defaults(record, fields)
            self.model.validate_record(record, fields)
            fields = [field for field in fields if get_value(record, field.name) is not None]
            pairs.append((record, self.model.get_row(record, fields)))

        builder = self._prepare_builder(operation="insert")
        batches = _chunks(pairs, self.options.batch_size)
        results = await asyncio.gather(*(
            self._execute("insert", builder.insert([row for _, row in batch]))
            for batch in batches
        ))
        inserted = []
        for batch, rows in zip(batches, results):
            for (record, _), row in zip(batch, rows):
                inserted.append(self._set_data(record, row))
        if not inserted:
            self._raise_if_required("insert")
            return [] if is_batch else None
        return inserted if is_batch and not self.options.first else inserted[0]

    async def update(self, data: Any) -> Any:
        """Update rows from a record or mapping.

        With an identity value, the row with that identity is updated and the
        record returned. Without one, every row matching the where clauses is
        updated and the updated records are returned. A list updates each
        record by identity, one statement per record, run concurrently.
        """
        self._ensure_root("update")
        if isinstance(data, (list, tuple)):
            records = [self._prepare_record(item, "update") for item in data]
            for record in records:
                if get_value(record, self.model.id_field) is None:
                    raise UsageError(f"Cannot update a list of '{self.model.name}' records without '{self.model.id_field}'")
            return list(await asyncio.gather(*(self._update_one(record) for record in records)))
        return await self._update_one(self._prepare_record(data, "update"))

    async def _update_one(self, record: Any) -> Any:
        id_field = self.model.id_field
        identity = get_value(record, id_field)
        query = self.clone()
        if identity is not None:
            query.where({id_field: identity})
        fields = [
            field
            for name, field in self.model.fields.items()
            if name != id_field and has_value(record, name)
        ]
        if not fields:
            raise UsageError(f"Nothing to update on '{self.model.name}'")
        self.model.validate_record(record, fields)
        row = self.model.get_row(record, fields)
        builder = query._prepare_builder(operation="update")
        rows = await query._execute("update", builder.update(row))
        if not rows:
            query._raise_if_required("update")
            return None if identity is not None or self.options.first else []
        if identity is not None:
            return query._set_data(record, rows[0])
        records = RowParser(query).parse(rows)
        return records[0] if self.options.first else records

    async def delete(self) -> Any:
        """Delete the rows matching the where clauses and return them."""
        self._ensure_root("delete")
        builder = self._prepare_builder(operation="delete")
        rows = await self._execute("delete", builder.delete())
        if not rows:
            self._raise_if_required("delete")
            return None if self.options.first else []
        records = RowParser(self).parse(rows)
        return records[0] if self.options.first else records

    async def save(self, data: Any) -> Any:
        """Insert records without an identity value, update the others."""
        if isinstance(data, (list, tuple)):
            return list(await asyncio.gather(*(self.clone().save(item) for item in data)))
        record = self._prepare_record(data, "save")
        if get_value(record, self.model.id_field) is None:
            return await self.insert(record)
        return await self.update(record)
