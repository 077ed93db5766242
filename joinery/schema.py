"""Schema: the definition of one entity type (a "model") and its table."""

import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField, create_model, field_validator

from .errors import ConfigurationError, UsageError
from .field import Field
from .utils.records import get_value, set_value

logger = logging.getLogger("joinery")


class Schema(BaseModel):
    """A named entity type: its table, ordered fields and reference graph edges.

    ``fields`` accepts a list of Field, a dict of name -> Field, or a dict of
    name -> type tag (e.g. ``{"id": "integer", "name": "string"}``).
    """

    model_config = {"arbitrary_types_allowed": True}

    name: str
    table: Optional[str] = None
    fields: dict[str, Field] = PydanticField(default_factory=dict)
    id_field: Optional[str] = None
    connection_name: str = "default"
    references: dict[str, dict[str, Any]] = PydanticField(default_factory=dict, repr=False)
    referenced: dict[str, dict[str, list]] = PydanticField(default_factory=dict, repr=False)
    record_type: Optional[type[BaseModel]] = PydanticField(default=None, repr=False)

    @field_validator("fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value: Any) -> dict[str, Field]:
        if isinstance(value, Mapping):
            items = value.items()
        else:
            items = ((field.name, field) for field in value)
        fields = {}
        for name, spec in items:
            if isinstance(spec, Field):
                field = spec
            elif isinstance(spec, str):
                field = Field(name=name, type=spec)
            elif isinstance(spec, Mapping):
                field = Field(name=name, **spec)
            else:
                raise ConfigurationError(f"Invalid field definition for '{name}': {spec!r}")
            fields[name] = field
        return fields

    def model_post_init(self, __context: Any) -> None:
        if self.id_field is None:
            primary = [field.name for field in self.fields.values() if field.primary]
            self.id_field = primary[0] if primary else "id"
        if self.id_field not in self.fields:
            raise ConfigurationError(f"'{self.name}' has no identity field '{self.id_field}'")
        for field in self.fields.values():
            field.set_model(self)
        if self.record_type is None:
            self.record_type = create_model(
                self.name,
                __config__=ConfigDict(extra="allow", arbitrary_types_allowed=True),
                **{
                    name: (Optional[field.python_type], None)
                    for name, field in self.fields.items()
                },
            )

    def __eq__(self, other):
        return self is other

    def __hash__(self):
        return id(self)

    def __str__(self):
        return self.name

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError:
            raise UsageError(f"Unknown field '{self.name}.{name}'") from None

    @property
    def identity(self) -> Field:
        return self.fields[self.id_field]

    def extend(self, name: str, table: Optional[str] = None, fields: Any = None, **kwargs) -> "Schema":
        """Derive a new schema from this one.

        Every field is cloned, then `fields` entries are added or override
        same-named ones. Fields referencing this schema's own fields are
        re-pointed at the derived schema's copies.
        """
        cloned: dict[str, Field] = {}
        self_references: dict[str, str] = {}
        for field in self.fields.values():
            copy = field.clone()
            if isinstance(copy.references, Field) and copy.references.model is self:
                self_references[copy.name] = copy.references.name
                copy.references = None
            cloned[copy.name] = copy
        cloned.update(self._normalize_fields(fields or {}))
        kwargs.setdefault("id_field", self.id_field)
        kwargs.setdefault("connection_name", self.connection_name)
        schema = Schema(
            name=name,
            table=table if table is not None else self.table,
            fields=cloned,
            **kwargs,
        )
        for field_name, target_name in self_references.items():
            if field_name in schema.fields and target_name in schema.fields:
                schema.fields[field_name].set_reference(schema.fields[target_name])
        return schema

    # records

    def make_record(self, data: Mapping[str, Any]) -> BaseModel:
        """Build a typed record from already-parsed values, without validation."""
        return self.record_type.model_construct(**data)

    def set_defaults(self, record: Any, fields: Optional[Iterable[Field]] = None) -> Any:
        for field in fields if fields is not None else self.fields.values():
            if get_value(record, field.name) is None and field.has_default():
                set_value(record, field.name, field.get_default(record))
        return record

    def validate_record(self, record: Any, fields: Optional[Iterable[Field]] = None) -> Any:
        for field in fields if fields is not None else self.fields.values():
            field.validate_value(get_value(record, field.name), record)
        return record

    def get_row(self, record: Any, fields: Iterable[Field]) -> dict[str, Any]:
        """Map record values to their columns, cast and serialized for binding."""
        row = {}
        for field in fields:
            value = field.cast(get_value(record, field.name), record, for_save=True)
            row[field.column] = field.serialize(value)
        return row

    # DDL

    def get_sql_creation(self, dialect) -> str:
        q = dialect.quote
        statements = []
        for field in self.fields.values():
            sql = f"{q(field.column)} {field.sql_type}".rstrip()
            if field.name == self.id_field:
                sql += " PRIMARY KEY"
            elif field.required:
                sql += " NOT NULL"
            statements.append(sql)
        for field in self.fields.values():
            if field.is_linked and field.references.model.table:
                target = field.references
                statements.append(
                    f"FOREIGN KEY ({q(field.column)}) "
                    f"REFERENCES {q(target.model.table)}({q(target.column)})"
                )
        return f"CREATE TABLE IF NOT EXISTS {q(self.table)} ({', '.join(statements)})"


async def create_table(schema: Schema) -> None:
    """Create the schema's table on its connection if it does not exist yet."""
    from .connection import get_connection_manager

    if not schema.table:
        raise ConfigurationError(f"'{schema.name}.table' is not configured")
    manager = get_connection_manager(schema.connection_name)
    sql = schema.get_sql_creation(manager.dialect)
    logger.info("CREATE TABLE %s", schema.table)
    await manager.execute(sql)
