"""A caller-owned collection of schemas, and the pass that links their references."""

from typing import Iterator

from .errors import ConfigurationError
from .field import Field
from .schema import Schema


class Registry:
    """Schemas by name.

    String references (``Field(references="User.id")``) are only resolved by
    `link()`, which is meant to run once after every schema was added.
    """

    def __init__(self, *schemas: Schema):
        self._schemas: dict[str, Schema] = {}
        self.add(*schemas)

    def add(self, *schemas: Schema) -> "Registry":
        for schema in schemas:
            if not isinstance(schema, Schema):
                raise ConfigurationError(f"Expected a Schema, got {schema!r}")
            self._schemas[schema.name] = schema
        return self

    def get(self, name: str) -> Schema:
        try:
            return self._schemas[name]
        except KeyError:
            raise ConfigurationError(f"Unknown schema '{name}'") from None

    def __getitem__(self, name: str) -> Schema:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[Schema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    def resolve_field(self, path: str) -> Field:
        """Return the field named by a "Schema.field" path."""
        schema_name, _, field_name = path.rpartition(".")
        if not schema_name:
            raise ConfigurationError(f"Invalid reference '{path}', expected 'Schema.field'")
        schema = self.get(schema_name)
        if field_name not in schema.fields:
            raise ConfigurationError(f"Unknown field '{path}'")
        return schema.fields[field_name]

    def link(self) -> "Registry":
        """Record every declared reference on both ends of the graph."""
        for schema in self._schemas.values():
            for field in schema.fields.values():
                target = field.references
                if isinstance(target, str):
                    field.set_reference(self.resolve_field(target))
                elif isinstance(target, Field) and not self._is_recorded(field):
                    field.set_reference(target)
        return self

    @staticmethod
    def _is_recorded(field: Field) -> bool:
        target = field.references
        if target.model is None:
            return False
        outgoing = field.model.references.get(target.model.name, {})
        return outgoing.get(field.name) is target
