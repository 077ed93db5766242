"""Fields of a schema, and the reference graph built between them.

A field that references another one (a foreign key) records the edge on
both owning schemas:

- ``owner.references[target_schema_name][field_name] = target_field``
- ``target_schema.referenced[owner_name][target_field_name] = [field, ...]``

Edges are only ever written by ``set_reference`` and ``set_model``, so the
two maps always agree.
"""

from __future__ import annotations

import json
import uuid
import datetime
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField

from .errors import UsageError, ValidationError


FieldType = Literal[
    "string", "text", "integer", "decimal", "boolean",
    "datetime", "date", "uuid", "json", "binary", "any",
]

# type tag -> (python type, SQL type)
FIELD_TYPES: dict[str, tuple[Any, str]] = {
    "string": (str, "TEXT"),
    "text": (str, "TEXT"),
    "integer": (int, "INTEGER"),
    "decimal": (float, "REAL"),
    "boolean": (bool, "BOOLEAN"),
    "datetime": (datetime.datetime, "TIMESTAMP"),
    "date": (datetime.date, "DATE"),
    "uuid": (uuid.UUID, "TEXT"),
    "json": (Any, "JSON"),
    "binary": (bytes, "BLOB"),
    "any": (Any, ""),
}


class Field(BaseModel):
    """A named, typed attribute of a schema, optionally a foreign key."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    type: FieldType = "any"
    column: str = ""
    primary: bool = False
    required: bool = False
    default: Any = None
    references: Any = None  # Field, or "Schema.field" until the registry links it
    cast_for_save: Optional[Callable[[Any, Any], Any]] = None
    cast_for_fetch: Optional[Callable[[Any, Any], Any]] = None
    validator: Optional[Callable[[Any, Any], Any]] = None
    model: Any = PydanticField(default=None, repr=False)  # owning Schema

    def model_post_init(self, __context: Any) -> None:
        if not self.column:
            self.column = self.name

    def __eq__(self, other):
        return self is other

    def __hash__(self):
        return id(self)

    def __str__(self):
        owner = self.model.name if self.model is not None else "?"
        return f"{owner}.{self.name}"

    @property
    def python_type(self) -> Any:
        return FIELD_TYPES[self.type][0]

    @property
    def sql_type(self) -> str:
        return FIELD_TYPES[self.type][1]

    @property
    def is_linked(self) -> bool:
        """True once the reference edge has been recorded on both schemas."""
        return isinstance(self.references, Field) and self.references.model is not None

    # reference graph

    def set_model(self, model: Any) -> Field:
        """Make `model` the owner of this field, moving any reference edges to it."""
        linked = self.is_linked and self.model is not None
        if linked:
            self._unlink()
        self.model = model
        if isinstance(self.references, Field) and self.references.model is not None:
            self._link()
        return self

    def set_reference(self, target: Field) -> Field:
        """Declare this field a foreign key to `target`.

        Args:
            target: The referenced field. It must already belong to a schema.

        Returns:
            Field: self, to allow chaining.

        Raises:
            UsageError: If `target` is not a field or has no owning schema.
        """
        if not isinstance(target, Field):
            raise UsageError(f"Field '{self}' can only reference a Field, got {target!r}")
        if target.model is None:
            raise UsageError(f"Cannot reference '{target.name}': it does not belong to a schema")
        if self.is_linked and self.model is not None:
            self._unlink()
        self.references = target
        if self.model is not None:
            self._link()
        return self

    def _link(self):
        target = self.references
        outgoing = self.model.references.setdefault(target.model.name, {})
        outgoing[self.name] = target
        incoming = target.model.referenced.setdefault(self.model.name, {})
        bucket = incoming.setdefault(target.name, [])
        if not any(field is self for field in bucket):
            bucket.append(self)

    def _unlink(self):
        target = self.references
        outgoing = self.model.references.get(target.model.name, {})
        if outgoing.get(self.name) is target:
            del outgoing[self.name]
        if not outgoing:
            self.model.references.pop(target.model.name, None)
        incoming = target.model.referenced.get(self.model.name, {})
        bucket = [field for field in incoming.get(target.name, []) if field is not self]
        if bucket:
            incoming[target.name] = bucket
        else:
            incoming.pop(target.name, None)
        if not incoming:
            target.model.referenced.pop(self.model.name, None)

    def clone(self) -> Field:
        """Return an unowned copy. Linked references are kept as the target field."""
        return self.model_copy(update={"model": None})

    # defaults

    def has_default(self) -> bool:
        return self.default is not None

    def get_default(self, record: Any) -> Any:
        if callable(self.default):
            return self.default(record)
        return self.default

    # casting

    def cast(self, value: Any, record: Any, *, for_save: bool = False, for_fetch: bool = False) -> Any:
        """Apply the user cast hook for the given direction, passing the owning record."""
        if for_save and self.cast_for_save is not None:
            return self.cast_for_save(value, record)
        if for_fetch and self.cast_for_fetch is not None:
            return self.cast_for_fetch(value, record)
        return value

    def parse(self, value: Any) -> Any:
        """Convert a value read from the driver to this field's Python type."""
        if value is None:
            return None
        if self.type == "boolean":
            return bool(value)
        if self.type == "integer" and not isinstance(value, bool):
            return int(value)
        if self.type == "decimal":
            return float(value)
        if self.type == "datetime" and isinstance(value, str):
            return datetime.datetime.fromisoformat(value)
        if self.type == "date" and isinstance(value, str):
            return datetime.date.fromisoformat(value)
        if self.type == "uuid" and not isinstance(value, uuid.UUID):
            return uuid.UUID(str(value))
        if self.type == "json" and isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    def serialize(self, value: Any) -> Any:
        """Convert a Python value to what the driver can bind."""
        if value is None:
            return None
        if self.type == "json":
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, (datetime.datetime, datetime.date)):
            return value.isoformat()
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    # validation

    def validate_value(self, value: Any, record: Any = None) -> None:
        """Check requiredness and type, then run the user validator.

        Raises:
            ValidationError: On the first failing check.
        """
        if value is None:
            if self.required:
                raise ValidationError(f"Missing required value for '{self}'", field=self)
            return
        python_type = self.python_type
        if python_type is not Any:
            accepted = (int, float) if python_type is float else python_type
            if python_type is int and isinstance(value, bool):
                accepted = ()
            if not isinstance(value, accepted):
                raise ValidationError(
                    f"Invalid value for '{self}': expected {self.type}, got {type(value).__name__}",
                    field=self, value=value,
                )
        if self.validator is not None and self.validator(value, record) is False:
            raise ValidationError(f"Invalid value for '{self}': {value!r}", field=self, value=value)
