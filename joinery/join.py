"""Join resolution: aliases, direction, ON columns and strictness of child queries."""

from typing import Iterator, Literal

from .errors import UsageError
from .field import Field


def next_alias(counter: Iterator[int]) -> str:
    """Child aliases are t1, t2, ... numbered across the whole statement."""
    return f"t{next(counter)}"


def join_kind(child) -> Literal["inner", "left"]:
    return "inner" if child.options.require else "left"


def get_join_fields(parent, child) -> list[tuple[Field, Field]]:
    """Return (child side, parent side) field pairs joining `child` to `parent`.

    When the parent holds the foreign keys, every field of its reference
    bucket to the child is used; an ``on`` restriction names child fields,
    and is looked up in the child's incoming references from the parent.
    When the child holds the foreign keys, ``on`` names those fields directly.

    Raises:
        UsageError: If neither schema references the other.
    """
    parent_schema, child_schema = parent.model, child.model
    outgoing = parent_schema.references.get(child_schema.name)
    if outgoing:
        if child.options.on:
            incoming = child_schema.referenced.get(parent_schema.name, {})
            sources = [
                source
                for target in child.options.on
                for source in incoming.get(target.name, [])
            ]
        else:
            sources = [parent_schema.fields[name] for name in outgoing]
        return [(source.references, source) for source in sources]

    incoming = child_schema.references.get(parent_schema.name)
    if incoming:
        if child.options.on:
            sources = [field for field in child.options.on if field.name in incoming]
        else:
            sources = [child_schema.fields[name] for name in incoming]
        return [(source, source.references) for source in sources]

    raise UsageError(f"'{parent_schema.name}' has no references to '{child_schema.name}'")


def has_reference_path(parent_schema, child_schema) -> bool:
    return bool(
        parent_schema.references.get(child_schema.name)
        or child_schema.references.get(parent_schema.name)
    )


def get_join_columns(parent, child, builder) -> dict[str, str]:
    """Rendered ``child column -> parent column`` pairs for the ON clause."""
    pairs = get_join_fields(parent, child)
    if not pairs:
        raise UsageError(
            f"'{child.model.name}' cannot be joined to '{parent.model.name}' "
            f"on {', '.join(field.name for field in child.options.on)}"
        )
    return {
        builder.qualify(child.alias, child_field.column): builder.qualify(parent.alias, parent_field.column)
        for child_field, parent_field in pairs
    }
