"""Read and write values on records, which are either pydantic models or plain dicts."""

from typing import Any, Mapping

from pydantic import BaseModel


def get_value(record: Any, key: str, default: Any = None) -> Any:
    """Return record[key] for mappings, record.key for models, or default when missing."""
    if isinstance(record, Mapping):
        return record.get(key, default)
    return getattr(record, key, default)


def has_value(record: Any, key: str) -> bool:
    """True if key was explicitly set on the record (None counts as set)."""
    if isinstance(record, Mapping):
        return key in record
    if isinstance(record, BaseModel):
        return key in record.model_fields_set or key in (record.model_extra or {})
    return hasattr(record, key)


def set_value(record: Any, key: str, value: Any) -> None:
    """Set key on the record, adding it as an extra attribute on models if needed."""
    if isinstance(record, dict):
        record[key] = value
    else:
        setattr(record, key, value)


def record_items(record: Any) -> dict[str, Any]:
    """Shallow dict of the values explicitly set on the record."""
    if isinstance(record, Mapping):
        return dict(record)
    items = {name: getattr(record, name) for name in record.model_fields_set}
    items.update(record.model_extra or {})
    return items
