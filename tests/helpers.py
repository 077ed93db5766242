"""Shared test helpers."""

from typing import Any

from pydantic import BaseModel

from joinery import Query
from joinery.utils.records import record_items


def to_data(value: Any) -> Any:
    """Recursively turn records into plain dicts of the values set on them.

    Nested records (joined results) are converted too, so whole graphs can be
    compared with ``==``.
    """
    if isinstance(value, list):
        return [to_data(item) for item in value]
    if isinstance(value, (BaseModel, dict)):
        return {key: to_data(item) for key, item in record_items(value).items()}
    return value


async def insert_users(schemas, *names: str) -> list:
    return await Query(schemas["User"]).insert([{"name": name} for name in names])
