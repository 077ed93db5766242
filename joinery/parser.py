"""Turn the flat rows of one joined statement back into nested records.

Rows carry ``"<alias>.<key>"`` columns. Records are kept in a table keyed
by ``(alias, identity value)``, so a parent repeated over several rows is
built once, and a child is attached to its parent as a single record or,
once a second distinct one shows up, as a list in first-seen order.
"""

from typing import Any, Iterable, Mapping, Optional

from .utils.records import get_value, set_value


def split_row(row: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """{"user.id": 1, "t1.id": 10} -> {"user": {"id": 1}, "t1": {"id": 10}}"""
    data: dict[str, dict[str, Any]] = {}
    for key, value in row.items():
        alias, _, name = key.partition(".")
        data.setdefault(alias, {})[name] = value
    return data


def has_data(scalars: Optional[Mapping[str, Any]]) -> bool:
    return bool(scalars) and any(value is not None for value in scalars.values())


def parse_scalars(query, scalars: Mapping[str, Any], record: Any = None) -> Any:
    """Parse driver values for the query's selected fields into a record.

    A new record is built (typed, or a dict when forging is off) unless one
    is passed in, in which case its values are overwritten.
    """
    selected = query.selected_by_key
    data = {}
    for key, value in scalars.items():
        selection = selected.get(key)
        if selection is not None and selection.field is not None:
            value = selection.field.parse(value)
        data[key] = value
    if record is None:
        record = query.model.make_record(data) if query.options.forge else dict(data)
    else:
        for key, value in data.items():
            set_value(record, key, value)
    for key, value in data.items():
        selection = selected.get(key)
        if selection is not None and selection.field is not None and selection.field.cast_for_fetch is not None:
            set_value(record, key, selection.field.cast(value, record, for_fetch=True))
    return record


def attach(record: Any, key: str, child: Any) -> None:
    """Attach `child` under `key`: first as a value, then as a list of distinct records."""
    existing = get_value(record, key)
    if existing is None:
        set_value(record, key, child)
    elif isinstance(existing, list):
        if not any(item is child for item in existing):
            existing.append(child)
    elif existing is not child:
        set_value(record, key, [existing, child])


class RowParser:
    """Rebuilds the records of one root query from the rows of one statement."""

    def __init__(self, query):
        self.query = query
        self._nodes: dict[tuple[str, Any], Any] = {}
        self._records: list[Any] = []

    @property
    def records(self) -> list[Any]:
        return self._records

    def parse(self, rows: Iterable[Mapping[str, Any]]) -> list[Any]:
        for row in rows:
            self.parse_row(row)
        return self._records

    def parse_row(self, row: Mapping[str, Any]) -> Any:
        return self._parse_data(self.query, split_row(row), set())

    def _parse_data(self, query, data: dict[str, dict[str, Any]], visited: set) -> Any:
        scalars = data.get(query.alias, {})
        key = (query.alias, scalars.get(query.identity_key))
        record = self._nodes.get(key)
        if record is None:
            record = parse_scalars(query, scalars)
            self._nodes[key] = record
            if query is self.query:
                self._records.append(record)
        # an (alias, identity) pair is only descended once per row
        if key in visited:
            return record
        visited.add(key)
        for child in query.children:
            if not has_data(data.get(child.alias)):
                continue
            attach(record, child.output_key, self._parse_data(child, data, visited))
        return record
