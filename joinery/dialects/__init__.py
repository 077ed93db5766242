"""Database dialects: one class per engine."""

from ..errors import ConfigurationError
from .base import Dialect
from .sqlite import SqliteDialect

_DIALECT_CLASSES: tuple[type[Dialect], ...] = (
    SqliteDialect,
)


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Return a Dialect instance for the given URL scheme (e.g. 'sqlite', 'sqlite+aiosqlite')."""
    normalized = (scheme or "").split("+")[0].lower()
    for dialect_cls in _DIALECT_CLASSES:
        if normalized in dialect_cls.SUPPORTED_SCHEMA:
            return dialect_cls()
    raise ConfigurationError(f"Unsupported database scheme: {scheme}")


__all__ = [
    "Dialect",
    "SqliteDialect",
    "get_dialect_for_scheme",
]
