"""Base Dialect type: subclasses implement connect() and execute() for each engine."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel


class Dialect(BaseModel, ABC):
    """Base for database dialects: identifier quoting, clause variants and the driver calls."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',))."""

    SUPPORTS_LOCKING: ClassVar[bool] = True
    """Whether SELECT ... FOR UPDATE / FOR SHARE can be rendered."""

    QUOTE: ClassVar[str] = '"'

    def quote(self, identifier: str) -> str:
        """Quote an identifier (e.g. user -> "user")."""
        q = self.QUOTE
        return q + identifier.replace(q, q + q) + q

    def limit_offset(self, limit: Optional[int], offset: Optional[int]) -> str:
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset is not None:
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def lock_clause(self, for_update: bool = False, for_share: bool = False) -> str:
        if not self.SUPPORTS_LOCKING:
            return ""
        if for_update:
            return "FOR UPDATE"
        if for_share:
            return "FOR SHARE"
        return ""

    @abstractmethod
    async def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL."""
        ...  # pylint: disable=unnecessary-ellipsis

    @abstractmethod
    async def execute(self, connection: Any, sql: str, parameters: tuple = ()) -> list[dict[str, Any]]:
        """Run one statement and return its rows as dicts (empty for statements without rows)."""
        ...  # pylint: disable=unnecessary-ellipsis
