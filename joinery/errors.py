"""Exceptions raised by joinery.

Three kinds of failure reach the caller:

- configuration and usage errors, raised before any statement runs;
- ``OperationError`` subclasses, wrapping whatever the driver raised;
- ``RowsNotFoundError`` subclasses, raised when ``require`` is set and an
  otherwise successful statement matched no rows.
"""

from typing import Any


class JoineryError(Exception):
    """Base class for every error raised by joinery."""


class ConfigurationError(JoineryError):
    """A schema or query cannot be built from what it was given."""


class UsageError(JoineryError):
    """An option or clause refers to something that does not exist or is not allowed."""


class ValidationError(JoineryError):
    """A record value failed field validation before a write."""

    def __init__(self, message: str, field: Any = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class TransactionError(JoineryError):
    """A transaction handle was used outside of its own nesting level."""


class OperationError(JoineryError):
    """The database rejected a statement.

    The driver error is available as ``error`` (and as ``__cause__``), the
    query that issued the statement as ``query``.
    """

    def __init__(self, error: BaseException, query: Any = None):
        super().__init__(f"{type(error).__name__}: {error}")
        self.error = error
        self.query = query


class FetchError(OperationError):
    pass


class InsertError(OperationError):
    pass


class UpdateError(OperationError):
    pass


class DeleteError(OperationError):
    pass


class CountError(OperationError):
    pass


class RowsNotFoundError(JoineryError):
    """``require`` was set and the statement returned no rows."""

    message = "no rows found"

    def __init__(self, query: Any = None):
        name = getattr(getattr(query, "model", None), "name", None)
        super().__init__(f"{name}: {self.message}" if name else self.message)
        self.query = query


class NoRowsFetchedError(RowsNotFoundError):
    message = "no rows fetched"


class NoRowFetchedError(NoRowsFetchedError):
    message = "no row fetched"


class NoRowsInsertedError(RowsNotFoundError):
    message = "no rows inserted"


class NoRowInsertedError(NoRowsInsertedError):
    message = "no row inserted"


class NoRowsUpdatedError(RowsNotFoundError):
    message = "no rows updated"


class NoRowUpdatedError(NoRowsUpdatedError):
    message = "no row updated"


class NoRowsDeletedError(RowsNotFoundError):
    message = "no rows deleted"


class NoRowDeletedError(NoRowsDeletedError):
    message = "no row deleted"


class NoRowsCountedError(RowsNotFoundError):
    message = "no rows counted"


# verb -> (plural, singular)
NOT_FOUND_ERRORS: dict[str, tuple[type[RowsNotFoundError], type[RowsNotFoundError]]] = {
    "fetch": (NoRowsFetchedError, NoRowFetchedError),
    "insert": (NoRowsInsertedError, NoRowInsertedError),
    "update": (NoRowsUpdatedError, NoRowUpdatedError),
    "delete": (NoRowsDeletedError, NoRowDeletedError),
    "count": (NoRowsCountedError, NoRowsCountedError),
}

OPERATION_ERRORS: dict[str, type[OperationError]] = {
    "fetch": FetchError,
    "insert": InsertError,
    "update": UpdateError,
    "delete": DeleteError,
    "count": CountError,
}
