"""joinery: compile declarative queries to SQL, and rebuild nested records from joined rows."""

from .connection import close_connections, connect
from .errors import (
    ConfigurationError,
    CountError,
    DeleteError,
    FetchError,
    InsertError,
    JoineryError,
    NoRowDeletedError,
    NoRowFetchedError,
    NoRowInsertedError,
    NoRowUpdatedError,
    NoRowsCountedError,
    NoRowsDeletedError,
    NoRowsFetchedError,
    NoRowsInsertedError,
    NoRowsUpdatedError,
    OperationError,
    RowsNotFoundError,
    TransactionError,
    UpdateError,
    UsageError,
    ValidationError,
)
from .expressions import Condition, Grouping, Raw, and_, or_
from .field import Field
from .query import Query
from .registry import Registry
from .schema import Schema, create_table
from .transaction import transaction
