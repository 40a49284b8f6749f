"""
Embeddable key-value storage with in-process querying.

This package provides named logical databases over pluggable drivers with:
- store/update/remove(key) - Upserts and deletes, faults returned as WriteResult
- read(key) - Point lookup returning zero or one records
- read_all(...) - Filtered, sorted scan of up to limit records
- find(...) - Equality selector, offset/limit paging and optional totals
- iterate(callback) - Visit every record in backend order
"""

from chainstore.config import Settings, configure_logging
from chainstore.context import StoreContext
from chainstore.models.exceptions import (
    BackendWriteError,
    DriverNotDefinedError,
    LogCorruptionError,
    StorageError,
    ValidationError,
)
from chainstore.models.query import QueryResult, QuerySpec, Selector, SortKey
from chainstore.models.result import WriteResult
from chainstore.storage import Storage

__all__ = [
    "BackendWriteError",
    "DriverNotDefinedError",
    "LogCorruptionError",
    "QueryResult",
    "QuerySpec",
    "Selector",
    "Settings",
    "SortKey",
    "Storage",
    "StorageError",
    "StoreContext",
    "ValidationError",
    "WriteResult",
    "configure_logging",
]
