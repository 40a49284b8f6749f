"""
Data models for the storage layer.
"""

from chainstore.models.query import QueryResult, QuerySpec, Selector, SortKey
from chainstore.models.record_log import LogRecord, RecordLog
from chainstore.models.result import WriteResult
from chainstore.models.value import Value, ValueType

__all__ = [
    "LogRecord",
    "QueryResult",
    "QuerySpec",
    "RecordLog",
    "Selector",
    "SortKey",
    "Value",
    "ValueType",
    "WriteResult",
]
