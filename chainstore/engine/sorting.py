"""
Multi-key ordering of record values via repeated stable sorts.
"""

from collections.abc import Sequence
from typing import Any

from chainstore.models.query import SortKey, field_value


def _sort_value(value: Any) -> tuple:
    """
    Total ordering key across value types.

    None sorts first, then numbers, then strings, then everything else by
    its string form, so heterogeneous records never raise TypeError.
    """
    if value is None:
        return (0,)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, str(value))


def sort_records(records: list[Any], sort: Sequence[SortKey]) -> list[Any]:
    """
    Sort records in place by each SortKey in turn and return them.

    Every pass is a full stable sort over the output of the previous pass,
    so the last key is the primary order and earlier keys only break ties.
    Records equal under every key keep their iteration order.
    """
    for key in sort:
        records.sort(
            key=lambda record, name=key.field: _sort_value(field_value(record, name)),
            reverse=not key.ascending,
        )
    return records
