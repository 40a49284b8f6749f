"""
QueryEngine - CRUD and query operations against pooled driver handles.
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from chainstore.engine.instance_pool import InstancePool
from chainstore.engine.sorting import sort_records
from chainstore.models.exceptions import ValidationError
from chainstore.models.query import QueryResult, QuerySpec
from chainstore.models.result import WriteResult

logger = logging.getLogger(__name__)


def _require(operation: str, **fields: Any) -> None:
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value):
            raise ValidationError(operation, name)


class QueryEngine:
    """
    Executes storage operations for any logical database in a pool.

    Provides:
    - store/update(database, key, data): Upsert a record
    - store_bulk(database, items): Upsert several records at once
    - read(database, key): Point lookup returning 0 or 1 values
    - remove(database, key): Delete a record
    - remove_database(database): Drop the whole logical database
    - iterate(database, callback): Visit records in backend order
    - read_all(database, spec): Filter and sort up to limit records
    - find(database, spec): Selector match with offset/limit paging and totals

    Write faults are logged and returned as a failed WriteResult instead of
    being raised. Read faults propagate.

    The backend has no snapshot isolation. Writes to a database while
    iterate, read_all or find walk it may shift records across an offset
    window, so consecutive pages can skip or repeat records. Callers that
    need stable paging must stop writers while they page.
    """

    def __init__(self, pool: InstancePool, query_size_limit: int = 50) -> None:
        """
        Initialize the engine.

        Args:
            pool: Pool handing out driver handles by database name.
            query_size_limit: Window size used when a query has no limit.
        """
        if query_size_limit <= 0:
            raise ValueError(f"query_size_limit must be positive, got {query_size_limit}")
        self._pool = pool
        self.query_size_limit = query_size_limit

    async def store(self, database: str, key: str, data: Any) -> WriteResult:
        """
        Write data under key, replacing any previous value.

        Returns:
            WriteResult carrying the backend fault if the write failed.
        """
        _require("store", database=database, key=key, data=data)
        return await self._write("store", database, key, data)

    async def update(self, database: str, key: str, data: Any) -> WriteResult:
        """Same upsert semantics as store()."""
        _require("update", database=database, key=key, data=data)
        return await self._write("update", database, key, data)

    async def _write(self, operation: str, database: str, key: str, data: Any) -> WriteResult:
        db = await self._pool.get(database)
        try:
            await db.set_item(key, data)
        except Exception as e:
            logger.error(f"Problem storing to {database}: {e}")
            return WriteResult(operation, database, key, error=e)
        return WriteResult(operation, database, key)

    async def store_bulk(self, database: str, items: Mapping[str, Any]) -> WriteResult:
        """Write every (key, value) of items."""
        _require("store_bulk", database=database, items=items)
        if not isinstance(items, Mapping):
            raise ValidationError("store_bulk", "items", "store_bulk: 'items' must be a mapping")
        for key in items:
            _require("store_bulk", key=key)

        db = await self._pool.get(database)
        try:
            await db.set_items(items)
        except Exception as e:
            logger.error(f"Problem storing items to {database}: {e}")
            return WriteResult("store_bulk", database, error=e)
        return WriteResult("store_bulk", database)

    async def read(self, database: str, key: str) -> list[Any]:
        """
        Look up key.

        Returns:
            [value] if key exists, [] otherwise.
        """
        _require("read", database=database, key=key)
        db = await self._pool.get(database)
        value = await db.get_item(key)
        return [] if value is None else [value]

    async def remove(self, database: str, key: str) -> WriteResult:
        """Delete key. Removing an absent key succeeds."""
        _require("remove", database=database, key=key)
        db = await self._pool.get(database)
        try:
            await db.remove_item(key)
        except Exception as e:
            logger.error(f"Problem removing item from {database}: {e}")
            return WriteResult("remove", database, key, error=e)
        return WriteResult("remove", database, key)

    async def remove_database(self, database: str) -> None:
        """Irreversibly drop database. Faults propagate."""
        _require("remove_database", database=database)
        await self._pool.drop(database)

    async def iterate(self, database: str, callback: Callable[[Any, str, int], Any]) -> Any:
        """
        Call callback(value, key, ordinal) for each record in backend order.

        Ordinals start at 1. The callback may be a plain function or a
        coroutine function. The first non-None value it returns stops the
        iteration and is returned.

        Returns:
            The callback's early-return value, or None.
        """
        _require("iterate", database=database)
        if not callable(callback):
            raise ValidationError("iterate", "callback", "iterate: missing callback function")

        db = await self._pool.get(database)
        ordinal = 0
        async for key, value in db.iterate():
            ordinal += 1
            result = callback(value, key, ordinal)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                return result
        return None

    def _limit(self, spec: QuerySpec) -> int:
        return spec.limit if spec.limit is not None else self.query_size_limit

    async def read_all(self, database: str, spec: QuerySpec | None = None) -> list[Any]:
        """
        Collect up to limit records accepted by spec, then sort them.

        Records are taken in backend order; the scan stops as soon as limit
        records are collected.
        """
        _require("read_all", database=database)
        spec = spec or QuerySpec()
        limit = self._limit(spec)
        db = await self._pool.get(database)

        collected: list[Any] = []
        ordinal = 0
        async for key, value in db.iterate():
            ordinal += 1
            if spec.accepts(value, key, ordinal):
                collected.append(value)
                if len(collected) >= limit:
                    break

        return sort_records(collected, spec.sort)

    async def find(self, database: str, spec: QuerySpec) -> list[Any] | QueryResult:
        """
        Match records against spec.selector and return one page of them.

        Single pass over the store in backend order. Every match counts
        towards total. The first `offset` matches are skipped, the next
        `limit` form the window. Without include_total the scan stops once
        the window is full; with it the whole store is scanned so total is
        exact. Only the window is sorted.

        Returns:
            The window, or QueryResult(total, window) if include_total.
        """
        _require("find", database=database, spec=spec)
        limit = self._limit(spec)
        offset = spec.offset
        db = await self._pool.get(database)

        window: list[Any] = []
        total = 0
        ordinal = 0
        async for key, value in db.iterate():
            ordinal += 1
            if not spec.accepts(value, key, ordinal):
                continue

            total += 1
            if total <= offset:
                continue

            if len(window) < limit:
                window.append(value)
            if len(window) >= limit and not spec.include_total:
                break

        sort_records(window, spec.sort)
        if spec.include_total:
            return QueryResult(total=total, data=window)
        return window
