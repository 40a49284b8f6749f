"""
Storage - per-database facade over the query engine.
"""

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from chainstore.context import StoreContext
from chainstore.models.exceptions import ValidationError
from chainstore.models.query import QueryResult, QuerySpec
from chainstore.models.result import WriteResult


class Storage:
    """
    Binds every engine operation to one logical database.

    Holds the context rather than the engine so a facade created before
    the context is opened works once it is.
    """

    def __init__(self, store_name: str, context: StoreContext) -> None:
        if not store_name:
            raise ValidationError("Storage", "store_name", "Storage missing store_name")
        self.name = store_name
        self._context = context

    def __repr__(self) -> str:
        return f"Storage(name={self.name!r})"

    async def store(self, key: str, data: Any) -> WriteResult:
        return await self._context.engine.store(self.name, key, data)

    async def store_bulk(self, items: Mapping[str, Any]) -> WriteResult:
        return await self._context.engine.store_bulk(self.name, items)

    async def read(self, key: str) -> list[Any]:
        return await self._context.engine.read(self.name, key)

    async def read_all(self, spec: QuerySpec | None = None, **query: Any) -> list[Any]:
        """Accepts a QuerySpec or its fields as keyword arguments."""
        return await self._context.engine.read_all(self.name, _spec(spec, query))

    async def find(
        self, spec: QuerySpec | None = None, **query: Any
    ) -> list[Any] | QueryResult:
        """Accepts a QuerySpec or its fields as keyword arguments."""
        return await self._context.engine.find(self.name, _spec(spec, query))

    async def update(self, key: str, data: Any) -> WriteResult:
        return await self._context.engine.update(self.name, key, data)

    async def remove(self, key: str) -> WriteResult:
        return await self._context.engine.remove(self.name, key)

    async def remove_db(self) -> None:
        """Irreversibly destroy this database. The next write recreates it."""
        await self._context.engine.remove_database(self.name)

    async def iterate(self, callback: Callable[[Any, str, int], Any]) -> Any:
        return await self._context.engine.iterate(self.name, callback)

    async def store_batch(
        self, items: Sequence[Mapping[str, Any]], sequence_field: str = "blockNumber"
    ) -> WriteResult:
        """
        Store a batch of items sharing one sequence number.

        The batch is stored as {"txns": items} under the stringified
        sequence number of its first item, replacing any earlier batch.
        """
        if not items:
            raise ValidationError("store_batch", "items")
        sequence = items[0].get(sequence_field)
        if sequence is None:
            raise ValidationError("store_batch", sequence_field)
        return await self.store(str(sequence), {"txns": list(items)})

    def add_to_router(self, router: Any, sequence_field: str = "blockNumber") -> None:
        """
        Register a middleware with an event router that stores every batch.

        The router must provide use(handler); handlers are called as
        handler(items, next_, end) and call next_() to continue the chain.
        """

        async def handler(
            items: Sequence[Mapping[str, Any]],
            next_: Callable[[], Awaitable[Any] | Any],
            end: Callable[..., Any] | None = None,
        ) -> None:
            if items:
                # Write faults are already logged by the engine
                await self.store_batch(items, sequence_field)
            outcome = next_()
            if inspect.isawaitable(outcome):
                await outcome

        router.use(handler)


def _spec(spec: QuerySpec | None, query: dict[str, Any]) -> QuerySpec:
    if spec is not None and query:
        raise TypeError("Pass either a QuerySpec or query keyword arguments, not both")
    return spec if spec is not None else QuerySpec(**query)
