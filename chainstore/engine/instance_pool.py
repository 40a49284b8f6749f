"""
InstancePool - lazily opened, cached driver handles per logical database.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from chainstore.drivers.base import Driver

logger = logging.getLogger(__name__)

DriverFactory = Callable[[str], Awaitable[Driver]]


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks a failure as seen when every waiter was cancelled before it landed
    if not task.cancelled():
        task.exception()


class InstancePool:
    """
    Maps logical database names to open driver handles.

    Handles are opened on first use and cached until dropped or the pool is
    closed. Opening is single-flight: concurrent first access to the same
    name shares one factory call.
    """

    def __init__(self, factory: DriverFactory) -> None:
        """
        Initialize the pool.

        Args:
            factory: Coroutine function opening (or creating) a store by name.
        """
        self._factory = factory
        self._handles: dict[str, Driver] = {}
        self._opening: dict[str, asyncio.Task[Driver]] = {}

    def names(self) -> list[str]:
        return list(self._handles)

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    async def get(self, name: str) -> Driver:
        """
        Return the handle for name, opening it if needed.

        Open failures propagate to every waiter and are not retried; the
        next call tries again.
        """
        handle = self._handles.get(name)
        if handle is not None:
            return handle

        task = self._opening.get(name)
        if task is None:
            task = asyncio.create_task(self._open(name))
            task.add_done_callback(_retrieve_exception)
            self._opening[name] = task

        # Shield so one cancelled waiter doesn't abort the open for the others
        return await asyncio.shield(task)

    async def _open(self, name: str) -> Driver:
        try:
            handle = await self._factory(name)
            self._handles[name] = handle
            return handle
        finally:
            self._opening.pop(name, None)

    async def drop(self, name: str) -> None:
        """
        Irreversibly delete the store for name and evict its handle.

        The next get(name) creates a fresh, empty store.
        """
        handle = await self.get(name)
        logger.debug(f"Dropping DB {name}")
        try:
            await handle.drop_instance()
        finally:
            if self._handles.get(name) is handle:
                del self._handles[name]

    async def close(self) -> None:
        """Close every cached handle and empty the pool."""
        if self._opening:
            await asyncio.gather(*self._opening.values(), return_exceptions=True)

        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            await handle.close()
