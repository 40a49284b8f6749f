"""
StoreContext - explicit owner of settings, driver choice, pool and engine.
"""

import logging
from typing import TYPE_CHECKING

from chainstore.config import Settings
from chainstore.drivers.base import Driver
from chainstore.drivers.environment import EnvironmentStore, default_environment
from chainstore.drivers.memory import MemoryDriver
from chainstore.drivers.registry import DriverRegistry
from chainstore.engine.driver_selector import DriverSelector
from chainstore.engine.instance_pool import InstancePool
from chainstore.engine.query_engine import QueryEngine

if TYPE_CHECKING:
    from chainstore.storage import Storage

logger = logging.getLogger(__name__)


class StoreContext:
    """
    Everything the storage facades of one application share.

    open() selects the driver before any database is created; close()
    releases every open handle. Use it as an async context manager or via
    the create() factory:

        async with StoreContext(Settings(storage_dir="data/")) as ctx:
            blocks = ctx.storage("blocks")
            await blocks.store("42", {"blockNumber": 42})
    """

    def __init__(
        self,
        settings: Settings | None = None,
        environment: EnvironmentStore | None = default_environment,
    ) -> None:
        """
        Initialize the context. Nothing is probed or opened until open().

        Args:
            settings: Runtime settings; defaults to Settings().
            environment: Primary environment store, None if unavailable.
        """
        self.settings = settings or Settings()
        self.registry = DriverRegistry(environment=environment)
        self.selector = DriverSelector(
            self.registry,
            environment,
            storage_dir=self.settings.storage_dir,
            fsync_interval_ms=self.settings.fsync_interval_ms,
        )
        self._pool: InstancePool | None = None
        self._engine: QueryEngine | None = None

    @classmethod
    async def create(
        cls,
        settings: Settings | None = None,
        environment: EnvironmentStore | None = default_environment,
    ) -> "StoreContext":
        """Async factory returning an opened context."""
        context = cls(settings, environment)
        await context.open()
        return context

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def driver_name(self) -> str | None:
        return self.selector.driver_name

    @property
    def pool(self) -> InstancePool:
        if self._pool is None:
            raise RuntimeError("StoreContext is not open")
        return self._pool

    @property
    def engine(self) -> QueryEngine:
        if self._engine is None:
            raise RuntimeError("StoreContext is not open")
        return self._engine

    async def _open_database(self, name: str) -> Driver:
        return await self.registry.create_instance(name, self.selector.driver_name)

    async def open(self) -> None:
        """Select the driver and build the pool and engine. Idempotent."""
        if self.is_open:
            return
        driver = self.selector.select()
        if driver != MemoryDriver.NAME:
            logger.info(f"Environment store unavailable, using {driver} driver")
        self._pool = InstancePool(self._open_database)
        self._engine = QueryEngine(self._pool, self.settings.query_size_limit)

    async def close(self) -> None:
        """Close every open database handle."""
        if self._pool is not None:
            await self._pool.close()
        self._pool = None
        self._engine = None

    def storage(self, store_name: str) -> "Storage":
        """Return a facade bound to the logical database store_name."""
        from chainstore.storage import Storage

        return Storage(store_name, self)

    async def __aenter__(self) -> "StoreContext":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
