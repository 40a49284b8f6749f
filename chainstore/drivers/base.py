"""
Driver protocol every storage backend implements.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from typing import Any


class Driver(ABC):
    """
    Capability contract for a named key-value store.

    Implementations must support:
    - Opening (or creating) a store by name via open()
    - Point reads, writes and deletes
    - Forward iteration over all records in backend-native order
    - Irreversible deletion of the whole store via drop_instance()

    There is no indexing, range query or skip capability: the query engine
    only ever walks iterate() from the start.
    """

    NAME: str = ""

    def __init__(self, name: str) -> None:
        self.name = name

    @classmethod
    @abstractmethod
    async def open(cls, name: str, **options: Any) -> "Driver":
        """
        Open the store called name, creating it if it does not exist.

        Args:
            name: Logical database name.
            **options: Driver specific options registered with the registry.
        """
        pass

    @abstractmethod
    async def get_item(self, key: str) -> Any | None:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: Any) -> None:
        """Write value under key, replacing any previous value."""
        pass

    async def set_items(self, items: Mapping[str, Any]) -> None:
        """Write several values. Drivers override this to batch the I/O."""
        for key, value in items.items():
            await self.set_item(key, value)

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete key. Deleting an absent key is a no-op."""
        pass

    @abstractmethod
    def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        """
        Return an async iterator over (key, value) pairs in native order.

        Writes made while the iterator is live must not raise; records added
        or removed mid-iteration may or may not be observed.
        """
        pass

    @abstractmethod
    async def length(self) -> int:
        """Number of records in the store."""
        pass

    @abstractmethod
    async def drop_instance(self) -> None:
        """Irreversibly delete every record of this store."""
        pass

    async def close(self) -> None:
        """Release any resources held by the driver."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
