"""
MemoryDriver - in-memory driver backed by the environment store.
"""

import copy
from collections.abc import AsyncIterator, Mapping
from typing import Any

from chainstore.drivers.base import Driver
from chainstore.drivers.environment import EnvironmentStore, default_environment


class MemoryDriver(Driver):
    """
    Keeps each logical database as an insertion-ordered dict in the
    environment store. Records live as long as the environment does.

    Values are deep-copied on the way in and on the way out, so a stored
    record only changes through this driver. The table is looked up on every
    access; handles sharing an environment see a drop made through any of
    them.
    """

    NAME = "memory"

    def __init__(self, name: str, environment: EnvironmentStore) -> None:
        super().__init__(name)
        self._environment = environment

    @classmethod
    async def open(
        cls, name: str, environment: EnvironmentStore | None = None, **options: Any
    ) -> "MemoryDriver":
        return cls(name, environment if environment is not None else default_environment)

    @property
    def _records(self) -> dict[str, Any]:
        return self._environment.table(self.name)

    async def get_item(self, key: str) -> Any | None:
        return copy.deepcopy(self._records.get(key))

    async def set_item(self, key: str, value: Any) -> None:
        self._records[key] = copy.deepcopy(value)

    async def set_items(self, items: Mapping[str, Any]) -> None:
        self._records.update(copy.deepcopy(dict(items)))

    async def remove_item(self, key: str) -> None:
        self._records.pop(key, None)

    async def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        # Walk a key snapshot so writes during iteration never raise
        for key in list(self._records):
            if key in self._records:
                yield key, copy.deepcopy(self._records[key])

    async def length(self) -> int:
        return len(self._records)

    async def drop_instance(self) -> None:
        self._environment.drop_table(self.name)
