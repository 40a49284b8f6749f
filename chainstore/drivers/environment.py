"""
EnvironmentStore - process-level key-value store the memory driver lives in.
"""

from typing import Any


class EnvironmentStore:
    """
    Synchronous string key-value store shared by everything in the process.

    Plays the part a host environment's local storage would: the driver
    selector probes it with set/get/remove of a sentinel key, and the memory
    driver keeps one table per logical database in it.
    """

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._tables: dict[str, dict[str, Any]] = {}

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def table(self, name: str) -> dict[str, Any]:
        """Return the table for name, creating an empty one if needed."""
        return self._tables.setdefault(name, {})

    def drop_table(self, name: str) -> None:
        self._tables.pop(name, None)

    def has_table(self, name: str) -> bool:
        return name in self._tables


default_environment = EnvironmentStore()
