"""
DriverSelector - pick the storage driver once, falling back to the filesystem.
"""

import logging

from chainstore.drivers.environment import EnvironmentStore
from chainstore.drivers.filesystem import FileDriver
from chainstore.drivers.memory import MemoryDriver
from chainstore.drivers.registry import DriverRegistry

logger = logging.getLogger(__name__)


class DriverSelector:
    """
    Decides whether the environment store can be used as primary backend.

    The decision is made on the first select() call and never changes
    afterwards. When the environment store fails its probe, the filesystem
    driver is defined with the registry and becomes the selected driver.
    """

    PROBE_KEY = "__chainstore_probe"
    PROBE_VALUE = "true"

    def __init__(
        self,
        registry: DriverRegistry,
        environment: EnvironmentStore | None,
        storage_dir: str = "data/",
        fsync_interval_ms: int = 0,
    ) -> None:
        """
        Initialize the selector.

        Args:
            registry: Registry the fallback driver is defined with.
            environment: Primary environment store; None means unavailable.
            storage_dir: Root directory for the filesystem fallback.
            fsync_interval_ms: fsync interval for the filesystem fallback.
        """
        self._registry = registry
        self._environment = environment
        self._storage_dir = storage_dir
        self._fsync_interval_ms = fsync_interval_ms
        self._driver_name: str | None = None

    @property
    def driver_name(self) -> str | None:
        """Name of the selected driver, None until select() has run."""
        return self._driver_name

    def probe_primary(self) -> bool:
        """
        Write, read back and delete a sentinel key on the environment store.

        Returns:
            True if the value round-trips non-empty. Faults are logged and
            reported as False.
        """
        if self._environment is None:
            logger.debug("No environment store available")
            return False

        try:
            self._environment.set_item(self.PROBE_KEY, self.PROBE_VALUE)
            read_back = self._environment.get_item(self.PROBE_KEY)
            logger.debug(f"Environment store probe read back {read_back!r}")
            if not read_back:
                return False
            self._environment.remove_item(self.PROBE_KEY)
            return True
        except Exception as e:
            logger.error(f"Problem probing environment store: {e}")
            return False

    def select(self) -> str:
        """
        Select the driver for this context and return its name.

        Idempotent: only the first call probes.
        """
        if self._driver_name is not None:
            return self._driver_name

        if self.probe_primary():
            self._driver_name = MemoryDriver.NAME
        else:
            logger.debug("Installing local FS driver...")
            self._registry.define_driver(
                FileDriver,
                storage_dir=self._storage_dir,
                fsync_interval_ms=self._fsync_interval_ms,
            )
            self._driver_name = FileDriver.NAME

        logger.debug(f"Selected driver: {self._driver_name}")
        return self._driver_name
