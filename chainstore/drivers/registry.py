"""
DriverRegistry - the layer drivers are defined with and instantiated from.
"""

import logging
from typing import Any

from chainstore.drivers.base import Driver
from chainstore.drivers.memory import MemoryDriver
from chainstore.models.exceptions import DriverNotDefinedError

logger = logging.getLogger(__name__)


class DriverRegistry:
    """
    Maps driver names to driver classes and the options they open with.

    The memory driver is always defined and is the default. Other drivers
    are defined before any store is created from them.
    """

    DEFAULT_DRIVER = MemoryDriver.NAME

    def __init__(self, **memory_options: Any) -> None:
        self._drivers: dict[str, tuple[type[Driver], dict[str, Any]]] = {}
        self.define_driver(MemoryDriver, **memory_options)

    def define_driver(self, driver_cls: type[Driver], **options: Any) -> None:
        """
        Define (or redefine) a driver.

        Args:
            driver_cls: Driver implementation; registered under its NAME.
            **options: Keyword arguments passed to driver_cls.open().
        """
        if not driver_cls.NAME:
            raise ValueError(f"{driver_cls.__name__} has no NAME")
        logger.debug(f"Defining driver {driver_cls.NAME}")
        self._drivers[driver_cls.NAME] = (driver_cls, options)

    def is_defined(self, name: str) -> bool:
        return name in self._drivers

    def drivers(self) -> list[str]:
        return list(self._drivers)

    async def create_instance(self, name: str, driver: str | None = None) -> Driver:
        """
        Open the store called name with the given driver.

        Args:
            name: Logical database name.
            driver: Driver name; the default driver when None.

        Raises:
            DriverNotDefinedError: If the driver was never defined.
        """
        driver_name = driver or self.DEFAULT_DRIVER
        try:
            driver_cls, options = self._drivers[driver_name]
        except KeyError:
            raise DriverNotDefinedError(driver_name) from None

        logger.debug(f"Creating instance of DB with name {name} ({driver_name})")
        return await driver_cls.open(name, **options)
