"""
Storage backends and the registry they are instantiated from.
"""

from chainstore.drivers.base import Driver
from chainstore.drivers.environment import EnvironmentStore, default_environment
from chainstore.drivers.filesystem import FileDriver
from chainstore.drivers.memory import MemoryDriver
from chainstore.drivers.registry import DriverRegistry

__all__ = [
    "Driver",
    "DriverRegistry",
    "EnvironmentStore",
    "FileDriver",
    "MemoryDriver",
    "default_environment",
]
