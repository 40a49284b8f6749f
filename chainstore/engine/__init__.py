"""
Driver selection, handle pooling and query execution.
"""

from chainstore.engine.driver_selector import DriverSelector
from chainstore.engine.instance_pool import InstancePool
from chainstore.engine.query_engine import QueryEngine
from chainstore.engine.sorting import sort_records

__all__ = ["DriverSelector", "InstancePool", "QueryEngine", "sort_records"]
