"""
Registry module for the current device record and its durable stores
"""

from .manager import DeviceRegistry
from .store import DeviceStore, MemoryDeviceStore, JsonFileDeviceStore, PostgresDeviceStore, create_store

__all__ = ['DeviceRegistry', 'DeviceStore', 'MemoryDeviceStore', 'JsonFileDeviceStore',
           'PostgresDeviceStore', 'create_store']
