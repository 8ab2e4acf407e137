"""
Persistence of completed scans.
"""

from .device_store import DeviceStore, InMemoryDeviceStore, persist_devices

__all__ = ['DeviceStore', 'InMemoryDeviceStore', 'persist_devices']
