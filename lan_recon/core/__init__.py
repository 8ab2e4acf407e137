"""
Core components for device discovery and identification.
"""

from .data_models import (
    COMMON_PORTS,
    Device,
    DeviceType,
    PortState,
    Protocol,
    ScanPhase,
    ScanProgress,
    Service
)
from .device_classifier import DeviceClassifier, ClassificationRule

__all__ = [
    'COMMON_PORTS',
    'Device',
    'DeviceType',
    'PortState',
    'Protocol',
    'ScanPhase',
    'ScanProgress',
    'Service',
    'DeviceClassifier',
    'ClassificationRule'
]
