"""
Persistence interface for scan results.

The scan pipeline never reads from storage. After a scan completes, devices
and their open services are handed to a DeviceStore through two idempotent
upserts: one keyed by MAC address and one keyed by (device id, port,
protocol).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..core.data_models import Device, PortState
from ..utils.error_handler import ErrorContext, ErrorHandler, ErrorSeverity, ErrorType, StorageError
from ..utils.logger import Logger, get_logger


class DeviceStore(ABC):
    """Destination for completed scan results."""

    @abstractmethod
    def upsert_device(
        self,
        mac_address: str,
        ip_address: str,
        hostname: Optional[str],
        vendor: Optional[str],
        device_type: str,
        custom_name: Optional[str],
        network_id: Optional[str],
    ) -> int:
        """
        Insert or update a device by MAC address.

        Returns:
            Store-assigned device id, stable for a given MAC

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    def upsert_device_service(
        self,
        device_id: int,
        port: int,
        protocol: str,
        service_name: Optional[str],
        banner: Optional[str],
        detected_agent: Optional[str],
    ) -> None:
        """
        Insert or update a service by (device id, port, protocol).

        Raises:
            StorageError: If the write fails
        """


@dataclass
class StoredDevice:
    """A device row held by InMemoryDeviceStore."""
    device_id: int
    mac_address: str
    ip_address: str
    hostname: Optional[str]
    vendor: Optional[str]
    device_type: str
    custom_name: Optional[str]
    network_id: Optional[str]
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class StoredService:
    """A service row held by InMemoryDeviceStore."""
    device_id: int
    port: int
    protocol: str
    service_name: Optional[str]
    banner: Optional[str]
    detected_agent: Optional[str]


class InMemoryDeviceStore(DeviceStore):
    """
    Dictionary-backed DeviceStore.

    Follows the same upsert rules an external database would: a custom name
    already on record is kept when the caller passes None, and a device's
    id never changes once assigned.
    """

    def __init__(self):
        self.devices: Dict[str, StoredDevice] = {}
        self.services: Dict[Tuple[int, int, str], StoredService] = {}
        self._next_id = 1

    def upsert_device(self, mac_address, ip_address, hostname, vendor, device_type,
                      custom_name, network_id) -> int:
        key = mac_address.upper()
        existing = self.devices.get(key)

        if existing is None:
            stored = StoredDevice(
                device_id=self._next_id,
                mac_address=key,
                ip_address=ip_address,
                hostname=hostname,
                vendor=vendor,
                device_type=device_type,
                custom_name=custom_name,
                network_id=network_id,
            )
            self.devices[key] = stored
            self._next_id += 1
            return stored.device_id

        existing.ip_address = ip_address
        existing.hostname = hostname or existing.hostname
        existing.vendor = vendor or existing.vendor
        existing.device_type = device_type
        existing.custom_name = custom_name or existing.custom_name
        existing.network_id = network_id or existing.network_id
        existing.last_seen = datetime.now(timezone.utc)
        return existing.device_id

    def upsert_device_service(self, device_id, port, protocol, service_name, banner,
                              detected_agent) -> None:
        if not any(d.device_id == device_id for d in self.devices.values()):
            raise StorageError(f"Unknown device id {device_id}")

        self.services[(device_id, port, protocol)] = StoredService(
            device_id=device_id,
            port=port,
            protocol=protocol,
            service_name=service_name,
            banner=banner,
            detected_agent=detected_agent,
        )

    def services_for(self, mac_address: str) -> List[StoredService]:
        stored = self.devices.get(mac_address.upper())
        if stored is None:
            return []
        return sorted(
            (s for s in self.services.values() if s.device_id == stored.device_id),
            key=lambda s: s.port,
        )


def persist_devices(
    store: DeviceStore,
    devices: List[Device],
    network_id: Optional[str] = None,
    logger: Optional[Logger] = None,
    error_handler: Optional[ErrorHandler] = None,
) -> int:
    """
    Write a completed scan to a store.

    A device whose write fails is reported and skipped; the rest are still
    stored. Only OPEN services are written.

    Args:
        store: Destination store
        devices: Identified devices from a completed scan
        network_id: Identifier of the network the scan ran on
        logger: Logger instance
        error_handler: ErrorHandler receiving storage failures

    Returns:
        Number of devices stored successfully
    """
    logger = logger or get_logger("DeviceStore")
    error_handler = error_handler or ErrorHandler(logger)
    stored = 0

    for device in devices:
        try:
            device_id = store.upsert_device(
                device.mac_address,
                device.ip_address,
                device.hostname,
                device.vendor,
                device.device_type.value,
                device.custom_name,
                network_id,
            )
            for service in device.services:
                if service.state != PortState.OPEN:
                    continue
                store.upsert_device_service(
                    device_id,
                    service.port,
                    service.protocol.value,
                    service.service_name,
                    service.banner,
                    service.detected_agent,
                )
        except StorageError as e:
            context = ErrorContext(
                error_type=ErrorType.STORAGE_ERROR,
                severity=ErrorSeverity.MEDIUM,
                operation="persist_devices",
                component="DeviceStore",
                additional_info={"mac_address": device.mac_address},
            )
            error_handler.handle_error(e, context)
            continue
        stored += 1

    logger.debug(f"Persisted {stored} of {len(devices)} devices")
    return stored
