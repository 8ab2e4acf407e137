"""
Core data models and enums for LAN reconnaissance.

This module defines the device and service records built up by the scan
pipeline, the scan phase state machine and the progress snapshots emitted
while a scan runs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple


class DeviceType(Enum):
    """Device categories inferred by the classifier. Values are display names."""
    ROUTER = "Router"
    PHONE = "Phone"
    COMPUTER = "Computer"
    LAPTOP = "Laptop"
    TABLET = "Tablet"
    SMART_TV = "Smart TV"
    PRINTER = "Printer"
    NAS = "NAS"
    IOT = "IoT Device"
    GAME_CONSOLE = "Game Console"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


class Protocol(Enum):
    """Transport protocol of an observed service."""
    TCP = "TCP"
    UDP = "UDP"

    def __str__(self) -> str:
        return self.value


class PortState(Enum):
    """Port state. Only OPEN is ever recorded by the port scanner."""
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"


class ScanPhase(Enum):
    """
    Ordered phases of one scan run.

    Each member carries its ordinal, used to detect progress events that
    arrive after a later phase has already been seen, and a human label.
    """
    DISCOVERY = (0, "Discovering devices")
    PORT_SCAN = (1, "Scanning ports")
    IDENTIFICATION = (2, "Identifying devices")
    COMPLETE = (3, "Complete")

    def __init__(self, ordinal: int, label: str):
        self.ordinal = ordinal
        self.label = label

    def __str__(self) -> str:
        return self.label


# Fixed probe list shared by scan-ports and scan-devices
COMMON_PORTS: Tuple[int, ...] = (
    21,     # FTP
    22,     # SSH
    23,     # Telnet
    25,     # SMTP
    53,     # DNS
    80,     # HTTP
    139,    # NetBIOS
    443,    # HTTPS
    445,    # SMB
    548,    # AFP
    554,    # RTSP
    3389,   # RDP
    5000,   # Synology/UPnP
    5001,   # Synology SSL
    8080,   # Alt HTTP
    8443,   # Alt HTTPS
    9100,   # Printer
    62078,  # Apple iDevice
    8008,   # Chromecast
    8009,   # Chromecast
    3000,   # Dev servers
    3001,
    8000,   # Python servers
    8001,
    11434,  # Ollama
    9229,   # Node.js debug
    8501,   # Streamlit
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Service:
    """
    One open TCP port observed on a device.

    Attributes:
        port: Port number
        protocol: Transport protocol (always TCP from the scanner)
        state: Port state (always OPEN from the scanner)
        service_name: Service inferred from banner or port number
        banner: Sanitized banner text, at most 200 printable characters
        detected_agent: AI or developer tool inferred from banner or port
    """
    port: int
    protocol: Protocol = Protocol.TCP
    state: PortState = PortState.OPEN
    service_name: Optional[str] = None
    banner: Optional[str] = None
    detected_agent: Optional[str] = None


@dataclass
class Device:
    """
    A physical endpoint seen on the local network.

    The MAC address is the identity key; IP addresses change under DHCP.

    Attributes:
        mac_address: Uppercase colon-separated MAC address
        ip_address: Current IPv4 address
        hostname: Hostname from the ARP table, if any
        vendor: Manufacturer derived from the MAC prefix
        device_type: Category assigned by the classifier
        custom_name: User supplied name, never derived
        first_seen: When the device was first observed (UTC)
        last_seen: When the device was last observed (UTC)
        is_online: Whether the device answered in this scan
        services: Open services found by the port scanner
        detected_agents: Distinct agent names taken from services
        is_gateway: Whether this device is the default gateway
    """
    mac_address: str
    ip_address: str
    hostname: Optional[str] = None
    vendor: Optional[str] = None
    device_type: DeviceType = DeviceType.UNKNOWN
    custom_name: Optional[str] = None
    first_seen: datetime = field(default_factory=_utc_now)
    last_seen: datetime = field(default_factory=_utc_now)
    is_online: bool = True
    services: List[Service] = field(default_factory=list)
    detected_agents: List[str] = field(default_factory=list)
    is_gateway: bool = False

    def display_name(self) -> str:
        """Custom name, then hostname, then "vendor type", then MAC."""
        if self.custom_name:
            return self.custom_name
        if self.hostname:
            return self.hostname
        if self.vendor:
            return f"{self.vendor} {self.device_type}"
        return self.mac_address

    def open_ports(self) -> List[int]:
        return sorted({service.port for service in self.services})


@dataclass(frozen=True)
class ScanProgress:
    """
    Snapshot of a running scan.

    The final COMPLETE event of a scan carries either the device list in
    ``result`` or the exception that stopped the scan in ``error``.

    Attributes:
        phase: Phase this snapshot belongs to
        devices_found: Number of devices known at this point
        current_device: Label (MAC or IP) of the device just finished
        ports_scanned: Cumulative number of ports probed
        total_ports: Number of ports the phase will probe in total
        result: Final device list, COMPLETE only
        error: Failure that ended the scan, COMPLETE only
    """
    phase: ScanPhase
    devices_found: int = 0
    current_device: Optional[str] = None
    ports_scanned: int = 0
    total_ports: int = 0
    result: Optional[Tuple[Device, ...]] = field(default=None, compare=False)
    error: Optional[Exception] = field(default=None, compare=False)

    @classmethod
    def complete(cls, devices: List[Device]) -> "ScanProgress":
        return cls(
            phase=ScanPhase.COMPLETE,
            devices_found=len(devices),
            result=tuple(devices),
        )

    @classmethod
    def failed(cls, error: Exception) -> "ScanProgress":
        return cls(phase=ScanPhase.COMPLETE, error=error)

    @property
    def fraction(self) -> float:
        if not self.total_ports:
            return 0.0
        return min(self.ports_scanned / self.total_ports, 1.0)
