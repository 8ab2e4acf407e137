"""
Asynchronous TCP port scanning with banner capture.

Connections are plain TCP connects with short timeouts. Concurrency is
bounded at two levels: a fixed number of devices at a time and, within a
device, a fixed number of ports at a time. A port that refuses, times out
or errors is simply not open; nothing below the device level is reported
as a failure.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .base_scanner import BaseScanner
from ..config.config_loader import PortScanConfig
from ..core.data_models import Device, Protocol, PortState, ScanPhase, ScanProgress, Service
from ..utils.error_handler import ConfigurationError, ErrorHandler, PortListError
from ..utils.logger import Logger
from ..utils.network_utils import is_valid_ip

Connector = Callable[[str, int], Awaitable[Tuple[asyncio.StreamReader, asyncio.StreamWriter]]]
ProgressSink = Callable[[ScanProgress], None]

T = TypeVar("T")

HTTP_PROBE = b"GET / HTTP/1.0\r\nHost: localhost\r\n\r\n"

# Ports that only talk after a request
HTTP_PROBE_PORTS = frozenset({80, 8080, 8000, 8001, 3000, 3001, 8008, 11434, 18789, 18793})

MAX_BANNER_LENGTH = 200
ALL_PORTS = range(1, 65536)

_BANNER_WHITESPACE = frozenset(" \t\n\r\x0c")

# Checked in order against the lowercased banner
_BANNER_SERVICES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("ssh",), "SSH"),
    (("http", "html"), "HTTP"),
    (("ftp",), "FTP"),
    (("smtp",), "SMTP"),
    (("ollama",), "Ollama API"),
    (("openclaw",), "OpenClaw"),
)

_PORT_SERVICES = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    443: "HTTPS",
    139: "SMB",
    445: "SMB",
    548: "AFP",
    554: "RTSP",
    3389: "RDP",
    5000: "Synology",
    5001: "Synology",
    8080: "HTTP Alt",
    8443: "HTTP Alt",
    9100: "Printer",
    62078: "Apple Device",
    8008: "Chromecast",
    8009: "Chromecast",
    11434: "Ollama",
    9229: "Node Debug",
    8501: "Streamlit",
    3000: "Dev Server",
    3001: "Dev Server",
    8000: "Python Server",
    8001: "Python Server",
    18789: "OpenClaw Gateway",
    18793: "OpenClaw Canvas",
}

# Checked in order after the OpenClaw family
_BANNER_AGENTS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("claude", "anthropic"), "Claude Code"),
    (("clawdbot", "clawd"), "Clawdbot"),
    (("moldbot",), "Moldbot"),
    (("ollama",), "Ollama"),
    (("llama", "ggml"), "Llama.cpp"),
    (("openai",), "OpenAI API"),
    (("vllm",), "vLLM"),
    (("text-generation",), "TGI"),
    (("cursor",), "Cursor"),
    (("aider",), "Aider"),
    (("continue",), "Continue.dev"),
    (("copilot",), "GitHub Copilot"),
    (("codeium",), "Codeium"),
    (("tabnine",), "TabNine"),
)

_PORT_AGENTS = {
    11434: "Ollama",
    8501: "Aider (Streamlit)",
    18789: "OpenClaw",
    18793: "OpenClaw",
}


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _chunks(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def sanitize_banner(data: bytes, limit: int = MAX_BANNER_LENGTH) -> Optional[str]:
    """
    Reduce raw bytes read from a socket to displayable banner text.

    Keeps printable ASCII and whitespace, caps the length and strips
    surrounding whitespace.

    Args:
        data: Bytes read after connecting
        limit: Maximum number of characters kept

    Returns:
        Banner text, or None if nothing printable remains
    """
    text = data.decode("utf-8", errors="replace")
    kept = [c for c in text if "!" <= c <= "~" or c in _BANNER_WHITESPACE]
    banner = "".join(kept[:limit]).strip()
    return banner or None


def identify_service(port: int, banner: Optional[str] = None) -> Optional[str]:
    """
    Name the service behind an open port.

    Banner keywords win over the port number table.

    Args:
        port: Open port
        banner: Sanitized banner, if any

    Returns:
        Service name, or None for unknown ports without a telling banner
    """
    if banner:
        banner_lower = banner.lower()
        for keywords, name in _BANNER_SERVICES:
            if _contains_any(banner_lower, keywords):
                return name
    return _PORT_SERVICES.get(port)


def detect_agent(port: int, banner: Optional[str] = None) -> Optional[str]:
    """
    Guess which AI or developer tool is listening on a port.

    Banner fingerprints are checked first, with named bots recognized inside
    the OpenClaw family. Without a matching banner a few well known ports
    give a fallback guess.

    Args:
        port: Open port
        banner: Sanitized banner, if any

    Returns:
        Agent name, or None
    """
    if banner:
        banner_lower = banner.lower()
        if _contains_any(banner_lower, ("openclaw", "open-claw")):
            if _contains_any(banner_lower, ("clawdbot", "clawd")):
                return "Clawdbot (OpenClaw)"
            if _contains_any(banner_lower, ("moldbot", "mold")):
                return "Moldbot (OpenClaw)"
            return "OpenClaw"
        for keywords, name in _BANNER_AGENTS:
            if _contains_any(banner_lower, keywords):
                return name
    return _PORT_AGENTS.get(port)


def validate_port_list(ports: Iterable[int]) -> Tuple[int, ...]:
    """
    Check a port list before scanning.

    Zero entries are dropped. Duplicates are kept once, in first-seen order.

    Raises:
        PortListError: If no non-zero port remains or a port is out of range
    """
    cleaned: List[int] = []
    for port in ports:
        if port == 0:
            continue
        if not 1 <= port <= 65535:
            raise PortListError(f"Port out of range: {port}")
        if port not in cleaned:
            cleaned.append(port)

    if not cleaned:
        raise PortListError("Port list is empty")
    return tuple(cleaned)


class PortScanner(BaseScanner):
    """
    Bounded-concurrency TCP connect scanner.

    The connector defaults to asyncio.open_connection and can be replaced,
    which is how the concurrency limits are tested without a network.
    """

    def __init__(
        self,
        config: Optional[PortScanConfig] = None,
        logger: Optional[Logger] = None,
        error_handler: Optional[ErrorHandler] = None,
        connector: Optional[Connector] = None,
    ):
        """
        Initialize the port scanner.

        Args:
            config: Port scan configuration (default: PortScanConfig())
            logger: Logger instance
            error_handler: ErrorHandler instance
            connector: Coroutine function (host, port) -> (reader, writer)

        Raises:
            ConfigurationError: If a timeout or concurrency limit is not positive
        """
        super().__init__(logger, error_handler)
        self.config = config or PortScanConfig()
        self.connector = connector or asyncio.open_connection
        self._check_limits()

    @property
    def scanner_type(self) -> str:
        return "PortScan"

    def _check_limits(self) -> None:
        limits = {
            "connect_timeout": self.config.connect_timeout,
            "banner_timeout": self.config.banner_timeout,
            "banner_read_bytes": self.config.banner_read_bytes,
            "max_concurrent_devices": self.config.max_concurrent_devices,
            "max_concurrent_ports": self.config.max_concurrent_ports,
            "deep_scan_chunk": self.config.deep_scan_chunk,
        }
        for name, value in limits.items():
            if value is None or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    async def scan_ports(
        self,
        devices: List[Device],
        ports: Optional[Iterable[int]] = None,
        progress: Optional[ProgressSink] = None,
    ) -> List[Device]:
        """
        Probe every device for open ports and attach the services found.

        Devices are scanned max_concurrent_devices at a time. One PORT_SCAN
        event per finished device goes to ``progress``, in completion order.

        Args:
            devices: Devices to scan, updated in place
            ports: Ports to probe (default: configured list)
            progress: Callback receiving progress snapshots

        Returns:
            The same device list

        Raises:
            PortListError: If the port list is empty or all zero
        """
        port_list = validate_port_list(self.config.ports if ports is None else ports)
        total_ports = len(port_list) * len(devices)
        scanned = 0

        self._start_scan_timer()
        self._log_info(f"Scanning {len(port_list)} ports on {len(devices)} devices")

        for chunk in _chunks(devices, self.config.max_concurrent_devices):
            tasks = [self._scan_device(device, port_list) for device in chunk]
            for finished in asyncio.as_completed(tasks):
                device = await finished
                scanned += len(port_list)
                if progress is not None:
                    progress(ScanProgress(
                        phase=ScanPhase.PORT_SCAN,
                        devices_found=len(devices),
                        current_device=device.mac_address,
                        ports_scanned=scanned,
                        total_ports=total_ports,
                    ))

        open_count = sum(len(device.services) for device in devices)
        self._log_info(
            f"Port scan completed. {open_count} open ports in {self._end_scan_timer():.2f} seconds"
        )
        return devices

    async def deep_scan(self, device: Device, progress: Optional[ProgressSink] = None) -> Device:
        """
        Probe all 65535 ports of a single device.

        Ports are handled in slices of deep_scan_chunk with one progress event
        per slice, labelled with the device IP.

        Args:
            device: Device to scan, updated in place
            progress: Callback receiving progress snapshots

        Returns:
            The same device
        """
        total_ports = len(ALL_PORTS)
        scanned = 0
        services: List[Service] = []

        self._start_scan_timer()
        self._log_info(f"Full port scan of {device.ip_address}")

        for chunk in _chunks(ALL_PORTS, self.config.deep_scan_chunk):
            services.extend(await self._probe_ports(device.ip_address, chunk))
            scanned += len(chunk)
            if progress is not None:
                progress(ScanProgress(
                    phase=ScanPhase.PORT_SCAN,
                    devices_found=1,
                    current_device=device.ip_address,
                    ports_scanned=scanned,
                    total_ports=total_ports,
                ))

        device.services = sorted(services, key=lambda service: service.port)
        self._log_info(
            f"Full scan of {device.ip_address} found {len(device.services)} open ports "
            f"in {self._end_scan_timer():.2f} seconds"
        )
        return device

    async def _scan_device(self, device: Device, ports: Sequence[int]) -> Device:
        if not is_valid_ip(device.ip_address):
            self._log_warning(f"Invalid target skipped: {device.ip_address} ({device.mac_address})")
            device.services = []
            return device

        services = await self._probe_ports(device.ip_address, ports)
        device.services = sorted(services, key=lambda service: service.port)
        self._log_debug(f"{device.ip_address}: {len(device.services)} open ports")
        return device

    async def _probe_ports(self, ip_address: str, ports: Sequence[int]) -> List[Service]:
        services = []
        for chunk in _chunks(ports, self.config.max_concurrent_ports):
            results = await asyncio.gather(*(self.scan_port(ip_address, port) for port in chunk))
            services.extend(service for service in results if service is not None)
        return services

    async def scan_port(self, ip_address: str, port: int) -> Optional[Service]:
        """
        Connect to one port and describe it if it is open.

        Args:
            ip_address: Target IPv4 address
            port: Target port

        Returns:
            Service for an open port, None if closed, filtered or unreachable
        """
        try:
            reader, writer = await asyncio.wait_for(
                self.connector(ip_address, port), self.config.connect_timeout
            )
        except (asyncio.TimeoutError, OSError):
            return None

        try:
            banner = await self._grab_banner(reader, writer, port)
        finally:
            writer.close()

        return Service(
            port=port,
            protocol=Protocol.TCP,
            state=PortState.OPEN,
            service_name=identify_service(port, banner),
            banner=banner,
            detected_agent=detect_agent(port, banner),
        )

    async def _grab_banner(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, port: int
    ) -> Optional[str]:
        if port in HTTP_PROBE_PORTS:
            try:
                writer.write(HTTP_PROBE)
                await asyncio.wait_for(writer.drain(), self.config.banner_timeout)
            except (asyncio.TimeoutError, OSError) as e:
                self._log_debug(f"Probe write to port {port} failed: {e}")

        try:
            data = await asyncio.wait_for(
                reader.read(self.config.banner_read_bytes), self.config.banner_timeout
            )
        except (asyncio.TimeoutError, OSError):
            return None

        return sanitize_banner(data) if data else None
