"""
ARP table discovery for lan_recon.

This module builds the initial device list from the host's ARP cache,
optionally after a ping sweep of the local subnet to populate it. The
default gateway is added from the route table when the cache lacks it and
this host's own entry is labelled.
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, NamedTuple, Optional

from .base_scanner import BaseScanner
from ..config.config_loader import DiscoveryConfig
from ..core.data_models import Device, DeviceType
from ..core.network_detector import CommandRunner, NetworkDetector, run_command
from ..utils.error_handler import (
    DiscoveryError, ErrorContext, ErrorHandler, ErrorSeverity, ErrorType
)
from ..utils.logger import Logger
from ..utils.network_utils import (
    NULL_MAC, get_network_hosts, is_broadcast_mac, is_multicast_mac, normalize_mac, ping_host,
    subnet_for,
)

SELF_HOSTNAME = "This device"

# "router.lan (192.168.1.1) at aa:bb:cc:dd:ee:ff [ether] on eth0"
# "? (192.168.1.7) at 0:e0:4c:1:2:3 on en0 ifscope [ethernet]"
_ARP_A_RE = re.compile(
    r"^(?P<host>\S+)\s+\((?P<ip>\d{1,3}(?:\.\d{1,3}){3})\)\s+at\s+(?P<mac>\S+)"
)

# "192.168.1.1 dev eth0 lladdr aa:bb:cc:dd:ee:ff REACHABLE"
_IP_NEIGH_RE = re.compile(
    r"^(?P<ip>\d{1,3}(?:\.\d{1,3}){3})\s+dev\s+\S+.*?\blladdr\s+(?P<mac>\S+)"
)

# Linux `arp -n`: "192.168.1.1  ether  aa:bb:cc:dd:ee:ff  C  eth0"
# Windows `arp -a`: "192.168.1.1  00-11-22-33-44-55  dynamic"
_TABLE_RE = re.compile(
    r"^(?P<ip>\d{1,3}(?:\.\d{1,3}){3})\s+(?:[a-z]+\s+)?"
    r"(?P<mac>[0-9A-Fa-f]{1,2}(?:[:-][0-9A-Fa-f]{1,2}){5}|\(incomplete\)|<incomplete>)"
)

_CANONICAL_MAC_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$")


class ArpEntry(NamedTuple):
    """One parsed ARP table line, MAC still as printed by the OS."""
    ip: str
    mac: str
    hostname: Optional[str] = None


def parse_arp_line(line: str) -> Optional[ArpEntry]:
    """
    Parse a single line of ARP or neighbour table output.

    Understands `arp -a` (BSD/Linux/Windows), `arp -n` and `ip neigh`.

    Args:
        line: One line of command output

    Returns:
        ArpEntry, or None for headers and lines without an address pair
    """
    line = line.strip()
    if not line:
        return None

    match = _ARP_A_RE.match(line)
    if match:
        host = match.group("host")
        ip = match.group("ip")
        hostname = None if host in ("?", ip) else host
        return ArpEntry(ip, match.group("mac"), hostname)

    match = _IP_NEIGH_RE.match(line) or _TABLE_RE.match(line)
    if match:
        return ArpEntry(match.group("ip"), match.group("mac"))

    return None


def parse_arp_output(output: str) -> List[ArpEntry]:
    entries = []
    for line in output.splitlines():
        entry = parse_arp_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def _is_placeholder(mac: str) -> bool:
    return "incomplete" in mac.lower()


def build_devices(entries: Iterable[ArpEntry]) -> List[Device]:
    """
    Turn ARP entries into devices, one per MAC address.

    Incomplete entries, broadcast and multicast addresses and anything that
    is not a six-octet MAC are dropped. MACs are compared after normalization
    and the first entry for a MAC wins, whatever IP later entries carry.

    Args:
        entries: Parsed ARP entries in table order

    Returns:
        Devices in first-seen order
    """
    devices = []
    seen_macs = set()

    for entry in entries:
        if _is_placeholder(entry.mac):
            continue
        mac = normalize_mac(entry.mac)
        if not _CANONICAL_MAC_RE.match(mac) or is_broadcast_mac(mac) or is_multicast_mac(mac):
            continue
        if mac in seen_macs:
            continue

        seen_macs.add(mac)
        devices.append(Device(mac_address=mac, ip_address=entry.ip, hostname=entry.hostname))

    return devices


class ARPScanner(BaseScanner):
    """
    Discovers neighbouring devices from the OS ARP cache.

    Only hosts this machine has recently talked to are in the cache, so an
    active sweep can be requested to ping the whole subnet first. The sweep
    is best effort: individual ping failures are ignored.
    """

    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        logger: Optional[Logger] = None,
        error_handler: Optional[ErrorHandler] = None,
        runner: Optional[CommandRunner] = None,
        detector: Optional[NetworkDetector] = None,
        pinger: Optional[Callable[[str, int], bool]] = None,
    ):
        """
        Initialize the ARP scanner.

        Args:
            config: Discovery configuration (default: DiscoveryConfig())
            logger: Logger instance for outputting scan progress and errors
            error_handler: ErrorHandler instance for centralized error management
            runner: Command runner for arp/ip (default: run_command)
            detector: NetworkDetector sharing the same runner by default
            pinger: Single-host ping function (default: ping_host)
        """
        super().__init__(logger, error_handler)
        self.config = config or DiscoveryConfig()
        self.runner = runner or run_command
        self.detector = detector or NetworkDetector(
            runner=self.runner,
            command_timeout=self.config.command_timeout,
            logger=self.logger,
        )
        self.pinger = pinger or ping_host

    @property
    def scanner_type(self) -> str:
        return "ARP"

    def discover(self, active_sweep: bool = False) -> List[Device]:
        """
        Build the device list for the local network.

        Args:
            active_sweep: Ping every host of the local subnet first

        Returns:
            Devices found, gateway included when it could be resolved

        Raises:
            DiscoveryError: If neither the ARP table nor the route table
                could be read
        """
        self._start_scan_timer()
        local_ip = self.detector.get_local_ip()

        if active_sweep:
            if local_ip:
                self.ping_sweep(local_ip)
            else:
                self._log_warning("Skipping ping sweep: local IP address unknown")

        entries = self.read_arp_table()
        gateway_lookup = self.detector.lookup_default_gateway()

        if entries is None and not gateway_lookup.table_read:
            context = ErrorContext(
                error_type=ErrorType.DISCOVERY_ERROR,
                severity=ErrorSeverity.CRITICAL,
                operation="discover",
                component="ARPScanner",
                additional_info={"local_ip": local_ip},
            )
            raise DiscoveryError(
                "Unable to read the ARP table or the route table", context
            )

        devices = build_devices(entries or [])

        if gateway_lookup.gateway:
            self._add_gateway(devices, gateway_lookup.gateway)

        if local_ip:
            for device in devices:
                if device.ip_address == local_ip:
                    device.hostname = SELF_HOSTNAME

        duration = self._end_scan_timer()
        self._log_info(f"Discovery completed. Found {len(devices)} devices in {duration:.2f} seconds")
        return devices

    def read_arp_table(self) -> Optional[List[ArpEntry]]:
        """
        Read the ARP cache, falling back to `ip neigh`.

        Returns:
            Parsed entries, or None if no neighbour table could be read
        """
        output = self.runner(["arp", "-a"], self.config.command_timeout)
        if output is None:
            self._log_debug("arp -a unavailable, trying ip neigh")
            output = self.runner(["ip", "neigh"], self.config.command_timeout)

        if output is None:
            self._log_warning("ARP table could not be read (arp and ip unavailable)")
            return None

        entries = parse_arp_output(output)
        self._log_debug(f"ARP table contains {len(entries)} entries")
        return entries

    def lookup_mac(self, ip_address: str) -> Optional[str]:
        """
        Ask the ARP cache for one address with `arp -n <ip>`.

        Returns:
            Normalized MAC, or None if the address is not cached
        """
        output = self.runner(["arp", "-n", ip_address], self.config.command_timeout)
        if output is None:
            return None

        for entry in parse_arp_output(output):
            if entry.ip == ip_address and not _is_placeholder(entry.mac):
                mac = normalize_mac(entry.mac)
                if _CANONICAL_MAC_RE.match(mac):
                    return mac
        return None

    def ping_sweep(self, local_ip: str) -> int:
        """
        Ping every host of the local subnet once to populate the ARP cache.

        Args:
            local_ip: This host's address, excluded from the sweep

        Returns:
            Number of hosts that replied
        """
        network = subnet_for(local_ip, self.config.subnet_prefix)
        hosts = get_network_hosts(network, exclude_addresses=[local_ip])
        if not hosts:
            return 0

        self._log_info(f"Ping sweep of {network} ({len(hosts)} hosts)")
        alive = 0

        with ThreadPoolExecutor(max_workers=min(self.config.ping_workers, len(hosts))) as executor:
            future_to_target = {
                executor.submit(self.pinger, host, self.config.ping_timeout): host
                for host in hosts
            }
            for future in as_completed(future_to_target):
                try:
                    if future.result():
                        alive += 1
                except Exception as e:
                    self._log_debug(f"Ping to {future_to_target[future]} failed: {e}")

        self._log_info(f"Ping sweep finished, {alive} hosts replied")
        return alive

    def _add_gateway(self, devices: List[Device], gateway_ip: str) -> None:
        for device in devices:
            if device.ip_address == gateway_ip:
                device.is_gateway = True
                return

        mac = self.lookup_mac(gateway_ip) or NULL_MAC
        if mac != NULL_MAC and any(d.mac_address == mac for d in devices):
            self._log_debug(f"Gateway {gateway_ip} shares MAC {mac} with a known device")
            return

        devices.append(Device(
            mac_address=mac,
            ip_address=gateway_ip,
            device_type=DeviceType.ROUTER,
            is_gateway=True,
        ))
        self._log_debug(f"Added default gateway {gateway_ip} ({mac})")
