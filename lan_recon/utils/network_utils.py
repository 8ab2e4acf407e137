"""
Network utility functions for address handling.

Helpers for IPv4 validation and sorting, subnet host enumeration, MAC
address normalization and single-host pings.
"""

import ipaddress
import platform
import subprocess
from typing import List, Optional, Tuple

BROADCAST_MAC = "FF:FF:FF:FF:FF:FF"
NULL_MAC = "00:00:00:00:00:00"


def is_valid_ip(ip_address: str) -> bool:
    """
    Check if a string represents a valid IPv4 address.

    Args:
        ip_address: String to validate as IPv4 address

    Returns:
        bool: True if valid IPv4 address, False otherwise
    """
    try:
        ipaddress.IPv4Address(ip_address)
        return True
    except ipaddress.AddressValueError:
        return False


def subnet_for(ip_address: str, prefix: int = 24) -> str:
    """
    Return the network containing an address in CIDR notation.

    Args:
        ip_address: Any address inside the network
        prefix: Prefix length (default /24)

    Returns:
        str: Network such as "192.168.1.0/24"

    Raises:
        ValueError: If the address or prefix is invalid
    """
    try:
        network = ipaddress.IPv4Network(f"{ip_address}/{prefix}", strict=False)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError) as e:
        raise ValueError(f"Invalid IP or prefix: {ip_address}/{prefix}") from e
    return str(network)


def get_network_hosts(network: str, exclude_addresses: Optional[List[str]] = None) -> List[str]:
    """
    Get all host addresses in a network, optionally excluding specific addresses.

    Args:
        network: Network in CIDR notation (e.g., "192.168.1.0/24")
        exclude_addresses: List of IP addresses to exclude from the result

    Returns:
        List[str]: List of host IP addresses

    Raises:
        ValueError: If network is invalid
    """
    try:
        net = ipaddress.IPv4Network(network, strict=False)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError) as e:
        raise ValueError(f"Invalid network: {network}") from e

    exclude_set = set(exclude_addresses or [])
    return [str(ip) for ip in net.hosts() if str(ip) not in exclude_set]


def ip_sort_key(ip_address: str) -> Tuple[int, ...]:
    """Sort key ordering IPv4 addresses numerically; invalid ones sort last."""
    try:
        return (0, int(ipaddress.IPv4Address(ip_address)))
    except ipaddress.AddressValueError:
        return (1, 0)


def normalize_mac(mac: str) -> str:
    """
    Canonicalize a MAC address to uppercase colon-separated form.

    Dashes are accepted as separators and single-digit octets, as printed by
    the BSD/macOS arp tool, are zero padded: "0:e0:4c:1:2:3" becomes
    "00:E0:4C:01:02:03". Strings that are not six octets are only uppercased.

    Args:
        mac: MAC address as printed by an OS tool

    Returns:
        str: Canonical MAC address
    """
    parts = mac.strip().replace("-", ":").split(":")
    if len(parts) != 6:
        return mac.strip().upper()
    return ":".join(part.upper().rjust(2, "0") for part in parts)


def is_broadcast_mac(mac: str) -> bool:
    return normalize_mac(mac) == BROADCAST_MAC


def is_multicast_mac(mac: str) -> bool:
    """
    Check the group bit of a MAC address.

    Multicast groups such as 01:00:5E:xx:xx:xx show up as static entries in
    the Windows ARP table. Broadcast also has the bit set. Unparseable
    addresses count as not multicast.
    """
    first_octet = normalize_mac(mac).split(":")[0]
    try:
        return bool(int(first_octet, 16) & 0x01)
    except ValueError:
        return False


def ping_host(ip_address: str, timeout: int = 1) -> bool:
    """
    Send a single ping to a host.

    Args:
        ip_address: IP address to ping
        timeout: Reply wait in seconds

    Returns:
        bool: True if the host replied, False on no reply or any failure
    """
    if platform.system().lower() == "windows":
        cmd = ["ping", "-n", "1", "-w", str(timeout * 1000), ip_address]
    else:
        cmd = ["ping", "-c", "1", "-W", str(timeout), ip_address]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout + 1,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, subprocess.SubprocessError, OSError):
        return False
