"""
Local network detection.

This module provides the NetworkDetector class which resolves this host's
IPv4 address and the default gateway from the OS route table. All OS
commands go through a CommandRunner so parsing can be exercised with canned
output.
"""

import socket
import subprocess
from typing import Callable, NamedTuple, Optional, Sequence

from ..utils.logger import Logger, get_logger
from ..utils.network_utils import is_valid_ip

# (argv, timeout) -> stdout, or None when the command could not be run
CommandRunner = Callable[[Sequence[str], float], Optional[str]]


def run_command(args: Sequence[str], timeout: float) -> Optional[str]:
    """
    Run an OS utility and return its standard output.

    Args:
        args: Command and arguments
        timeout: Seconds before the command is abandoned

    Returns:
        Captured stdout, or None if the tool is missing, timed out, or
        failed without printing anything
    """
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return None

    if result.returncode != 0 and not result.stdout.strip():
        return None
    return result.stdout


def parse_ip_route_default(output: str) -> Optional[str]:
    """
    Extract the gateway from `ip route show default`.

    Format: "default via 192.168.1.1 dev eth0 proto dhcp metric 100"
    """
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 3 and parts[0] == "default" and "via" in parts:
            via_index = parts.index("via")
            if via_index + 1 < len(parts) and is_valid_ip(parts[via_index + 1]):
                return parts[via_index + 1]
    return None


def parse_netstat_default(output: str) -> Optional[str]:
    """
    Extract the gateway from `netstat -nr`.

    Handles the BSD/macOS form ("default  192.168.1.1  UGScg  en0") and the
    Linux form ("0.0.0.0  192.168.1.1  0.0.0.0  UG  0 0 0 eth0").
    """
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] in ("default", "0.0.0.0"):
            gateway = parts[1]
            if is_valid_ip(gateway) and gateway != "0.0.0.0":
                return gateway
    return None


class GatewayLookup(NamedTuple):
    """Result of reading the route table."""
    table_read: bool
    gateway: Optional[str]


class NetworkDetector:
    """
    Detects this host's address and default gateway.

    Failures here are never fatal on their own: a missing local address only
    disables self labelling and a missing gateway only skips the router
    entry. The discoverer decides when the combination is fatal.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        command_timeout: float = 5,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize the NetworkDetector.

        Args:
            runner: Command runner (default: run_command)
            command_timeout: Seconds allowed per OS command
            logger: Logger instance
        """
        self.runner = runner or run_command
        self.command_timeout = command_timeout
        self.logger = logger or get_logger("NetworkDetector")

    def get_local_ip(self) -> Optional[str]:
        """
        Resolve the IPv4 address of the interface used for outbound traffic.

        A UDP socket is "connected" to a public address; no packet is sent,
        but the kernel picks the outbound interface and its address.

        Returns:
            Local IPv4 address, or None if it cannot be determined
        """
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                local_ip = s.getsockname()[0]
        except OSError as e:
            self.logger.warning(f"Could not determine local IP address: {e}")
            return None

        if not is_valid_ip(local_ip) or local_ip.startswith("0."):
            self.logger.warning(f"Ignoring unusable local address {local_ip}")
            return None

        self.logger.debug(f"Local IP address: {local_ip}")
        return local_ip

    def lookup_default_gateway(self) -> GatewayLookup:
        """
        Read the default gateway from the route table.

        Tries `ip route show default` first, then `netstat -nr`.

        Returns:
            GatewayLookup telling whether any route table could be read and
            the gateway IP if one was found
        """
        table_read = False

        output = self.runner(["ip", "route", "show", "default"], self.command_timeout)
        if output is not None:
            table_read = True
            gateway = parse_ip_route_default(output)
            if gateway:
                self.logger.debug(f"Default gateway from ip route: {gateway}")
                return GatewayLookup(True, gateway)

        output = self.runner(["netstat", "-nr"], self.command_timeout)
        if output is not None:
            table_read = True
            gateway = parse_netstat_default(output)
            if gateway:
                self.logger.debug(f"Default gateway from netstat: {gateway}")
                return GatewayLookup(True, gateway)

        if table_read:
            self.logger.warning("No default gateway found in the route table")
        else:
            self.logger.warning("Route table could not be read (ip and netstat unavailable)")
        return GatewayLookup(table_read, None)
