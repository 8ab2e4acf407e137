"""
Main entry point for lan_recon.

This module provides the command-line interface: argument parsing,
pre-flight checks for the OS tools discovery relies on, the discover,
scan-devices and scan-ports commands, and graceful shutdown handling.
"""

import argparse
import asyncio
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config.config_loader import ConfigLoader, ScanConfig
from .core.data_models import COMMON_PORTS, Device, ScanPhase, ScanProgress
from .core.device_classifier import DeviceClassifier
from .core.scanner_orchestrator import ScanCoordinator
from .scanners.arp_scanner import ARPScanner
from .scanners.port_scanner import PortScanner
from .utils.error_handler import ErrorHandler, ReconError, ToolValidator
from .utils.json_reporter import JSONReporter
from .utils.logger import LogLevel, get_logger, set_log_level
from .utils.network_utils import NULL_MAC, ip_sort_key, is_valid_ip, subnet_for

BANNER_PREVIEW_LENGTH = 50
DEVICE_TABLE_WIDTHS = [15, 28, 14, 24]
DISCOVER_TABLE_WIDTHS = [15, 17, 30]


class LanReconApp:
    """
    Main application class for lan_recon.

    Handles the CLI commands, pre-flight checks, and application lifecycle.
    """

    def __init__(self):
        """Initialize the application."""
        self.logger = get_logger("LanRecon")
        self.error_handler = ErrorHandler(self.logger)
        self.coordinator: Optional[ScanCoordinator] = None
        self.config = ScanConfig()
        self.shutdown_requested = False

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum: int, frame) -> None:
        """
        Handle shutdown signals.

        The first signal interrupts the running command; a second one
        terminates immediately.
        """
        signal_names = {signal.SIGINT: "SIGINT", signal.SIGTERM: "SIGTERM"}
        signal_name = signal_names.get(signum, f"Signal {signum}")

        if self.shutdown_requested:
            self.logger.error("Force shutdown requested - terminating immediately")
            sys.exit(1)

        self.logger.warning(f"Received {signal_name} - stopping scan...")
        self.shutdown_requested = True
        raise KeyboardInterrupt

    def _cleanup(self) -> None:
        if self.coordinator is not None:
            self.coordinator.cancel()
            self.coordinator.close()
            self.coordinator = None

    def _perform_preflight_checks(self, groups: List[str]) -> bool:
        """
        Check that every tool group the command needs has a usable tool.

        Returns:
            bool: True if all checks pass, False otherwise
        """
        self.logger.debug("Running pre-flight checks", groups=",".join(groups))
        missing = ToolValidator(self.error_handler).missing_groups(groups)
        if missing:
            self.logger.error(f"Pre-flight checks failed: {', '.join(missing)}")
            return False
        return True

    def _load_config(self, config_dir: Optional[str]) -> bool:
        if config_dir and not Path(config_dir).is_dir():
            self.logger.error(f"Configuration directory does not exist: {config_dir}")
            return False

        self.config = ConfigLoader(config_dir, self.logger).load_config()
        return True

    def run(self, args: argparse.Namespace) -> int:
        """
        Run the selected command.

        Args:
            args: Parsed command line arguments

        Returns:
            int: Exit code (0 for success, 1 for failure, 130 when interrupted)
        """
        try:
            if not self._load_config(args.config_dir):
                return 1

            if args.command == "discover":
                return self.run_discover(args.full, args.skip_checks)
            if args.command == "scan-devices":
                return self.run_scan_devices(
                    args.full, args.show_banners, args.output_dir, args.skip_checks
                )
            return self.run_scan_ports(args.ip, args.all_ports)

        except KeyboardInterrupt:
            self.logger.warning("Scan interrupted by user")
            return 130
        except ReconError as e:
            if e.error_context is not None:
                self.error_handler.handle_error(e, e.error_context)
            else:
                self.logger.error(str(e))
            return 1
        except Exception as e:
            self.logger.error("lan_recon failed", exception=e)
            return 1
        finally:
            self._cleanup()

    def _discovery_groups(self, full: bool) -> List[str]:
        groups = ["arp_table", "route_table"]
        if full:
            groups.append("ping_sweep")
        return groups

    def run_discover(self, full: bool, skip_checks: bool = False) -> int:
        """Run discovery only and list IP, MAC and hostname per device."""
        if not skip_checks and not self._perform_preflight_checks(self._discovery_groups(full)):
            return 1

        scanner = ARPScanner(self.config.discovery, self.logger, self.error_handler)
        devices = scanner.discover(active_sweep=full)

        local_ip = scanner.detector.get_local_ip()
        gateway = next((d.ip_address for d in devices if d.is_gateway), None)
        subnet = subnet_for(local_ip, self.config.discovery.subnet_prefix) if local_ip else None
        self.logger.network_info(local_ip, gateway, subnet)

        self.logger.section("Discovered devices")
        self.logger.table_header(["IP Address", "MAC Address", "Hostname"], DISCOVER_TABLE_WIDTHS)
        for device in sorted(devices, key=lambda d: ip_sort_key(d.ip_address)):
            self.logger.table_row(
                [device.ip_address, device.mac_address, device.hostname or "-"],
                DISCOVER_TABLE_WIDTHS,
                highlight=device.is_gateway,
            )

        print(f"\n{len(devices)} devices found")
        return 0

    def run_scan_devices(
        self,
        full: bool,
        show_banners: bool = False,
        output_dir: Optional[str] = None,
        skip_checks: bool = False,
    ) -> int:
        """Run discovery, port scanning and identification, then print the results."""
        if not skip_checks and not self._perform_preflight_checks(self._discovery_groups(full)):
            return 1

        self.coordinator = ScanCoordinator(self.config, self.logger, self.error_handler)
        started = datetime.now()
        devices = asyncio.run(self.coordinator.run_scan(full, self._report_progress))
        duration = (datetime.now() - started).total_seconds()

        if devices is None:
            self.logger.warning("Scan cancelled")
            return 130

        self.print_devices(devices, show_banners)

        if output_dir:
            local_ip = self.coordinator.discoverer.detector.get_local_ip()
            JSONReporter(output_dir).generate_report(devices, duration, local_ip)
        return 0

    def _report_progress(self, event: ScanProgress) -> None:
        if event.phase is ScanPhase.DISCOVERY and event.devices_found == 0:
            self.logger.progress_start("Discovering devices")
        elif event.phase is ScanPhase.PORT_SCAN:
            self.logger.progress_update(
                f"Scanning ports {event.ports_scanned}/{event.total_ports} "
                f"({event.fraction:.0%}), last {event.current_device}"
            )
        elif event.phase is ScanPhase.IDENTIFICATION:
            self.logger.progress_update(f"Identifying {event.devices_found} devices")
        elif event.phase is ScanPhase.COMPLETE:
            self.logger.progress_end()
        else:
            self.logger.progress_update(f"{event.devices_found} devices discovered")

    def print_devices(self, devices: List[Device], show_banners: bool = False) -> None:
        """
        Print identified devices with their open services.

        Args:
            devices: Identified devices
            show_banners: Print each service's banner under it
        """
        self.logger.section("Devices")
        if not devices:
            print("0 devices found")
            return

        self.logger.table_header(["IP Address", "Name", "Type", "Vendor"], DEVICE_TABLE_WIDTHS)
        ordered = sorted(devices, key=lambda d: ip_sort_key(d.ip_address))

        for device in ordered:
            self.logger.table_row(
                [device.ip_address, device.display_name(), str(device.device_type), device.vendor or "-"],
                DEVICE_TABLE_WIDTHS,
                highlight=bool(device.detected_agents),
            )
            for service in device.services:
                line = f"    {service.port:<6} {service.service_name or 'unknown'}"
                if service.detected_agent:
                    line += f"  [AI: {service.detected_agent}]"
                print(line)
                if show_banners and service.banner:
                    print(f"           {service.banner}")

        print(f"\n{len(devices)} devices found")

        with_agents = [d for d in ordered if d.detected_agents]
        if with_agents:
            self.logger.section("AI Agents Detected")
            for device in with_agents:
                print(f"  {device.ip_address:<15} {device.display_name()}: {', '.join(device.detected_agents)}")

    def run_scan_ports(self, ip_address: str, all_ports: bool = False) -> int:
        """Scan and identify a single host given by IP address."""
        if not is_valid_ip(ip_address):
            self.logger.error(f"Invalid IPv4 address: {ip_address}")
            return 1

        device = Device(mac_address=NULL_MAC, ip_address=ip_address)
        scanner = PortScanner(self.config.port_scan, self.logger, self.error_handler)

        if all_ports:
            self.logger.progress_start(f"Scanning all ports on {ip_address}")
            asyncio.run(scanner.deep_scan(device, self._report_deep_scan))
            self.logger.progress_end()
        else:
            asyncio.run(scanner.scan_ports([device], COMMON_PORTS))

        DeviceClassifier().identify(device)
        self.print_host(device)
        return 0

    def _report_deep_scan(self, event: ScanProgress) -> None:
        self.logger.progress_update(
            f"{event.ports_scanned}/{event.total_ports} ports ({event.fraction:.0%})"
        )

    def print_host(self, device: Device) -> None:
        self.logger.section(f"Host {device.ip_address}")
        print(f"  Device type: {device.device_type}")
        print(f"  Vendor:      {device.vendor or '-'}")

        if not device.services:
            print("  No open ports found")
            return

        print("  Open ports:")
        for service in device.services:
            line = f"    {service.port:<6} {service.service_name or 'unknown'}"
            if service.detected_agent:
                line += f"  [AI: {service.detected_agent}]"
            if service.banner:
                line += f"  {service.banner[:BANNER_PREVIEW_LENGTH]}"
            print(line)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command line argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="lan-recon",
        description="LAN reconnaissance - discover devices, scan ports and identify AI agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lan-recon discover                         # List devices from the ARP cache
  lan-recon discover --full                  # Ping the subnet first
  lan-recon scan-devices --output-dir ./out  # Full scan with a JSON report
  lan-recon scan-ports 192.168.1.10          # Scan one host on the common ports
  lan-recon -v scan-ports 192.168.1.10 --all-ports
        """
    )

    parser.add_argument(
        "--config-dir",
        type=str,
        help="Directory containing scan_config.yml. Defaults to lan_recon/config/"
    )

    parser.add_argument(
        "--verbose", "-v",
        dest="debug",
        action="store_true",
        help="Enable debug logging output"
    )

    parser.add_argument(
        "--skip-checks",
        action="store_true",
        help="Skip pre-flight checks for external tools (arp, ip, netstat, ping)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"lan-recon {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="List devices on the local network")
    discover.add_argument(
        "--full",
        action="store_true",
        help="Ping every host of the local subnet before reading the ARP table"
    )

    scan_devices = subparsers.add_parser(
        "scan-devices", help="Discover, port scan and identify every device"
    )
    scan_devices.add_argument(
        "--verbose",
        dest="show_banners",
        action="store_true",
        help="Show service banners"
    )
    scan_devices.add_argument(
        "--full",
        action="store_true",
        help="Ping every host of the local subnet before reading the ARP table"
    )
    scan_devices.add_argument(
        "--output-dir",
        type=str,
        help="Write a JSON report of the scan to this directory"
    )

    scan_ports = subparsers.add_parser("scan-ports", help="Scan a single host")
    scan_ports.add_argument("ip", help="IPv4 address of the host")
    scan_ports.add_argument(
        "--all-ports",
        action="store_true",
        help="Scan all ports 1-65535 instead of the common port list"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for lan_recon.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.debug:
        set_log_level(LogLevel.DEBUG)

    app = LanReconApp()
    return app.run(args)


if __name__ == "__main__":
    sys.exit(main())
