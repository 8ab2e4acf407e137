"""
JSON report generator for lan_recon.

This module writes a completed device scan to a timestamped JSON file,
with devices sorted by IP address and a summary of detected agents.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.data_models import Device, Service
from .error_handler import ErrorContext, ErrorSeverity, ErrorType, ReportError
from .logger import get_logger
from .network_utils import ip_sort_key


class JSONReporter:
    """
    Handles generation of JSON reports from device scan results.

    This class is responsible for:
    - Converting devices and their services to JSON-serializable dictionaries
    - Managing output file naming with timestamp-based collision handling
    """

    def __init__(self, output_directory: str = "scan_results"):
        """
        Initialize the JSON reporter.

        Args:
            output_directory: Directory where JSON reports will be saved
        """
        self.output_directory = Path(output_directory)
        self.logger = get_logger("JSONReporter")
        try:
            self.output_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise self._file_error(
                f"Cannot create report directory {self.output_directory}",
                "create_directory", self.output_directory, e,
            ) from e

    def generate_report(
        self,
        devices: List[Device],
        scan_duration: Optional[float] = None,
        local_ip: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """
        Write a JSON report for a completed scan.

        Args:
            devices: Identified devices
            scan_duration: Scan duration in seconds
            local_ip: This host's IP address
            timestamp: Scan completion time (default: now, UTC)

        Returns:
            str: Path to the generated JSON file

        Raises:
            ReportError: If the file cannot be written
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        json_data = self.build_report(devices, scan_duration, local_ip, timestamp)

        filepath = self._handle_file_collision(
            self.output_directory / self._generate_filename(timestamp)
        )

        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(json_data, f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            raise self._file_error(
                f"Failed to write JSON report to {filepath}", "write_report", filepath, e
            ) from e

        self.logger.info(f"JSON report successfully generated: {filepath}")
        return str(filepath)

    def build_report(
        self,
        devices: List[Device],
        scan_duration: Optional[float],
        local_ip: Optional[str],
        timestamp: datetime,
    ) -> Dict[str, Any]:
        """Build the JSON-serializable report body."""
        device_dicts = [
            self._device_to_dict(device)
            for device in sorted(devices, key=lambda d: ip_sort_key(d.ip_address))
        ]

        return {
            "scan_metadata": {
                "timestamp": timestamp.isoformat(),
                "scan_duration": scan_duration,
                "host_ip": local_ip,
                "devices_found": len(devices),
            },
            "devices": device_dicts,
            "agents": self._agent_summary(devices),
        }

    def _device_to_dict(self, device: Device) -> Dict[str, Any]:
        return {
            "ip_address": device.ip_address,
            "mac_address": device.mac_address,
            "hostname": device.hostname,
            "vendor": device.vendor,
            "device_type": device.device_type.value,
            "custom_name": device.custom_name,
            "display_name": device.display_name(),
            "is_gateway": device.is_gateway,
            "is_online": device.is_online,
            "first_seen": device.first_seen.isoformat(),
            "last_seen": device.last_seen.isoformat(),
            "open_ports": device.open_ports(),
            "services": [self._service_to_dict(service) for service in device.services],
            "detected_agents": list(device.detected_agents),
        }

    @staticmethod
    def _service_to_dict(service: Service) -> Dict[str, Any]:
        return {
            "port": service.port,
            "protocol": service.protocol.value,
            "state": service.state.value,
            "service_name": service.service_name,
            "banner": service.banner,
            "detected_agent": service.detected_agent,
        }

    @staticmethod
    def _agent_summary(devices: List[Device]) -> List[Dict[str, Any]]:
        summary = []
        for device in sorted(devices, key=lambda d: ip_sort_key(d.ip_address)):
            for service in device.services:
                if service.detected_agent:
                    summary.append({
                        "agent": service.detected_agent,
                        "ip_address": device.ip_address,
                        "port": service.port,
                        "device": device.display_name(),
                    })
        return summary

    def _generate_filename(self, timestamp: datetime) -> str:
        # Format: device_scan_YYYYMMDD_HHMMSS.json
        return f"device_scan_{timestamp.strftime('%Y%m%d_%H%M%S')}.json"

    def _handle_file_collision(self, filepath: Path) -> Path:
        """
        Handle filename collisions by adding an incremental suffix.

        Args:
            filepath: Original file path

        Returns:
            Path: Unique file path
        """
        if not filepath.exists():
            return filepath

        counter = 1
        while counter <= 999:
            new_filepath = filepath.parent / f"{filepath.stem}_{counter:03d}{filepath.suffix}"
            if not new_filepath.exists():
                self.logger.info(f"File collision detected, using filename: {new_filepath.name}")
                return new_filepath
            counter += 1

        raise self._file_error(f"Too many file collisions for {filepath}", "write_report", filepath)

    @staticmethod
    def _file_error(
        message: str, operation: str, path: Path, error: Optional[OSError] = None
    ) -> ReportError:
        error_type = ErrorType.PERMISSION_ERROR if isinstance(error, PermissionError) else ErrorType.FILE_ERROR
        context = ErrorContext(
            error_type=error_type,
            severity=ErrorSeverity.HIGH,
            operation=operation,
            component="JSONReporter",
            additional_info={"file_path": str(path)},
        )
        return ReportError(f"{message}: {error}" if error else message, context)
