"""
Configuration loader for lan_recon.
Handles loading and validation of the YAML scan configuration with fallback to defaults.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ..core.data_models import COMMON_PORTS
from ..utils.logger import Logger, get_logger

DEFAULT_CONFIG_FILE = "scan_config.yml"


@dataclass
class DiscoveryConfig:
    """Configuration for ARP discovery and the optional ping sweep."""
    command_timeout: int = 5
    ping_timeout: int = 1
    ping_workers: int = 64
    subnet_prefix: int = 24


@dataclass
class PortScanConfig:
    """Configuration for TCP port scanning and banner capture."""
    connect_timeout: float = 0.5
    banner_timeout: float = 1.0
    banner_read_bytes: int = 256
    max_concurrent_devices: int = 10
    max_concurrent_ports: int = 50
    deep_scan_chunk: int = 2000
    ports: Tuple[int, ...] = COMMON_PORTS


@dataclass
class ScanConfig:
    """Complete scan configuration."""
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    port_scan: PortScanConfig = field(default_factory=PortScanConfig)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["port_scan"]["ports"] = list(self.port_scan.ports)
        return data


class ConfigLoader:
    """
    Loads and validates the YAML scan configuration.
    Invalid values fall back to their defaults with a warning, so a bad file
    never yields an unbounded or zero timeout.
    """

    def __init__(self, config_dir: Optional[str] = None, logger: Optional[Logger] = None):
        """
        Initialize ConfigLoader.

        Args:
            config_dir: Directory containing configuration files.
                       Defaults to the config directory relative to this file.
            logger: Logger instance (default: module logger)
        """
        if config_dir is None:
            self.config_dir = Path(__file__).parent
        else:
            self.config_dir = Path(config_dir)

        self.logger = logger or get_logger("ConfigLoader")

    def load_config(self, config_file: str = DEFAULT_CONFIG_FILE) -> ScanConfig:
        """
        Load the scan configuration from a YAML file.

        Args:
            config_file: Name of the configuration file inside config_dir

        Returns:
            ScanConfig with loaded or default values
        """
        config_path = self.config_dir / config_file

        if not config_path.exists():
            self.logger.warning(f"Config file not found at {config_path}. Using default configuration.")
            return ScanConfig()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.logger.error(f"Error parsing config file {config_path}: {e}")
            self.logger.warning("Using default configuration.")
            return ScanConfig()
        except OSError as e:
            self.logger.error(f"Unable to read config file {config_path}", exception=e)
            self.logger.warning("Using default configuration.")
            return ScanConfig()

        if not isinstance(config_data, dict):
            self.logger.warning(f"Invalid config structure in {config_path}. Using default configuration.")
            return ScanConfig()

        return ScanConfig(
            discovery=self._load_discovery(config_data.get('discovery') or {}),
            port_scan=self._load_port_scan(config_data.get('port_scan') or {}),
        )

    def _load_discovery(self, data: Dict[str, Any]) -> DiscoveryConfig:
        defaults = DiscoveryConfig()
        return DiscoveryConfig(
            command_timeout=self._validate_positive_int(
                data.get('command_timeout', defaults.command_timeout), 'command_timeout', defaults.command_timeout),
            ping_timeout=self._validate_positive_int(
                data.get('ping_timeout', defaults.ping_timeout), 'ping_timeout', defaults.ping_timeout),
            ping_workers=self._validate_positive_int(
                data.get('ping_workers', defaults.ping_workers), 'ping_workers', defaults.ping_workers),
            subnet_prefix=self._validate_prefix(data.get('subnet_prefix', defaults.subnet_prefix)),
        )

    def _load_port_scan(self, data: Dict[str, Any]) -> PortScanConfig:
        defaults = PortScanConfig()
        return PortScanConfig(
            connect_timeout=self._validate_positive_float(
                data.get('connect_timeout', defaults.connect_timeout), 'connect_timeout', defaults.connect_timeout),
            banner_timeout=self._validate_positive_float(
                data.get('banner_timeout', defaults.banner_timeout), 'banner_timeout', defaults.banner_timeout),
            banner_read_bytes=self._validate_positive_int(
                data.get('banner_read_bytes', defaults.banner_read_bytes), 'banner_read_bytes',
                defaults.banner_read_bytes),
            max_concurrent_devices=self._validate_positive_int(
                data.get('max_concurrent_devices', defaults.max_concurrent_devices), 'max_concurrent_devices',
                defaults.max_concurrent_devices),
            max_concurrent_ports=self._validate_positive_int(
                data.get('max_concurrent_ports', defaults.max_concurrent_ports), 'max_concurrent_ports',
                defaults.max_concurrent_ports),
            deep_scan_chunk=self._validate_positive_int(
                data.get('deep_scan_chunk', defaults.deep_scan_chunk), 'deep_scan_chunk', defaults.deep_scan_chunk),
            ports=self._validate_ports(data.get('ports', list(defaults.ports))),
        )

    def _validate_positive_int(self, value: Any, field_name: str, default: int) -> int:
        """
        Validate that a value is a positive integer.

        Args:
            value: Value to validate
            field_name: Name of the field for error messages
            default: Default value to use if validation fails

        Returns:
            Validated integer value or default
        """
        if isinstance(value, bool):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default
        try:
            int_value = int(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default
        if int_value <= 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must be positive. Using default: {default}")
            return default
        return int_value

    def _validate_positive_float(self, value: Any, field_name: str, default: float) -> float:
        if isinstance(value, bool):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be a number. Using default: {default}")
            return default
        try:
            float_value = float(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be a number. Using default: {default}")
            return default
        if float_value <= 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must be positive. Using default: {default}")
            return default
        return float_value

    def _validate_prefix(self, value: Any) -> int:
        """Subnet prefix for the ping sweep, limited to /16 through /30."""
        prefix = self._validate_positive_int(value, 'subnet_prefix', 24)
        if not 16 <= prefix <= 30:
            self.logger.warning(f"Invalid subnet_prefix: {value}. Must be between 16 and 30. Using default: 24")
            return 24
        return prefix

    def _validate_ports(self, ports: Any) -> Tuple[int, ...]:
        """
        Validate the port list.

        Args:
            ports: Ports to validate

        Returns:
            Tuple of valid ports in their original order, or COMMON_PORTS
        """
        if not isinstance(ports, list):
            self.logger.warning(f"Invalid ports: {ports}. Must be a list. Using default port list")
            return COMMON_PORTS

        valid_ports = []
        for port in ports:
            if isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535:
                if port not in valid_ports:
                    valid_ports.append(port)
            else:
                self.logger.warning(f"Invalid port: {port}. Skipping.")

        if not valid_ports:
            self.logger.warning("No valid ports found. Using default port list")
            return COMMON_PORTS

        return tuple(valid_ports)

    def create_default_config(self, config_file: str = DEFAULT_CONFIG_FILE) -> Optional[Path]:
        """
        Write the default configuration file if it doesn't exist.

        Returns:
            Path of the file written, or None if nothing was written
        """
        config_path = self.config_dir / config_file
        if config_path.exists():
            return None

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump(ScanConfig().to_dict(), f, default_flow_style=False, indent=2, sort_keys=False)
        except OSError as e:
            self.logger.error(f"Failed to create default config at {config_path}", exception=e)
            return None

        self.logger.info(f"Created default config at {config_path}")
        return config_path
