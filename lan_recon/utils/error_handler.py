"""
Error types and centralized error reporting for LAN reconnaissance.

Only a few conditions ever reach this module: discovery failing outright,
invalid configuration or input, storage or report file failures and missing
OS tools. Per host and per port failures are resolved to "no data" where
they happen and never surface here.
"""

import shutil
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .logger import Logger, get_logger


class ErrorType(Enum):
    """Enumeration for different types of errors."""
    DISCOVERY_ERROR = "discovery_error"
    PERMISSION_ERROR = "permission_error"
    TOOL_MISSING_ERROR = "tool_missing_error"
    CONFIGURATION_ERROR = "configuration_error"
    VALIDATION_ERROR = "validation_error"
    STORAGE_ERROR = "storage_error"
    FILE_ERROR = "file_error"


class ErrorSeverity(Enum):
    """Enumeration for error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """
    Context information for error handling.

    Attributes:
        error_type: Type of error that occurred
        severity: Severity level of the error
        operation: Operation that was being performed when error occurred
        component: Component/module where error occurred
        additional_info: Additional context information
    """
    error_type: ErrorType
    severity: ErrorSeverity
    operation: str
    component: str
    additional_info: Dict[str, Any] = field(default_factory=dict)


class ReconError(Exception):
    """Base exception class for lan_recon."""

    def __init__(self, message: str, error_context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.error_context = error_context


class DiscoveryError(ReconError):
    """Neither the ARP table nor the route table could be read."""
    pass


class ToolMissingError(ReconError):
    """Exception for missing external tools."""
    pass


class ConfigurationError(ReconError):
    """Exception for configuration-related errors."""
    pass


class ValidationError(ReconError):
    """Exception for invalid caller input."""
    pass


class PortListError(ValidationError):
    """The port list handed to the port scanner is empty or all zero."""
    pass


class ReportError(ReconError):
    """A scan report could not be written."""
    pass


class ScanInProgressError(ReconError):
    """A scan was requested while another one is still running."""
    pass


class StorageError(ReconError):
    """Exception raised by device store implementations."""

    def __init__(
        self,
        message: str,
        error_context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, error_context)
        self.original_error = original_error


class ErrorHandler:
    """
    Centralized error reporting.

    Logs an error at a level matching its severity, keeps per-type counts
    and prints troubleshooting suggestions for the conditions a user can
    actually fix.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initialize the ErrorHandler.

        Args:
            logger: Logger instance for error reporting
        """
        self.logger = logger or get_logger(__name__)
        self.error_statistics: Dict[ErrorType, int] = {
            error_type: 0 for error_type in ErrorType
        }

    def handle_error(self, error: Exception, context: ErrorContext) -> None:
        """
        Record and report an error.

        Args:
            error: The exception that occurred
            context: Error context information
        """
        self.error_statistics[context.error_type] += 1
        self._log_error(error, context)

        if context.error_type == ErrorType.DISCOVERY_ERROR:
            self._suggest_discovery_troubleshooting()
        elif context.error_type == ErrorType.PERMISSION_ERROR:
            self._suggest_permission_solutions()
        elif context.error_type == ErrorType.TOOL_MISSING_ERROR:
            self._suggest_tool_installation(context.additional_info.get("tool_name", "unknown"))
        elif context.error_type == ErrorType.CONFIGURATION_ERROR:
            self._suggest_configuration_fixes(context.additional_info.get("config_file"))
        elif context.error_type == ErrorType.VALIDATION_ERROR:
            self._suggest_validation_fixes()
        elif context.error_type == ErrorType.FILE_ERROR:
            self._suggest_file_solutions(context.additional_info.get("file_path"))

    def get_error_summary(self) -> Dict[str, int]:
        """Return non-zero error counts keyed by error type value."""
        return {
            error_type.value: count
            for error_type, count in self.error_statistics.items()
            if count
        }

    def _log_error(self, error: Exception, context: ErrorContext) -> None:
        error_msg = f"Error in {context.component}.{context.operation}: {error}"

        if context.severity == ErrorSeverity.CRITICAL:
            self.logger.error(error_msg, exception=error)
        elif context.severity == ErrorSeverity.HIGH:
            self.logger.error(error_msg)
        elif context.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(error_msg)
        else:
            self.logger.debug(error_msg)

    def _suggest_discovery_troubleshooting(self) -> None:
        self.logger.info("Discovery troubleshooting suggestions:")
        self.logger.info("  • Check that a network interface is up and has an IPv4 address")
        self.logger.info("  • Verify 'arp -a' or 'ip neigh' prints entries")
        self.logger.info("  • Verify 'ip route' or 'netstat -nr' shows a default route")
        self.logger.info("  • Try again with --full to populate the ARP cache first")

    def _suggest_permission_solutions(self) -> None:
        self.logger.info("Permission error solutions:")
        self.logger.info("  • Run with elevated privileges (sudo)")
        self.logger.info("  • Check file/directory permissions")

    def _suggest_tool_installation(self, tool_name: str) -> None:
        suggestions = {
            "arp": [
                "Ubuntu/Debian: sudo apt-get install net-tools",
                "CentOS/RHEL: sudo yum install net-tools",
            ],
            "netstat": [
                "Ubuntu/Debian: sudo apt-get install net-tools",
                "CentOS/RHEL: sudo yum install net-tools",
            ],
            "ip": [
                "Ubuntu/Debian: sudo apt-get install iproute2",
                "CentOS/RHEL: sudo yum install iproute",
            ],
            "ping": [
                "Ubuntu/Debian: sudo apt-get install iputils-ping",
                "CentOS/RHEL: sudo yum install iputils",
            ],
        }

        if tool_name in suggestions:
            self.logger.info(f"Installation suggestions for {tool_name}:")
            for suggestion in suggestions[tool_name]:
                self.logger.info(f"  • {suggestion}")
        else:
            self.logger.info(f"Please install {tool_name} using your system's package manager")

    def _suggest_configuration_fixes(self, config_file: Optional[str]) -> None:
        self.logger.info("Configuration error solutions:")
        if config_file:
            self.logger.info(f"  • Review {config_file}")
        self.logger.info("  • Check YAML syntax and indentation")
        self.logger.info("  • Timeouts and concurrency limits must be positive numbers")
        self.logger.info("  • Ports must be integers between 1 and 65535")

    def _suggest_validation_fixes(self) -> None:
        self.logger.info("Validation error solutions:")
        self.logger.info("  • Verify IP addresses are in dotted IPv4 format")
        self.logger.info("  • Provide at least one non-zero port")

    def _suggest_file_solutions(self, file_path: Optional[str]) -> None:
        self.logger.info("File system error solutions:")
        if file_path:
            self.logger.info(f"  • Check that {file_path} is writable")
        self.logger.info("  • Verify sufficient disk space")


class ToolValidator:
    """
    Checks that the OS utilities discovery shells out to are on PATH.

    ARP reading works with either 'arp' or 'ip', and route reading with
    either 'ip' or 'netstat', so a tool group is satisfied when any one of
    its members is present.
    """

    TOOL_GROUPS = {
        "arp_table": ["arp", "ip"],
        "route_table": ["ip", "netstat"],
        "ping_sweep": ["ping"],
    }

    def __init__(self, error_handler: ErrorHandler):
        self.error_handler = error_handler
        self.logger = error_handler.logger

    def is_available(self, tool_name: str) -> bool:
        tool_path = shutil.which(tool_name)
        if tool_path:
            self.logger.debug(f"Found {tool_name} at: {tool_path}")
            return True
        return False

    def missing_groups(self, groups: Optional[List[str]] = None) -> List[str]:
        """
        Report tool groups with no available member.

        Args:
            groups: Group names to check (default: all groups)

        Returns:
            Names of the unsatisfied groups
        """
        missing = []
        for group in groups or list(self.TOOL_GROUPS):
            tools = self.TOOL_GROUPS[group]
            if any(self.is_available(tool) for tool in tools):
                continue

            missing.append(group)
            context = ErrorContext(
                error_type=ErrorType.TOOL_MISSING_ERROR,
                severity=ErrorSeverity.MEDIUM,
                operation=group,
                component="ToolValidator",
                additional_info={"tool_name": tools[0]},
            )
            self.error_handler.handle_error(
                ToolMissingError(f"None of {', '.join(tools)} found in PATH"), context
            )
        return missing
