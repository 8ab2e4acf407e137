"""
Base scanner interface for lan_recon.

This module defines the abstract base class shared by the discovery and
port scanners: logger and error handler wiring and scan timing.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..utils.error_handler import ErrorHandler
from ..utils.logger import Logger, get_logger


class BaseScanner(ABC):
    """
    Abstract base class for all scanners.

    Subclasses name themselves through scanner_type, which prefixes their
    log lines and timing messages.
    """

    def __init__(self, logger: Optional[Logger] = None, error_handler: Optional[ErrorHandler] = None):
        """
        Initialize the base scanner.

        Args:
            logger: Logger instance for outputting scan progress and errors
            error_handler: ErrorHandler used for conditions worth reporting
        """
        self.logger = logger or get_logger(self.scanner_type)
        self.error_handler = error_handler or ErrorHandler(self.logger)
        self.scan_start_time: Optional[datetime] = None
        self.scan_end_time: Optional[datetime] = None

    @property
    @abstractmethod
    def scanner_type(self) -> str:
        """Short scanner name used in log output."""

    def _start_scan_timer(self) -> None:
        """Start the scan timing measurement."""
        self.scan_start_time = datetime.now()

    def _end_scan_timer(self) -> float:
        """
        End the scan timing measurement and return duration.

        Returns:
            Scan duration in seconds as a float
        """
        self.scan_end_time = datetime.now()
        if self.scan_start_time:
            return (self.scan_end_time - self.scan_start_time).total_seconds()
        return 0.0

    def _log_info(self, message: str) -> None:
        self.logger.info(f"[{self.scanner_type}] {message}")

    def _log_warning(self, message: str) -> None:
        self.logger.warning(f"[{self.scanner_type}] {message}")

    def _log_debug(self, message: str) -> None:
        self.logger.debug(message)
