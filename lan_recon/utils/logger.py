"""
Colored console logging for LAN reconnaissance runs.

This module provides a Logger class built on colorama with per-level colors,
section banners, phase progress lines and simple fixed-width tables used by
the command line front end.
"""

import sys
from datetime import datetime
from enum import Enum
from typing import Optional, List
from colorama import Fore, Style, init

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class LogLevel(Enum):
    """Enumeration for different log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
}


class Logger:
    """
    Logger with colored console output and phase progress lines.

    Every component of the scan pipeline accepts one of these in its
    constructor. Instances created through get_logger() follow the global
    minimum level unless a level is pinned explicitly.
    """

    LEVEL_COLORS = {
        LogLevel.DEBUG: Fore.CYAN,
        LogLevel.INFO: Fore.GREEN,
        LogLevel.WARNING: Fore.YELLOW,
        LogLevel.ERROR: Fore.RED,
    }

    LEVEL_SYMBOLS = {
        LogLevel.DEBUG: "🔍",
        LogLevel.INFO: "ℹ️",
        LogLevel.WARNING: "⚠️",
        LogLevel.ERROR: "❌",
    }

    def __init__(self, name: str = "LanRecon", min_level: Optional[LogLevel] = None):
        """
        Initialize the Logger.

        Args:
            name: Name of the logger, shown in debug output
            min_level: Minimum level to display; None follows the global level
        """
        self.name = name
        self._min_level = min_level
        self._progress_active = False

    @property
    def min_level(self) -> LogLevel:
        if self._min_level is not None:
            return self._min_level
        return _global_level

    @min_level.setter
    def min_level(self, level: LogLevel) -> None:
        self._min_level = level

    def _should_log(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.min_level]

    def _format_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _format_details(self, details: dict) -> str:
        if not details:
            return ""
        rendered = " | ".join(f"{k}={v}" for k, v in details.items())
        return f" {Style.DIM}({rendered}){Style.RESET_ALL}"

    def _log(self, level: LogLevel, message: str, **kwargs) -> None:
        """
        Format and print a message if its level passes the filter.

        Args:
            level: Log level
            message: Message to log
            **kwargs: Context rendered as "(key=value | ...)"
        """
        if not self._should_log(level):
            return

        color = self.LEVEL_COLORS[level]
        symbol = self.LEVEL_SYMBOLS[level]
        prefix = f"[{self.name}] " if level == LogLevel.DEBUG else ""

        formatted_message = (
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{color}{symbol} {level.value:<7}{Style.RESET_ALL} "
            f"{prefix}{message}"
            f"{self._format_details(kwargs)}"
        )

        print(
            formatted_message,
            file=sys.stdout if level != LogLevel.ERROR else sys.stderr,
        )

    def debug(self, message: str, **kwargs) -> None:
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(
        self, message: str, exception: Optional[Exception] = None, **kwargs
    ) -> None:
        """
        Log an error message.

        Args:
            message: Error message
            exception: Optional exception, rendered as "Type: text"
            **kwargs: Additional context information
        """
        if exception:
            kwargs["exception"] = f"{type(exception).__name__}: {exception}"
        self._log(LogLevel.ERROR, message, **kwargs)

    def success(self, message: str, **kwargs) -> None:
        """Log a success line (INFO level, highlighted)."""
        if not self._should_log(LogLevel.INFO):
            return

        formatted_message = (
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{Fore.GREEN}✅ SUCCESS {Style.RESET_ALL} "
            f"{Style.BRIGHT}{message}{Style.RESET_ALL}"
            f"{self._format_details(kwargs)}"
        )
        print(formatted_message)

    def section(self, title: str) -> None:
        """Print a section banner."""
        if not self._should_log(LogLevel.INFO):
            return

        separator = "=" * 60
        print(f"\n{Fore.BLUE}{Style.BRIGHT}{separator}")
        print(f"  {title.upper()}")
        print(f"{separator}{Style.RESET_ALL}\n")

    def progress_start(self, message: str) -> None:
        """
        Start a progress indicator for a long-running phase.

        Args:
            message: Progress message to display
        """
        if not self._should_log(LogLevel.INFO):
            return

        self._print_progress(message)
        self._progress_active = True

    def progress_update(self, message: str) -> None:
        """
        Print an update for the active progress indicator.

        Args:
            message: Updated progress message
        """
        if not self._progress_active or not self._should_log(LogLevel.INFO):
            return

        self._print_progress(message)

    def progress_end(self, final_message: Optional[str] = None) -> None:
        """
        End the active progress indicator.

        Args:
            final_message: Optional success line printed on completion
        """
        if not self._progress_active:
            return

        self._progress_active = False

        if final_message:
            self.success(final_message)

    def _print_progress(self, message: str) -> None:
        print(
            f"{Style.DIM}[{self._format_timestamp()}]{Style.RESET_ALL} "
            f"{Fore.BLUE}⏳ PROGRESS{Style.RESET_ALL} "
            f"{message}...",
            flush=True,
        )

    def table_header(self, headers: List[str], widths: List[int]) -> None:
        """
        Print a formatted table header.

        Args:
            headers: List of header names
            widths: List of column widths
        """
        if not self._should_log(LogLevel.INFO):
            return

        header_row = " | ".join(
            f"{header:<{width}}" for header, width in zip(headers, widths)
        )
        print(f"{Style.BRIGHT}{header_row}{Style.RESET_ALL}")

        separator = "-+-".join("-" * width for width in widths)
        print(f"{Style.DIM}{separator}{Style.RESET_ALL}")

    def table_row(
        self, values: List[str], widths: List[int], highlight: bool = False
    ) -> None:
        """
        Print a formatted table row.

        Args:
            values: List of values to display
            widths: List of column widths
            highlight: Whether to highlight this row
        """
        if not self._should_log(LogLevel.INFO):
            return

        row = " | ".join(
            f"{str(value):<{width}}" for value, width in zip(values, widths)
        )

        if highlight:
            print(f"{Style.BRIGHT}{row}{Style.RESET_ALL}")
        else:
            print(row)

    def network_info(self, local_ip: Optional[str], gateway: Optional[str], subnet: Optional[str]) -> None:
        """
        Display the detected local network in a short block.

        Args:
            local_ip: This host's IPv4 address, if resolved
            gateway: Default gateway IPv4 address, if resolved
            subnet: Subnet being swept, if any
        """
        if not self._should_log(LogLevel.INFO):
            return

        print(f"\n{Fore.CYAN}{Style.BRIGHT}🌐 LOCAL NETWORK{Style.RESET_ALL}")
        print(f"  Host IP:  {Style.BRIGHT}{local_ip or '-'}{Style.RESET_ALL}")
        print(f"  Gateway:  {Style.BRIGHT}{gateway or '-'}{Style.RESET_ALL}")
        print(f"  Subnet:   {Style.BRIGHT}{subnet or '-'}{Style.RESET_ALL}\n")


_global_level = LogLevel.INFO

# Global logger instance
logger = Logger()


def set_log_level(level: LogLevel) -> None:
    """
    Set the global log level.

    Args:
        level: Minimum log level to display
    """
    global _global_level
    _global_level = level


def get_logger(name: str = "LanRecon") -> Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name

    Returns:
        Logger instance following the global level
    """
    return Logger(name)
