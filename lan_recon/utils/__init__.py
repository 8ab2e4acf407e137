"""
Utility functions and helper classes.
"""

from .logger import Logger, LogLevel, logger, set_log_level, get_logger
from .error_handler import (
    ErrorHandler, ToolValidator, ErrorContext, ErrorType, ErrorSeverity,
    ReconError, DiscoveryError, ToolMissingError, ConfigurationError,
    ValidationError, PortListError, ReportError, ScanInProgressError, StorageError
)
from . import network_utils
from .json_reporter import JSONReporter

__all__ = [
    'Logger',
    'LogLevel',
    'logger',
    'set_log_level',
    'get_logger',
    'ErrorHandler',
    'ToolValidator',
    'ErrorContext',
    'ErrorType',
    'ErrorSeverity',
    'ReconError',
    'DiscoveryError',
    'ToolMissingError',
    'ConfigurationError',
    'ValidationError',
    'PortListError',
    'ReportError',
    'ScanInProgressError',
    'StorageError',
    'network_utils',
    'JSONReporter'
]
