"""
Error handling for hexcheck.

Provides the exception hierarchy for the update-check pipeline together with
structured logging and error callbacks shared by all modules.
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse


class HexcheckError(Exception):
    """Base class for all hexcheck errors."""


class RegistryError(HexcheckError):
    """A registry lookup did not produce a usable answer."""

    def __init__(self, package_name: str, message: str):
        super().__init__(message)
        self.package_name = package_name


class RegistryTransportError(RegistryError):
    """The request failed or the registry answered with a non-success status."""

    def __init__(
        self, package_name: str, message: str, status_code: Optional[int] = None
    ):
        super().__init__(package_name, message)
        self.status_code = status_code


class EmptyResponseError(RegistryError):
    """The registry answered with an empty body."""


class RegistryResponseError(RegistryError):
    """The response body could not be decoded into a release list."""


class ErrorLevel(Enum):
    """Error severity levels."""

    WARNING = "WARNING"
    ERROR = "ERROR"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    PARSING = "PARSING"
    NETWORK = "NETWORK"
    PROTOCOL = "PROTOCOL"
    FILESYSTEM = "FILESYSTEM"
    CONFIGURATION = "CONFIGURATION"


_LOG_LEVELS = {
    ErrorLevel.WARNING: logging.WARNING,
    ErrorLevel.ERROR: logging.ERROR,
}


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None


class ErrorHandler:
    """
    Centralized error handler.

    Every recoverable problem in the pipeline goes through here so it is
    logged once with its category and counted.
    """

    def __init__(
        self,
        logger_name: str = "hexcheck",
        log_level: int = logging.WARNING,
    ):
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(log_level)
        # User-facing messages go through the notifier; log output is opt-in.
        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

        self.error_stats: Dict[str, int] = {}

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and statistics.

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=traceback.format_exc() if exception else None,
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        log_data = {
            "category": category.value,
            "module": module,
            "function": function,
            "details": context.details,
        }
        if exception:
            log_data["exception"] = type(exception).__name__
        self.logger.log(_LOG_LEVELS[level], f"{message} | {log_data}")

        return context

    def warning(self, category, message, module, function, **kwargs) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(self, category, message, module, function, **kwargs) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    logger_name: str = "hexcheck",
    formatter: Optional[logging.Formatter] = None,
    log_file: Optional[str] = None,
    stream: bool = False,
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Args:
        log_level: Logging level
        logger_name: Logger name
        formatter: Formatter for any handler installed here
        log_file: Append log records to this file
        stream: Also write log records to stderr

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler

    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = formatter or logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    if stream:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    _global_error_handler = ErrorHandler(logger_name, log_level)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    line_number: Optional[int] = None,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
):
    """Convenience function for logging parsing errors."""
    details = {}
    if line_number is not None:
        details["line_number"] = line_number
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    get_error_handler().warning(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[Exception] = None,
    category: ErrorCategory = ErrorCategory.NETWORK,
) -> ErrorContext:
    """
    Convenience function for logging registry failures.

    Args:
        message: Error message
        module: Module name
        function: Function name
        url: URL that failed (query strings and credentials are dropped)
        status_code: HTTP status code
        exception: Optional exception
        category: NETWORK for transport problems, PROTOCOL for bad payloads

    Returns:
        ErrorContext: The recorded error, with the sanitized URL in details
    """
    details: Dict[str, Any] = {}
    if url is not None:
        parsed = urlparse(url)
        sanitized_url = f"{parsed.scheme}://{parsed.hostname}"
        if parsed.port:
            sanitized_url += f":{parsed.port}"
        sanitized_url += parsed.path
        details["url"] = sanitized_url

    if status_code is not None:
        details["status_code"] = status_code

    return get_error_handler().error(
        category,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )
