"""
Structured logging for hexcheck.

Emits machine-readable events for each check run so slow or failing registry
lookups can be traced after the fact.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

_RESERVED_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """
    Logger for check-run events.

    Holds no per-run state: callers pass the run fields with every event, so
    overlapping runs never mix up their context.
    """

    def __init__(self, name: str = "hexcheck.events"):
        self.logger = logging.getLogger(name)

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


_checker_logger = EventLogger("hexcheck.checker")
_registry_logger = EventLogger("hexcheck.registry")


def get_checker_logger() -> EventLogger:
    """Get check-run events logger."""
    return _checker_logger


def get_registry_logger() -> EventLogger:
    """Get registry operations logger."""
    return _registry_logger


def log_check_start(run_id: str, manifest_path: str, total_dependencies: int) -> None:
    """Log check start event."""
    get_checker_logger().info(
        "check_started",
        run_id=run_id,
        manifest_path=manifest_path,
        total_dependencies=total_dependencies,
    )


def log_fetch_result(
    package_name: str,
    latest_version: Optional[str],
    duration_ms: int,
    has_update: bool = False,
) -> None:
    """Log the outcome of a single registry lookup."""
    logger = get_registry_logger()
    logger.debug(
        "fetch_completed",
        package_name=package_name,
        latest_version=latest_version,
        duration_ms=duration_ms,
        has_update=has_update,
    )


def log_check_complete(
    run_id: str,
    manifest_path: str,
    duration_ms: int,
    updates_count: int,
    unresolved_count: int = 0,
) -> None:
    """Log check completion event."""
    get_checker_logger().info(
        "check_completed",
        run_id=run_id,
        manifest_path=manifest_path,
        duration_ms=duration_ms,
        updates_count=updates_count,
        unresolved_count=unresolved_count,
    )
