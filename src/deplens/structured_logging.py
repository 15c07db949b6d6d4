"""
Structured logging configuration for deplens.

Provides consistent, machine-readable logging for lockfile loading, source
scanning and dependency analysis.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import ERROR_LOGGER_NAME

_RESERVED_RECORD_KEYS = {
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
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }
        message = record.getMessage()
        if message:
            log_entry["message"] = message

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class KeyValueFormatter(logging.Formatter):
    """Plain-text formatter: timestamp, component, level, then key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields = [
            f"{key}={value}" for key, value in record.__dict__.items() if key not in _RESERVED_RECORD_KEYS
        ]
        message = record.getMessage()
        if message:
            fields.insert(0, message)
        return f"{self.formatTime(record)} - {record.name} - {record.levelname} - " + " ".join(fields)


class AnalysisLogger:
    """Structured logger for analysis events."""

    def __init__(self, name: str = "analysis"):
        self.logger = logging.getLogger(f"deplens.{name}")
        self._setup_logger()
        self.analysis_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
        self.logger.propagate = False

    def set_analysis_context(
        self,
        project_path: Optional[str] = None,
        package_manager: Optional[str] = None,
    ) -> None:
        """Set analysis context for logging."""
        self.analysis_context = {}
        if project_path:
            self.analysis_context["project_path"] = project_path
        if package_manager:
            self.analysis_context["package_manager"] = package_manager

    def clear_analysis_context(self) -> None:
        self.analysis_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.analysis_context, **kwargs}
        getattr(self.logger, level.lower())("", extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


# Global logger instances
_analysis_logger = AnalysisLogger("analysis")
_lockfile_logger = AnalysisLogger("lockfile")
_scanner_logger = AnalysisLogger("scanner")

_ALL_LOGGERS = [_analysis_logger, _lockfile_logger, _scanner_logger]


def get_analysis_logger() -> AnalysisLogger:
    """Get dependency analysis logger."""
    return _analysis_logger


def get_lockfile_logger() -> AnalysisLogger:
    """Get lockfile loading logger."""
    return _lockfile_logger


def get_scanner_logger() -> AnalysisLogger:
    """Get source scanning logger."""
    return _scanner_logger


def log_analysis_start(project_path: str, package_manager: str) -> None:
    """Log analysis start event."""
    set_analysis_context(project_path, package_manager)
    get_analysis_logger().info("analysis_started")


def log_lockfile_loaded(
    manifest_path: str, root_declarations: int, transitive_packages: int, reference_count: int
) -> None:
    """Log a successfully normalized lockfile."""
    get_lockfile_logger().info(
        "lockfile_loaded",
        manifest_path=manifest_path,
        root_declarations=root_declarations,
        transitive_packages=transitive_packages,
        reference_count=reference_count,
    )


def log_sources_scanned(files_found: int, files_read: int, files_failed: int) -> None:
    """Log the outcome of source discovery and reading."""
    get_scanner_logger().info(
        "sources_scanned",
        files_found=files_found,
        files_read=files_read,
        files_failed=files_failed,
    )


def log_analysis_complete(
    duration_ms: int, total: int, unused_count: int, dynamic_count: int, dev_count: int
) -> None:
    """Log analysis completion event."""
    get_analysis_logger().info(
        "analysis_completed",
        analysis_duration_ms=duration_ms,
        total_dependencies=total,
        unused_dependencies=unused_count,
        dynamic_imports=dynamic_count,
        dev_dependencies=dev_count,
    )
    clear_analysis_context()


def set_analysis_context(
    project_path: Optional[str] = None, package_manager: Optional[str] = None
) -> None:
    """Set global analysis context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_analysis_context(project_path, package_manager)


def clear_analysis_context() -> None:
    """Clear global analysis context."""
    for logger in _ALL_LOGGERS:
        logger.clear_analysis_context()


def configure_logging(log_level: str = "WARNING", log_format: str = "json", report_errors: bool = True) -> None:
    """
    Configure logging for the application.

    ``log_format`` selects JSON or ``key=value`` lines for the component
    loggers. With ``report_errors`` off, the error handler's own log lines are
    suppressed; problems are still counted and passed to callbacks.
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    formatter = StructuredFormatter() if log_format == "json" else KeyValueFormatter()
    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        for handler in logger.logger.handlers:
            handler.setFormatter(formatter)

    error_logger = logging.getLogger(ERROR_LOGGER_NAME)
    error_logger.setLevel(level if report_errors else logging.CRITICAL + 1)
