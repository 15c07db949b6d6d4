"""
Error taxonomy and central error reporting for Deplens.

The exceptions below are what the analysis raises. Independently of raising,
every detected problem is reported to ``ErrorHandler`` which logs it, counts it
per category and hands it to any registered callbacks.
"""

import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

ERROR_LOGGER_NAME = "deplens"


class DeplensError(Exception):
    """Base class for all errors raised by Deplens."""


class MissingManifestError(DeplensError):
    """The lockfile expected for the selected package manager does not exist."""

    def __init__(self, manifest_path: Path, hint: str):
        self.manifest_path = manifest_path
        self.hint = hint
        super().__init__(
            f"The {manifest_path} file does not exist, so dependencies cannot be resolved.\n> {hint}"
        )


class ManifestParseError(DeplensError):
    """The lockfile exists but is not a valid document for its dialect."""

    def __init__(self, manifest_path: Path, reason: str):
        self.manifest_path = manifest_path
        self.reason = reason
        super().__init__(f"Failed to parse {manifest_path.name}: {reason}")


class SourceReadError(DeplensError):
    """A source file could not be read. Recoverable: the file is skipped."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Failed to read file {file_path}. Error: {reason}")


class SyntaxTreeError(DeplensError):
    """A source file could not be turned into a syntax tree. Aborts the run."""

    def __init__(self, index: int, file_path: str, reason: str, content: str):
        self.index = index
        self.file_path = file_path
        self.reason = reason
        self.snippet = content[:100]
        super().__init__(
            f"Failed to parse file at index {index} ({file_path}): \n{reason}\n"
            f"Content snippet: {self.snippet}..."
        )


class ErrorLevel(Enum):
    WARNING = logging.WARNING
    ERROR = logging.ERROR


class ErrorCategory(Enum):
    """Where in the pipeline a problem was detected."""

    PARSING = "PARSING"
    FILESYSTEM = "FILESYSTEM"
    CONFIGURATION = "CONFIGURATION"


@dataclass
class ErrorContext:
    """One reported problem."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    suggestions: List[str] = field(default_factory=list)

    @property
    def location(self) -> str:
        return f"{self.module}.{self.function}"

    def describe(self) -> str:
        parts = [f"[{self.category.value}] {self.message}", f"at {self.location}"]
        if self.details:
            parts.append(", ".join(f"{key}={value}" for key, value in self.details.items()))
        if self.exception is not None:
            parts.append(f"caused by {type(self.exception).__name__}")
        if self.suggestions:
            parts.append("hint: " + "; ".join(self.suggestions))
        return " | ".join(parts)


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Central sink for problems found while loading lockfiles, reading sources
    and parsing configuration.

    Callbacks registered for a category only see that category; callbacks
    registered without one see everything. A failing callback is logged and
    never interrupts the analysis.
    """

    def __init__(self, logger_name: str = ERROR_LOGGER_NAME, log_level: Optional[int] = None):
        self.logger = logging.getLogger(logger_name)
        if log_level is not None:
            self.logger.setLevel(log_level)
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            self.logger.addHandler(handler)

        self._callbacks: Dict[Optional[ErrorCategory], List[ErrorCallback]] = {}
        self.stats: Counter = Counter()

    def register_callback(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        self._callbacks.setdefault(category, []).append(callback)

    def unregister_callback(self, callback: ErrorCallback) -> None:
        for callbacks in self._callbacks.values():
            while callback in callbacks:
                callbacks.remove(callback)

    def report(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            suggestions=suggestions or [],
        )
        self.stats[(category, level)] += 1
        self.logger.log(level.value, context.describe())

        for callback in self._callbacks.get(category, []) + self._callbacks.get(None, []):
            try:
                callback(context)
            except Exception as cb_error:
                self.logger.error(f"Error callback {callback!r} failed: {cb_error}")
        return context

    def warning(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        return self.report(ErrorLevel.WARNING, category, message, module, function, **kwargs)

    def error(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        return self.report(ErrorLevel.ERROR, category, message, module, function, **kwargs)

    def count(self, category: ErrorCategory, level: Optional[ErrorLevel] = None) -> int:
        """Number of problems reported for ``category``, optionally at one level."""
        return sum(
            total for (seen_category, seen_level), total in self.stats.items()
            if seen_category is category and (level is None or seen_level is level)
        )


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[BaseException] = None,
    suggestions: Optional[List[str]] = None,
) -> ErrorContext:
    """Report a lockfile or source file that could not be parsed."""
    details = {"file_path": Path(file_path).name} if file_path is not None else {}
    return get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=suggestions or ["Check file format and encoding"],
    )


def log_filesystem_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[BaseException] = None,
) -> ErrorContext:
    """Report a recoverable file-system problem such as an unreadable source file."""
    details = {"file_path": file_path} if file_path is not None else {}
    return get_error_handler().warning(
        ErrorCategory.FILESYSTEM,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=["Check file permissions", "Exclude the path with --ignore-path"],
    )
