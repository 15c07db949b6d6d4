"""
Source discovery and reading.

Finds JavaScript-family source files below a project directory and reads them
concurrently. Unreadable files are skipped with a warning instead of failing
the analysis.
"""

import asyncio
import fnmatch
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .cli_config import ScanConfig, get_config
from .error_handling import SourceReadError, log_filesystem_error
from .structured_logging import get_scanner_logger, log_sources_scanned

VUE_SCRIPT_PATTERN = re.compile(r"<script(?:\s+[^>]*)?>([\s\S]*?)</script>", re.IGNORECASE)


@dataclass
class SourceScanResult:
    """Sources read from a project directory."""

    sources: List[Tuple[str, str]] = field(default_factory=list)
    failures: List[SourceReadError] = field(default_factory=list)

    @property
    def files_found(self) -> int:
        return len(self.sources) + len(self.failures)


def extract_vue_script(content: str) -> str:
    """Content of the first ``<script>`` block of a Vue component, or an empty module."""
    match = VUE_SCRIPT_PATTERN.search(content)
    return match.group(1) if match else ""


def _matches_ignore_entry(relative: str, entry: str) -> bool:
    entry = entry.strip().strip("/")
    if not entry:
        return False
    wrapped = f"/{relative}/"
    return f"/{entry}/" in wrapped or fnmatch.fnmatch(relative, entry)


def is_ignored(relative: str, ignore_globs: Iterable[str], ignore_entries: Iterable[str]) -> bool:
    """
    Whether a project-relative POSIX path is excluded.

    ``ignore_globs`` are shell patterns matched against ``/``-prefixed paths;
    ``ignore_entries`` are directory or file paths matched on segment boundaries.
    """
    rooted = f"/{relative}"
    if any(fnmatch.fnmatch(rooted, pattern) for pattern in ignore_globs):
        return True
    return any(_matches_ignore_entry(relative, entry) for entry in ignore_entries)


def discover_source_files(
    project_path: Path,
    ignore_entries: Sequence[str] = (),
    scan_config: Optional[ScanConfig] = None,
) -> List[Path]:
    """List source files below ``project_path`` in a stable order."""
    scan_config = scan_config or get_config().scan
    extensions = {f".{ext.lstrip('.')}" for ext in scan_config.source_extensions}
    globs = scan_config.default_ignore_globs
    found = []
    for directory, dirnames, filenames in os.walk(project_path):
        base = Path(directory).relative_to(project_path).as_posix()
        prefix = "" if base == "." else f"{base}/"
        # Pruned in place so os.walk does not descend into node_modules and friends
        dirnames[:] = sorted(
            name for name in dirnames if not is_ignored(f"{prefix}{name}/", globs, ignore_entries)
        )
        for filename in sorted(filenames):
            relative = f"{prefix}{filename}"
            if Path(filename).suffix not in extensions:
                continue
            if is_ignored(relative, globs, ignore_entries):
                continue
            found.append(project_path / relative)
    return sorted(found)


class SourceReader:
    """Reads source files with bounded concurrency."""

    def __init__(self, project_path: Path, scan_config: Optional[ScanConfig] = None):
        self.project_path = project_path
        self.scan_config = scan_config or get_config().scan
        self._semaphore = None  # Lazy-load to avoid event loop issues

    @property
    def semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.scan_config.max_concurrent)
        return self._semaphore

    def _read(self, path: Path) -> str:
        relative = path.relative_to(self.project_path).as_posix()
        try:
            size = path.stat().st_size
            if size > self.scan_config.max_file_size_bytes:
                raise SourceReadError(
                    relative, f"file too large ({size} bytes, max {self.scan_config.max_file_size_bytes})"
                )
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(relative, str(e)) from e
        if path.suffix == ".vue":
            content = extract_vue_script(content)
        return content

    async def read_one(self, path: Path) -> Tuple[str, str]:
        async with self.semaphore:
            content = await asyncio.to_thread(self._read, path)
        return path.relative_to(self.project_path).as_posix(), content

    async def read_all(self, paths: Sequence[Path]) -> SourceScanResult:
        """Read every path; order of ``sources`` follows ``paths``."""
        results = await asyncio.gather(*(self.read_one(path) for path in paths), return_exceptions=True)

        scan = SourceScanResult()
        for result in results:
            if isinstance(result, SourceReadError):
                scan.failures.append(result)
                log_filesystem_error(
                    str(result), "scanner", "read_all", file_path=result.file_path, exception=result
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                scan.sources.append(result)
        return scan


async def scan_sources(
    project_path: Path,
    ignore_entries: Sequence[str] = (),
    scan_config: Optional[ScanConfig] = None,
) -> SourceScanResult:
    """Discover and read the project's source files."""
    project_path = Path(project_path)
    paths = discover_source_files(project_path, ignore_entries, scan_config)
    get_scanner_logger().debug("sources_discovered", files_found=len(paths))

    scan = await SourceReader(project_path, scan_config).read_all(paths)
    log_sources_scanned(scan.files_found, len(scan.sources), len(scan.failures))
    return scan
