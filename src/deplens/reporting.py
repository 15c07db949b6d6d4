"""
Reporting and output formatting for dependency analysis results.

Provides color-coded console output using Rich library and a JSON export.
"""

import json
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .analyzer import Summary
from .dependency import UnusedEntry

ANALYSIS_STEPS = 4


def create_progress(console: Console) -> Progress:
    """Step progress shown while scanning, parsing, analyzing and summarizing."""
    return Progress(
        SpinnerColumn(),
        BarColumn(),
        TextColumn("{task.description}"),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )


class UsageReporter:
    """Formats and displays dependency usage results."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_results(
        self,
        summary: Summary,
        verbose: bool = False,
        show_ignore_hint: bool = False,
        package_manager: str = "npm",
        silence: bool = False,
    ) -> None:
        """
        Print analysis results in a user-friendly format.

        Args:
            summary: The analysis summary to display
            verbose: Also list dev dependencies
            show_ignore_hint: Suggest recording false positives in the config
            package_manager: Package manager whose lockfile was analyzed
            silence: Suppress the closing hints
        """
        self.console.print()
        self.console.print(
            Panel("✨ Check Results", title="[bold green]Deplens[/bold green]", border_style="green")
        )
        self.console.print("✅ Dependency check completed successfully", style="green")
        self.console.print(f"✅ Analyzed {summary.total} packages", style="green")

        if summary.has_unused:
            self._print_unused(summary.confirmed_unused, summary.unused_count)
        else:
            self.console.print("✅ No unused dependencies found", style="green")

        if summary.dynamic:
            self._print_dynamic(summary.dynamic)

        if verbose:
            self._print_dev(summary.dev)

        self._print_extra_info(summary, verbose, show_ignore_hint, package_manager, silence)

    def _print_unused(self, entries: List[UnusedEntry], count: int) -> None:
        table = Table(
            title=f"📦 Found {count} unused dependencies",
            box=box.ROUNDED,
            title_style="bold cyan",
        )
        table.add_column("Package", style="bold")
        table.add_column("Version")
        for entry in entries:
            table.add_row(entry.name, f"@{entry.version}" if entry.version else "")
        self.console.print(table)

    def _print_dynamic(self, entries: List[UnusedEntry]) -> None:
        self.console.print(
            f"ℹ️  Found {len(entries)} dynamic imports that deplens cannot analyze:", style="blue"
        )
        for entry in entries:
            self.console.print(f"\t- {entry.source_call_text}", style="dim", markup=False)

    def _print_dev(self, entries: List[UnusedEntry]) -> None:
        if not entries:
            self.console.print("✅ No dev dependencies found", style="green")
            return
        self.console.print(
            f"ℹ️  Found {len(entries)} dev dependencies that you maybe don't need in a stable environment:",
            style="blue",
        )
        for entry in entries:
            self.console.print(f"\t- {entry.name}", style="dim", markup=False)

    def _print_extra_info(
        self,
        summary: Summary,
        verbose: bool,
        show_ignore_hint: bool,
        package_manager: str,
        silence: bool,
    ) -> None:
        self.console.print()
        self.console.print("⚠️  Some extra info:", style="bold green")
        self.console.rule(style="dim")

        if summary.has_unused and show_ignore_hint and not silence:
            self.console.print(
                "⚠️  Due to workload reasons, Deplens cannot fully support all frameworks and plugins.",
                style="yellow",
            )
            self.console.print(
                "⚠️  If there are false positives, please record them in [ deplens.config.json ] "
                "or the '--ignore-dep' option.",
                style="yellow",
                markup=False,
            )

        if package_manager == "pnpm":
            self.console.print("ℹ️  PNPM support enabled", style="blue")

        if verbose:
            self.console.print("ℹ️  Verbose output enabled", style="blue")
        elif not silence:
            self.console.print("ℹ️  Run with --verbose for detailed output", style="blue")


def render_json(summary: Summary, project_path: str, package_manager: str) -> str:
    """Serialize a summary for automation."""
    results = {"project_path": project_path, "package_manager": package_manager, **summary.to_dict()}
    return json.dumps(results, indent=2, ensure_ascii=False)
