import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .analyzer import Summary, resolve_dependency_usage
from .cli_config import (
    PROJECT_CONFIG_FILENAME,
    build_ignore_set,
    create_sample_config,
    get_config,
    load_config,
    load_project_config,
    split_option_list,
)
from .error_handling import DeplensError
from .lockfiles import load_lockfile
from .reporting import ANALYSIS_STEPS, UsageReporter, create_progress, render_json
from .scanner import scan_sources
from .source_normalizer import normalize_sources
from .structured_logging import configure_logging, log_analysis_complete, log_analysis_start

console = Console()


def _read_failure_warnings(failures, verbose: bool) -> List[str]:
    if verbose:
        return [f"Error: {failure}" for failure in failures]
    if failures:
        return [
            f"Warning: {len(failures)} files read failed. Try to use `--verbose` to see more details."
        ]
    return []


async def async_analyze_project(
    project_path: Path,
    use_pnpm: bool,
    ignore_dep: List[str],
    ignore_entries: List[str],
    config_path: Optional[str],
    verbose: bool,
    silence: bool,
) -> Tuple[Summary, List[str], bool]:
    """
    Run the full analysis for one project directory.

    Returns:
        The summary, warnings to show after progress output, and whether any
        ignore configuration was in effect.
    """
    project_config = load_project_config(project_path, config_path)
    ignore_names = build_ignore_set(project_config, ignore_dep)
    ignore_entries = project_config.ignore_path + project_config.ignore_file + ignore_entries
    has_ignore_config = project_config.source is not None or bool(ignore_dep or ignore_entries)

    start_time = time.monotonic()
    log_analysis_start(str(project_path), "pnpm" if use_pnpm else "npm")
    graph = load_lockfile(project_path, use_pnpm)

    with create_progress(console) as progress:
        task = progress.add_task("Initializing...", total=ANALYSIS_STEPS, visible=not silence)

        scan = await scan_sources(project_path, ignore_entries)
        progress.update(task, advance=1, description="Scanning files")

        trees = normalize_sources(scan.sources)
        progress.update(task, advance=1, description="Parsing AST")

        summary = resolve_dependency_usage(graph, trees, ignore_names)
        progress.update(task, advance=1, description="Analyzing dependencies")

        progress.update(task, advance=1, description="Summarizing results")

    log_analysis_complete(
        int((time.monotonic() - start_time) * 1000),
        summary.total,
        summary.unused_count,
        len(summary.dynamic),
        len(summary.dev),
    )
    return summary, _read_failure_warnings(scan.failures, verbose), has_ignore_config


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    🔍 Deplens: find declared npm/pnpm dependencies your code never uses.
    """
    if version:
        console.print(f"Deplens version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.option(
    "--path",
    "-p",
    "project_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Path to check (defaults to current directory)",
)
@click.option("--pnpm", "--pn", "pnpm", is_flag=True, help="Read pnpm-lock.yaml instead of package-lock.json")
@click.option("--verbose", "-V", is_flag=True, help="Enable verbose output")
@click.option("--silence", "-s", is_flag=True, help="Silence progress and hints")
@click.option("--ignore-dep", "-i", default="", help="Comma separated dependencies to ignore")
@click.option("--ignore-path", default="", help="Comma separated directories to skip when scanning")
@click.option("--ignore-file", default="", help="Comma separated files to skip when scanning")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Path of config file (defaults to <path>/{PROJECT_CONFIG_FILENAME})",
)
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Output format for results",
)
@click.option("--output-file", "-o", type=click.Path(), help="Save results to file (JSON format only)")
def check(
    project_path: str,
    pnpm: bool,
    verbose: bool,
    silence: bool,
    ignore_dep: str,
    ignore_path: str,
    ignore_file: str,
    config_path: Optional[str],
    output_format: Optional[str],
    output_file: Optional[str],
) -> None:
    """
    Check project dependencies.

    Examples:

      deplens check

      deplens check --path ./my-app --pnpm

      deplens check -i left-pad,lodash --verbose

      deplens check --output-format json -o results.json
    """
    config = load_config()
    verbose = verbose or config.output.verbose
    silence = silence or config.output.silence
    output_format = (output_format or config.output.output_format).lower()
    configure_logging(
        "INFO" if verbose else config.logging.log_level,
        config.logging.log_format,
        report_errors=verbose,
    )

    if output_file and output_format != "json":
        raise click.ClickException("Output file can only be used with JSON format")

    if not silence and output_format == "console":
        console.print(
            Panel(f"🔍 [bold blue]Deplens[/bold blue] v{__version__}", border_style="blue")
        )
        console.print(f"ℹ️  Starting dependency analysis for: {project_path}", style="blue")

    try:
        summary, warnings, has_ignore_config = asyncio.run(
            async_analyze_project(
                Path(project_path),
                pnpm,
                split_option_list(ignore_dep),
                split_option_list(ignore_path) + split_option_list(ignore_file),
                config_path,
                verbose,
                silence or output_format == "json",
            )
        )
    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Analysis interrupted by user", style="yellow")
        sys.exit(130)
    except DeplensError as e:
        Console(stderr=True).print(f"❌ Analysis failed: {e}", style="red", markup=False)
        sys.exit(1)

    for warning in warnings:
        Console(stderr=True).print(f"⚠️  {warning}", style="yellow", markup=False)

    if output_format == "json":
        json_output = render_json(summary, project_path, "pnpm" if pnpm else "npm")
        if output_file:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(json_output)
            console.print(f"✅ Results saved to {output_file}", style="green")
        else:
            print(json_output)
        return

    UsageReporter(console).print_results(
        summary,
        verbose=verbose,
        show_ignore_hint=not has_ignore_config,
        package_manager="pnpm" if pnpm else "npm",
        silence=silence,
    )


@cli.command()
def info():
    """Show supported lockfiles, configuration and usage examples."""
    info_text = f"""
[bold blue]📋 Supported Lockfiles:[/bold blue]

• [green]package-lock.json[/green] - npm 7+ (lockfileVersion 2 and 3)
• [green]pnpm-lock.yaml[/green] - pnpm (lockfileVersion 5.x, 6.0 and 9.0), use --pnpm

[bold blue]🔍 Detected References:[/bold blue]

• [yellow]import x from 'pkg'[/yellow] - static imports, including subpaths like 'pkg/sub'
• [yellow]require('pkg')[/yellow] - CommonJS require calls
• [yellow]import('pkg')[/yellow] - dynamic imports
• [yellow]require(name)[/yellow] - computed specifiers are listed separately

[bold blue]📄 Configuration Files:[/bold blue]

• [green]{PROJECT_CONFIG_FILENAME}[/green] - ignoreDep, ignorePath, ignoreFile lists
• [green].deplens.json[/green] - tool settings (scan, logging, output)
• [green]~/.config/deplens/config.json[/green] - user-level tool settings

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]DEPLENS_MAX_CONCURRENT[/cyan] - Concurrent source file reads
• [cyan]DEPLENS_LOG_LEVEL[/cyan] - Structured log level
• [cyan]DEPLENS_LOG_FORMAT[/cyan] - json or text log lines
• [cyan]DEPLENS_OUTPUT_FORMAT[/cyan] - console or json

[bold blue]💡 Usage Examples:[/bold blue]

  deplens check
  deplens check --path ./app --pnpm
  deplens check --ignore-dep left-pad --verbose
  deplens config init
"""
    console.print(Panel(info_text, title="[bold]Deplens Information[/bold]", border_style="blue"))


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=PROJECT_CONFIG_FILENAME,
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample project configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
        console.print(f"✅ Created configuration file at {config_path}", style="green")
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")


@config.command("show")
def config_show():
    """Show current tool configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]📊 Scan Settings:[/bold cyan]")
    console.print(f"  Max Concurrent: {current_config.scan.max_concurrent}")
    console.print(f"  Max File Size: {current_config.scan.max_file_size_mb} MB")
    console.print(f"  Extensions: {', '.join(current_config.scan.source_extensions)}")
    console.print(f"  Ignored: {', '.join(current_config.scan.default_ignore_globs)}", markup=False)

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  Log Format: {current_config.logging.log_format}")

    console.print("\n[bold cyan]🖨  Output Settings:[/bold cyan]")
    console.print(f"  Output Format: {current_config.output.output_format}")
    console.print(f"  Verbose: {current_config.output.verbose}")
    console.print(f"  Silence: {current_config.output.silence}")


if __name__ == "__main__":
    cli()
