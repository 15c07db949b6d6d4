"""
Configuration management for Deplens.

Two layers are handled here: the tool configuration (scan limits, logging,
output defaults) read from a user or working-directory config file plus
environment overrides, and the per-project ``deplens.config.json`` that lists
dependencies, paths and files to ignore.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml
from rich.console import Console

from .error_handling import DeplensError, ErrorCategory, get_error_handler

console = Console(stderr=True)

PROJECT_CONFIG_FILENAME = "deplens.config.json"
PROJECT_CONFIG_KEYS = ("ignoreDep", "ignorePath", "ignoreFile")
LOG_FORMATS = ("json", "text")


@dataclass
class ScanConfig:
    """Source discovery and reading configuration."""

    max_concurrent: int = 16
    max_file_size_mb: int = 5
    source_extensions: List[str] = field(
        default_factory=lambda: ["js", "jsx", "ts", "tsx", "mjs", "cjs", "vue"]
    )
    default_ignore_globs: List[str] = field(
        default_factory=lambda: [
            "**/node_modules/**",
            "**/dist/**",
            "**/build/**",
            "**/.git/**",
            "**/*.d.ts",
        ]
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    log_format: str = "json"


@dataclass
class OutputConfig:
    """Result presentation defaults."""

    output_format: str = "console"
    verbose: bool = False
    silence: bool = False


@dataclass
class DeplensConfig:
    """Main configuration containing all subsections."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


@dataclass
class ProjectConfig:
    """Per-project ignore lists read from ``deplens.config.json``."""

    ignore_dep: List[str] = field(default_factory=list)
    ignore_path: List[str] = field(default_factory=list)
    ignore_file: List[str] = field(default_factory=list)
    source: Optional[Path] = None


# Global configuration instance
_global_config: Optional[DeplensConfig] = None


def validate_config_values(config: DeplensConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.scan.max_concurrent <= 0:
        errors.append("scan.max_concurrent must be positive")
    if config.scan.max_file_size_mb <= 0:
        errors.append("scan.max_file_size_mb must be positive")
    if not config.scan.source_extensions:
        errors.append("scan.source_extensions must not be empty")

    if config.logging.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")
    if config.logging.log_format not in LOG_FORMATS:
        errors.append("logging.log_format must be 'json' or 'text'")

    if config.output.output_format not in {"console", "json"}:
        errors.append("output.output_format must be 'console' or 'json'")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".deplens.json",
        Path.cwd() / ".deplens.yaml",
        Path.cwd() / ".deplens.yml",
        Path.home() / ".config" / "deplens" / "config.json",
        Path.home() / ".config" / "deplens" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: DeplensConfig) -> None:
    """Load environment variable overrides."""

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    if max_concurrent := get_env_int("DEPLENS_MAX_CONCURRENT"):
        config.scan.max_concurrent = max_concurrent
    if max_file_size := get_env_int("DEPLENS_MAX_FILE_SIZE_MB"):
        config.scan.max_file_size_mb = max_file_size
    if log_level := os.environ.get("DEPLENS_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    if log_format := os.environ.get("DEPLENS_LOG_FORMAT"):
        config.logging.log_format = log_format.lower()
    if output_format := os.environ.get("DEPLENS_OUTPUT_FORMAT"):
        config.output.output_format = output_format.lower()


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def load_config() -> DeplensConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = DeplensConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if isinstance(file_config, dict):
            for section_name in ("scan", "logging", "output"):
                if isinstance(file_config.get(section_name), dict):
                    apply_config_section(
                        getattr(config, section_name), file_config[section_name], section_name
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = DeplensConfig()

    _global_config = config
    return config


def get_config() -> DeplensConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def split_option_list(value: Optional[str]) -> List[str]:
    """Split a comma or whitespace separated CLI value, dropping empty items."""
    if not value:
        return []
    return [item.strip() for item in re.split(r"[\s,]+", value) if item.strip()]


def _string_list(value: Any, key: str, config_path: Path) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DeplensError(f"'{key}' in {config_path} must be a list of strings")
    return [item.strip() for item in value if item.strip()]


def load_project_config(project_path: Path, config_path: Optional[str] = None) -> ProjectConfig:
    """
    Load the project's ignore configuration.

    An explicit ``config_path`` must exist and parse; the implicit
    ``deplens.config.json`` in ``project_path`` is optional.

    Raises:
        DeplensError: If the config file cannot be read or has the wrong shape
    """
    if config_path:
        path = Path(config_path)
        if not path.is_file():
            raise DeplensError(f"Config file {path} does not exist")
    else:
        path = project_path / PROJECT_CONFIG_FILENAME
        if not path.is_file():
            return ProjectConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        get_error_handler().error(
            ErrorCategory.CONFIGURATION,
            f"Could not load project config: {e}",
            "cli_config",
            "load_project_config",
            exception=e,
            details={"config_path": str(path)},
        )
        raise DeplensError(f"Could not load config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise DeplensError(f"Config file {path} must contain a JSON object")

    for key in data:
        if key not in PROJECT_CONFIG_KEYS:
            get_error_handler().warning(
                ErrorCategory.CONFIGURATION,
                f"Unknown key in project config: {key}",
                "cli_config",
                "load_project_config",
                details={"config_path": str(path)},
                suggestions=[f"Recognized keys: {', '.join(PROJECT_CONFIG_KEYS)}"],
            )

    return ProjectConfig(
        ignore_dep=_string_list(data.get("ignoreDep"), "ignoreDep", path),
        ignore_path=_string_list(data.get("ignorePath"), "ignorePath", path),
        ignore_file=_string_list(data.get("ignoreFile"), "ignoreFile", path),
        source=path,
    )


def build_ignore_set(project_config: ProjectConfig, cli_ignore: Iterable[str]) -> Set[str]:
    """Union of the config file's ``ignoreDep`` and the command-line ignore list."""
    return set(project_config.ignore_dep) | {name for name in cli_ignore if name}


def create_sample_config() -> str:
    """Generate a sample project configuration."""
    sample_config = {
        "ignoreDep": [],
        "ignorePath": [],
        "ignoreFile": [],
    }
    return json.dumps(sample_config, indent=2)
