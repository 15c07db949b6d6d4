"""
Lockfile normalization for npm and pnpm projects.

Both ``package-lock.json`` and ``pnpm-lock.yaml`` are reduced to one
``DependencyGraph``: the root project's declarations plus a map of every other
installed package and the dependencies it declares. The dialect is resolved once
when the lockfile is loaded; it also owns the version comparison semantics used
when deciding whether another package requires a root declaration.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Set, Tuple

import yaml
from nodesemver import satisfies

from .error_handling import (
    ErrorCategory,
    ManifestParseError,
    MissingManifestError,
    get_error_handler,
    log_parsing_error,
)
from .structured_logging import log_lockfile_loaded

# Peer-resolution disambiguation such as ``18.2.0(react@18.2.0)``
PEER_SUFFIX_PATTERN = re.compile(r"\(.+?\)+")
RANGE_OPERATOR_PATTERN = re.compile(r"[\^*~=><]")
RANGE_ALTERNATIVE_SEPARATOR = " || "

LOCKFILE_PARSE_SUGGESTIONS = [
    "Check file format and encoding",
    "Regenerate the lockfile with your package manager",
]

DECLARATION_SECTIONS = (
    "dependencies",
    "peerDependencies",
    "optionalDependencies",
    "devDependencies",
)
TRANSITIVE_SECTIONS = ("dependencies", "peerDependencies", "optionalDependencies")


def strip_peer_suffix(value: str) -> str:
    """Remove parenthesized peer-resolution suffixes from a version string."""
    return PEER_SUFFIX_PATTERN.sub("", value)


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


@dataclass
class DependencyGraph:
    """Root declarations and transitive packages of a single lockfile."""

    dialect: "LockfileDialect"
    production: Dict[str, Any] = field(default_factory=dict)
    peer: Dict[str, Any] = field(default_factory=dict)
    optional: Dict[str, Any] = field(default_factory=dict)
    dev: Dict[str, Any] = field(default_factory=dict)
    transitive_packages: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    reference_count: int = 0
    manifest_path: Optional[Path] = None

    def root_declared(self) -> Dict[str, Any]:
        """Flatten every declaration section; later sections win on value only."""
        return {**self.production, **self.peer, **self.optional, **self.dev}

    def is_dev(self, name: str) -> bool:
        return name in self.dev


def iter_dependency_edges(
    transitive_packages: Mapping[str, Mapping[str, Any]],
) -> Iterator[Tuple[str, str]]:
    """Yield ``(dependency name, raw range)`` for every string-valued edge."""
    for key, package in transitive_packages.items():
        if key == "" or not isinstance(package, Mapping):
            continue
        for section in TRANSITIVE_SECTIONS:
            for dep_name, dep_range in _as_mapping(package.get(section)).items():
                if isinstance(dep_range, str):
                    yield dep_name, dep_range


def count_references(transitive_packages: Mapping[str, Mapping[str, Any]]) -> int:
    return sum(1 for _ in iter_dependency_edges(transitive_packages))


class LockfileDialect(ABC):
    """A package manager's lockfile layout and version comparison rules."""

    manifest_name: str = ""
    package_manager: str = ""
    alternate_hint: str = ""

    def manifest_path(self, project_path: Path) -> Path:
        return project_path / self.manifest_name

    @abstractmethod
    def extract_graph(self, document: Mapping[str, Any]) -> DependencyGraph:
        """Split a parsed lockfile into root declarations and transitive packages."""

    @abstractmethod
    def pure_version(self, specifier: Any) -> str:
        """The comparable version of a root declaration."""

    @abstractmethod
    def candidate_versions(self, recorded: Iterable[str]) -> Set[str]:
        """Expand usage-index entries into individually comparable values."""

    @abstractmethod
    def is_used(self, pure_version: str, candidates: Set[str]) -> bool:
        """Whether any candidate requirement covers ``pure_version``."""

    def display_version(self, specifier: Any) -> str:
        return strip_peer_suffix(self.pure_version(specifier))


class NpmLockfile(LockfileDialect):
    """``package-lock.json`` (lockfileVersion 2 and 3) with semver range matching."""

    manifest_name = "package-lock.json"
    package_manager = "npm"
    alternate_hint = (
        "If your project dependencies are managed by pnpm, "
        "please run deplens with the --pnpm or --pn option."
    )

    def extract_graph(self, document: Mapping[str, Any]) -> DependencyGraph:
        packages = document.get("packages")
        if not isinstance(packages, Mapping) or not isinstance(packages.get(""), Mapping):
            raise ValueError(
                "missing root entry packages[\"\"]; lockfiles written by npm 6 and "
                "earlier are not supported, regenerate it with npm 7 or newer"
            )

        root = packages[""]
        transitive = {
            key: dict(package)
            for key, package in packages.items()
            if key != "" and isinstance(package, Mapping)
        }
        return DependencyGraph(
            dialect=self,
            production=_as_mapping(root.get("dependencies")),
            peer=_as_mapping(root.get("peerDependencies")),
            optional=_as_mapping(root.get("optionalDependencies")),
            dev=_as_mapping(root.get("devDependencies")),
            transitive_packages=transitive,
            reference_count=count_references(transitive),
        )

    def pure_version(self, specifier: Any) -> str:
        return RANGE_OPERATOR_PATTERN.sub("", str(specifier))

    def candidate_versions(self, recorded: Iterable[str]) -> Set[str]:
        candidates = set()
        for entry in recorded:
            for alternative in entry.split(RANGE_ALTERNATIVE_SEPARATOR):
                if alternative != "":
                    candidates.add(alternative)
        return candidates

    def is_used(self, pure_version: str, candidates: Set[str]) -> bool:
        if pure_version in candidates:
            return True
        for candidate in candidates:
            if candidate == "*" or _satisfies(pure_version, candidate):
                return True
        return False


class PnpmLockfile(LockfileDialect):
    """
    ``pnpm-lock.yaml`` with exact resolved-version matching.

    Lockfile versions below 9 keep root declarations at the document top level
    and transitive packages under ``packages``; version 9 moved them to
    ``importers["."]`` and ``snapshots``.
    """

    manifest_name = "pnpm-lock.yaml"
    package_manager = "pnpm"
    alternate_hint = (
        "If your project dependencies are managed by npm, "
        "please run deplens without the --pnpm or --pn option."
    )
    IMPORTERS_SCHEMA_VERSION = 9.0

    def __init__(self, lockfile_version: float):
        self.lockfile_version = lockfile_version

    @property
    def uses_importers(self) -> bool:
        return self.lockfile_version >= self.IMPORTERS_SCHEMA_VERSION

    def _root_declarations(self, document: Mapping[str, Any]) -> Mapping[str, Any]:
        importer = _as_mapping(_as_mapping(document.get("importers")).get("."))
        if self.uses_importers:
            return importer
        if importer and not any(document.get(section) for section in DECLARATION_SECTIONS):
            return importer
        return document

    def extract_graph(self, document: Mapping[str, Any]) -> DependencyGraph:
        root = self._root_declarations(document)
        source_key = "snapshots" if self.uses_importers else "packages"
        transitive = {
            key: dict(package)
            for key, package in _as_mapping(document.get(source_key)).items()
            if key != "" and isinstance(package, Mapping)
        }
        return DependencyGraph(
            dialect=self,
            production=_as_mapping(root.get("dependencies")),
            peer=_as_mapping(root.get("peerDependencies")),
            optional=_as_mapping(root.get("optionalDependencies")),
            dev=_as_mapping(root.get("devDependencies")),
            transitive_packages=transitive,
            reference_count=count_references(transitive),
        )

    def pure_version(self, specifier: Any) -> str:
        if isinstance(specifier, Mapping):
            specifier = specifier.get("version", "")
        return strip_peer_suffix(str(specifier))

    def candidate_versions(self, recorded: Iterable[str]) -> Set[str]:
        return set(recorded)

    def is_used(self, pure_version: str, candidates: Set[str]) -> bool:
        return pure_version in candidates


def _satisfies(version: str, range_: str) -> bool:
    try:
        return bool(satisfies(version, range_))
    except (ValueError, TypeError):
        return False


def parse_lockfile_version(value: Any) -> float:
    """Parse pnpm's ``lockfileVersion`` which may be written as ``5.4``, ``6`` or ``'9.0'``."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid lockfileVersion: {value!r}")
    try:
        return float(str(value).strip())
    except ValueError:
        raise ValueError(f"invalid lockfileVersion: {value!r}")


def select_dialect(use_pnpm: bool, document: Optional[Mapping[str, Any]] = None) -> LockfileDialect:
    """Resolve the lockfile dialect once; pnpm needs the document for its schema version."""
    if not use_pnpm:
        return NpmLockfile()
    if document is None:
        return PnpmLockfile(PnpmLockfile.IMPORTERS_SCHEMA_VERSION)
    return PnpmLockfile(parse_lockfile_version(document.get("lockfileVersion")))


def _read_manifest(manifest_path: Path) -> str:
    try:
        return manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log_parsing_error(
            f"Could not read lockfile: {e}",
            "lockfiles",
            "_read_manifest",
            file_path=str(manifest_path),
            exception=e,
            suggestions=LOCKFILE_PARSE_SUGGESTIONS,
        )
        raise ManifestParseError(manifest_path, f"could not read file: {e}") from e


def _parse_document(content: str, manifest_path: Path, use_pnpm: bool) -> Mapping[str, Any]:
    try:
        document = yaml.safe_load(content) if use_pnpm else json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        kind = "YAML" if use_pnpm else "JSON"
        log_parsing_error(
            f"Invalid {kind} format in {manifest_path.name}: {e}",
            "lockfiles",
            "_parse_document",
            file_path=str(manifest_path),
            exception=e,
            suggestions=LOCKFILE_PARSE_SUGGESTIONS,
        )
        raise ManifestParseError(manifest_path, f"invalid {kind} format: {e}") from e

    if not isinstance(document, Mapping):
        get_error_handler().error(
            ErrorCategory.PARSING,
            f"{manifest_path.name} must contain a mapping at the top level",
            "lockfiles",
            "_parse_document",
            details={"file_path": manifest_path.name, "data_type": type(document).__name__},
            suggestions=LOCKFILE_PARSE_SUGGESTIONS,
        )
        raise ManifestParseError(manifest_path, "top level is not a mapping")
    return document


def load_lockfile(project_path: Path, use_pnpm: bool = False) -> DependencyGraph:
    """
    Locate, parse and normalize the project's lockfile.

    Args:
        project_path: Directory containing the lockfile
        use_pnpm: Read ``pnpm-lock.yaml`` instead of ``package-lock.json``

    Returns:
        DependencyGraph: Normalized root declarations and transitive packages

    Raises:
        MissingManifestError: If the lockfile does not exist
        ManifestParseError: If the lockfile is not a valid document for its dialect
    """
    default_dialect = select_dialect(use_pnpm)
    manifest_path = default_dialect.manifest_path(Path(project_path))
    if not manifest_path.is_file():
        get_error_handler().error(
            ErrorCategory.FILESYSTEM,
            f"Lockfile not found: {manifest_path}",
            "lockfiles",
            "load_lockfile",
            details={"package_manager": default_dialect.package_manager},
            suggestions=[default_dialect.alternate_hint],
        )
        raise MissingManifestError(manifest_path, default_dialect.alternate_hint)

    document = _parse_document(_read_manifest(manifest_path), manifest_path, use_pnpm)

    try:
        dialect = select_dialect(use_pnpm, document)
        graph = dialect.extract_graph(document)
    except ValueError as e:
        log_parsing_error(
            f"Unsupported {manifest_path.name} layout: {e}",
            "lockfiles",
            "load_lockfile",
            file_path=str(manifest_path),
            exception=e,
            suggestions=LOCKFILE_PARSE_SUGGESTIONS,
        )
        raise ManifestParseError(manifest_path, str(e)) from e

    graph.manifest_path = manifest_path
    log_lockfile_loaded(
        str(manifest_path),
        len(graph.root_declared()),
        len(graph.transitive_packages),
        graph.reference_count,
    )
    return graph
