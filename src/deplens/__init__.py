"""Deplens: find declared npm and pnpm dependencies that a project never uses."""

__version__ = "1.0.3"

from .analyzer import Summary, resolve_dependency_usage, summarize
from .dependency import DependencyRecord, ReferenceKind, UnusedEntry
from .dependency_resolver import DeclaredDependencyResolver
from .error_handling import (
    DeplensError,
    ManifestParseError,
    MissingManifestError,
    SourceReadError,
    SyntaxTreeError,
)
from .lockfiles import DependencyGraph, NpmLockfile, PnpmLockfile, load_lockfile
from .references import ImportReferenceExtractor, UsageLedger
from .source_normalizer import SyntaxTree, normalize_source

__all__ = [
    "DeclaredDependencyResolver",
    "DependencyGraph",
    "DependencyRecord",
    "DeplensError",
    "ImportReferenceExtractor",
    "ManifestParseError",
    "MissingManifestError",
    "NpmLockfile",
    "PnpmLockfile",
    "ReferenceKind",
    "SourceReadError",
    "Summary",
    "SyntaxTree",
    "SyntaxTreeError",
    "UnusedEntry",
    "UsageLedger",
    "load_lockfile",
    "normalize_source",
    "resolve_dependency_usage",
    "summarize",
]
