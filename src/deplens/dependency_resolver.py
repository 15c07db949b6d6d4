"""
Declared dependency resolution.

Decides, for every dependency the root project declares, whether some other
installed package already requires it. The ones nobody requires are returned
as ``UnusedEntry`` records; source references are applied to them afterwards.
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .dependency import VERSION_JOINER, UnusedEntry
from .lockfiles import DependencyGraph
from .structured_logging import get_analysis_logger
from .usage_index import UsageIndex, build_graph_usage_index


def _raw_specifier(specifier: Any) -> str:
    if isinstance(specifier, Mapping):
        return str(specifier.get("specifier", specifier.get("version", "")))
    return str(specifier)


def merge_unused_entry(
    previous: Optional[UnusedEntry],
    name: str,
    version: str,
    is_dev: bool,
    specifier: str = "",
) -> UnusedEntry:
    """
    Fold a new unused observation of ``name`` into the entry already recorded.

    Versions accumulate only while the previous entry is still unused; the
    result always carries a single display version, joined with `` & @``.
    """
    if previous is not None and previous.versions and not previous.is_used:
        versions = previous.versions + (version,)
        specifiers = previous.declared_specifiers + (specifier,)
    else:
        versions = (version,)
        specifiers = (specifier,)

    if len(versions) != 1:
        versions = (VERSION_JOINER.join(versions),)

    return UnusedEntry(
        name=name,
        declared_specifiers=specifiers,
        is_dev=previous.is_dev if previous is not None else is_dev,
        versions=versions,
    )


class DeclaredDependencyResolver:
    """Finds root declarations that no other installed package requires."""

    def __init__(self, ignore_names: Iterable[str] = ()):
        """
        Args:
            ignore_names: Dependency names excluded from the result entirely
        """
        self.ignore_names: FrozenSet[str] = frozenset(ignore_names)
        self.logger = get_analysis_logger()

    def resolve(
        self, graph: DependencyGraph, usage_index: Optional[UsageIndex] = None
    ) -> List[UnusedEntry]:
        """
        Resolve a dependency graph into its unused root declarations.

        Args:
            graph: Normalized lockfile
            usage_index: Prebuilt index; built from ``graph`` when omitted

        Returns:
            List[UnusedEntry]: Unused declarations ordered by name
        """
        dialect = graph.dialect
        if usage_index is None:
            usage_index = build_graph_usage_index(graph)

        entries: Dict[str, UnusedEntry] = {}
        for name, specifier in graph.root_declared().items():
            if name in self.ignore_names:
                self.logger.debug("dependency_ignored", package_name=name)
                continue

            pure_version = dialect.pure_version(specifier)
            candidates = dialect.candidate_versions(usage_index.get(name, ()))
            if dialect.is_used(pure_version, candidates):
                continue

            entries[name] = merge_unused_entry(
                entries.get(name),
                name,
                dialect.display_version(specifier),
                graph.is_dev(name),
                _raw_specifier(specifier),
            )

        return sorted(entries.values(), key=lambda entry: entry.name)


def resolve_declared_dependencies(
    graph: DependencyGraph, ignore_names: Iterable[str] = ()
) -> List[UnusedEntry]:
    """Convenience wrapper around ``DeclaredDependencyResolver``."""
    return DeclaredDependencyResolver(ignore_names).resolve(graph)
