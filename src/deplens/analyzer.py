"""
Dependency usage analysis entry point.

Combines the lockfile-level resolution with source references and partitions
the result into the figures reported to the user.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from .dependency import UnusedEntry
from .dependency_resolver import DeclaredDependencyResolver
from .lockfiles import DependencyGraph
from .references import ImportReferenceExtractor, UsageLedger
from .source_normalizer import SyntaxTree


@dataclass(frozen=True)
class Summary:
    """Result of a dependency usage analysis."""

    total: int
    unused: List[UnusedEntry] = field(default_factory=list)
    unused_count: int = 0
    dev: List[UnusedEntry] = field(default_factory=list)

    @property
    def dynamic(self) -> List[UnusedEntry]:
        """Computed require()/import() calls that could not be attributed."""
        return [entry for entry in self.unused if entry.is_dynamic]

    @property
    def confirmed_unused(self) -> List[UnusedEntry]:
        return [entry for entry in self.unused if not entry.is_dynamic]

    @property
    def has_unused(self) -> bool:
        return self.unused_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDependencies": self.total,
            "unusedDependencies": [entry.to_dict() for entry in self.confirmed_unused],
            "unusedDependenciesCount": self.unused_count,
            "dynamicImports": [entry.source_call_text for entry in self.dynamic],
            "devDependencies": [entry.to_dict() for entry in self.dev],
        }


def summarize(records: Iterable[UnusedEntry], total: int) -> Summary:
    """
    Partition annotated records.

    Unused entries are those neither referenced by source nor declared for
    development; dynamic-unresolved calls stay in that list but are excluded
    from ``unused_count``.
    """
    records = list(records)
    unused = [record for record in records if not record.is_used and not record.is_dev]
    dev = [record for record in records if record.is_dev]
    dynamic_count = sum(1 for record in records if record.is_dynamic)
    return Summary(
        total=total,
        unused=unused,
        unused_count=len(unused) - dynamic_count,
        dev=dev,
    )


def resolve_dependency_usage(
    graph: DependencyGraph,
    syntax_trees: Iterable[SyntaxTree],
    ignore_names: Iterable[str] = (),
) -> Summary:
    """
    Decide which declared dependencies are unused.

    Args:
        graph: Normalized lockfile
        syntax_trees: One tree per scanned source file
        ignore_names: Dependency names excluded from the report

    Returns:
        Summary: Unused, dynamic and dev dependencies with their counts
    """
    candidates = DeclaredDependencyResolver(ignore_names).resolve(graph)
    ledger = ImportReferenceExtractor(UsageLedger(candidates)).extract_all(syntax_trees)
    return summarize(ledger.records(), graph.reference_count)
