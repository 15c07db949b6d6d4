"""Index of which packages are required by something other than the root project."""

from typing import Any, Dict, Mapping, Set

from .lockfiles import DependencyGraph, iter_dependency_edges, strip_peer_suffix

UsageIndex = Dict[str, Set[str]]


def build_usage_index(transitive_packages: Mapping[str, Mapping[str, Any]]) -> UsageIndex:
    """
    Map every dependency name to the set of ranges other packages require it at.

    Non-string ranges are skipped and peer-resolution suffixes are removed, so
    ``18.2.0(react@18.2.0)`` is recorded as ``18.2.0``.
    """
    index: UsageIndex = {}
    for dep_name, dep_range in iter_dependency_edges(transitive_packages):
        index.setdefault(dep_name, set()).add(strip_peer_suffix(dep_range))
    return index


def build_graph_usage_index(graph: DependencyGraph) -> UsageIndex:
    return build_usage_index(graph.transitive_packages)
