from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

VERSION_JOINER = " & @"


class ReferenceKind(Enum):
    """How a dependency was referenced from source code."""

    STATIC_IMPORT = "import"
    REQUIRE = "require"
    DYNAMIC_IMPORT = "dynamic-import"
    DYNAMIC_UNRESOLVED = "dynamic"


@dataclass(frozen=True)
class DependencyRecord:
    """A root-declared dependency and what is known about its usage."""

    name: str
    declared_specifiers: Tuple[str, ...] = ()
    is_dev: bool = False
    usage_state: Optional[ReferenceKind] = None

    @property
    def is_referenced(self) -> bool:
        return self.usage_state is not None

    @property
    def is_used(self) -> bool:
        """Referenced by a statically resolvable import, require or import()."""
        return self.is_referenced and self.usage_state is not ReferenceKind.DYNAMIC_UNRESOLVED

    @property
    def is_dynamic(self) -> bool:
        return self.usage_state is ReferenceKind.DYNAMIC_UNRESOLVED


@dataclass(frozen=True)
class UnusedEntry(DependencyRecord):
    """
    A dependency that no other installed package requires.

    ``versions`` holds at most one item: observations colliding on the same
    name are joined into a single display string. Synthetic entries created
    for computed ``require()``/``import()`` calls carry the call text instead.
    """

    versions: Tuple[str, ...] = field(default_factory=tuple)
    source_call_text: Optional[str] = None

    @property
    def version(self) -> str:
        return VERSION_JOINER.join(self.versions)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "type": self.usage_state.value if self.usage_state else "",
            "usage": self.is_used,
            "isDev": self.is_dev,
        }
        if self.source_call_text is not None:
            data["args"] = self.source_call_text
        return data
