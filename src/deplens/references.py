"""
Source-level reference extraction.

Walks ESTree syntax trees for static ``import`` declarations, ``require()``
calls and dynamic ``import()`` expressions, and records which declared
dependencies they reference. All updates go through ``UsageLedger`` whose
only state transition is "unreferenced -> referenced".
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .dependency import ReferenceKind, UnusedEntry
from .source_normalizer import SyntaxTree

STRING_LITERAL_TYPES = ("Literal", "StringLiteral")


class UsageLedger:
    """Declared dependencies keyed by name, plus unresolvable dynamic calls."""

    def __init__(self, entries: Iterable[UnusedEntry] = ()):
        self._entries: Dict[str, UnusedEntry] = {}
        for entry in entries:
            self._entries[entry.name] = entry
        self._unresolved: Dict[str, UnusedEntry] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries) + len(self._unresolved)

    def get(self, name: str) -> Optional[UnusedEntry]:
        return self._entries.get(name)

    def mark_referenced(self, name: str, kind: ReferenceKind) -> bool:
        """
        Mark ``name`` as referenced.

        Returns True when ``name`` is a tracked dependency. The first recorded
        kind is kept; a referenced entry is never reverted.
        """
        entry = self._entries.get(name)
        if entry is None:
            return False
        if not entry.is_referenced:
            self._entries[name] = replace(entry, usage_state=kind)
        return True

    def record_unresolved(self, call_text: str) -> UnusedEntry:
        """Record a require()/import() whose specifier is computed at runtime."""
        entry = self._unresolved.get(call_text)
        if entry is None:
            entry = UnusedEntry(
                name=call_text,
                usage_state=ReferenceKind.DYNAMIC_UNRESOLVED,
                source_call_text=call_text,
            )
            self._unresolved[call_text] = entry
        return entry

    def records(self) -> List[UnusedEntry]:
        return list(self._entries.values()) + list(self._unresolved.values())


def iter_nodes(root: Any) -> Iterator[Dict[str, Any]]:
    """Pre-order walk over every ESTree node below ``root``."""
    stack = [root]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            if "type" in current:
                yield current
            children = [value for key, value in current.items() if key not in ("range", "loc")]
        elif isinstance(current, list):
            children = current
        else:
            continue
        stack.extend(reversed([child for child in children if isinstance(child, (dict, list))]))


def string_literal_value(node: Any) -> Optional[str]:
    if isinstance(node, dict) and node.get("type") in STRING_LITERAL_TYPES:
        value = node.get("value")
        if isinstance(value, str):
            return value
    return None


def render_expression(node: Any) -> str:
    """Best-effort source rendering of an expression without range information."""
    if not isinstance(node, dict):
        return ""
    node_type = node.get("type")
    if node_type == "Identifier":
        return node.get("name", "")
    if node_type in STRING_LITERAL_TYPES:
        raw = node.get("raw")
        return raw if isinstance(raw, str) else repr(node.get("value"))
    if node_type == "Import":
        return "import"
    if node_type == "TemplateLiteral":
        quasis = [quasi.get("value", {}).get("raw", "") for quasi in node.get("quasis", [])]
        expressions = [render_expression(expr) for expr in node.get("expressions", [])]
        parts = []
        for index, quasi in enumerate(quasis):
            parts.append(quasi)
            if index < len(expressions):
                parts.append("${" + expressions[index] + "}")
        return "`" + "".join(parts) + "`"
    if node_type == "MemberExpression":
        obj = render_expression(node.get("object"))
        prop = render_expression(node.get("property"))
        return f"{obj}[{prop}]" if node.get("computed") else f"{obj}.{prop}"
    if node_type == "BinaryExpression":
        return f"{render_expression(node.get('left'))} {node.get('operator')} {render_expression(node.get('right'))}"
    if node_type == "CallExpression":
        args = ", ".join(render_expression(arg) for arg in node.get("arguments", []))
        return f"{render_expression(node.get('callee'))}({args})"
    if node_type == "ImportExpression":
        return f"import({render_expression(node.get('source'))})"
    return f"<{node_type}>"


class ImportReferenceExtractor:
    """Applies the references found in syntax trees to a ``UsageLedger``."""

    def __init__(self, ledger: UsageLedger):
        self.ledger = ledger

    def extract(self, tree: SyntaxTree) -> None:
        for node in iter_nodes(tree.program):
            node_type = node.get("type")
            if node_type == "ImportDeclaration":
                specifier = string_literal_value(node.get("source"))
                if specifier is not None:
                    self.reference(specifier, ReferenceKind.STATIC_IMPORT)
            elif node_type == "CallExpression":
                self._visit_call(node, tree)
            elif node_type == "ImportExpression":
                self._visit_dynamic(node, node.get("source"), ReferenceKind.DYNAMIC_IMPORT, tree)

    def extract_all(self, trees: Iterable[SyntaxTree]) -> UsageLedger:
        for tree in trees:
            self.extract(tree)
        return self.ledger

    def _visit_call(self, node: Dict[str, Any], tree: SyntaxTree) -> None:
        callee = node.get("callee") or {}
        arguments = node.get("arguments") or []
        if callee.get("type") == "Identifier" and callee.get("name") == "require":
            kind = ReferenceKind.REQUIRE
        elif callee.get("type") == "Import":
            kind = ReferenceKind.DYNAMIC_IMPORT
        else:
            return
        if len(arguments) != 1:
            return
        self._visit_dynamic(node, arguments[0], kind, tree)

    def _visit_dynamic(
        self, node: Dict[str, Any], argument: Any, kind: ReferenceKind, tree: SyntaxTree
    ) -> None:
        specifier = string_literal_value(argument)
        if specifier is not None:
            self.reference(specifier, kind)
        elif argument is not None:
            self.ledger.record_unresolved(tree.slice(node) or render_expression(node))

    def reference(self, specifier: str, kind: ReferenceKind) -> bool:
        """
        Mark the dependency a module specifier points at.

        Relative specifiers are skipped. When the specifier is not itself a
        declared name, trailing path segments are dropped one at a time so
        ``@scope/pkg/sub/path`` resolves to ``@scope/pkg``.
        """
        if specifier.startswith("."):
            return False
        if self.ledger.mark_referenced(specifier, kind):
            return True
        target = specifier
        while "/" in target:
            target = target[: target.rfind("/")]
            if self.ledger.mark_referenced(target, kind):
                return True
        return False
