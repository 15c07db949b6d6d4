"""
Source normalization into ESTree-shaped syntax trees.

Each scanned file is parsed with the tree-sitter TypeScript grammars, which
accept current ECMAScript, TypeScript and JSX. The concrete tree is converted
into plain ESTree-style dictionaries so the reference extractor never depends
on the parser's node classes. Only the node kinds the extractor inspects get
ESTree names (``ImportDeclaration``, ``CallExpression``, ``Literal``,
``TemplateLiteral``, ``Identifier``); every other node keeps its grammar type
and lists its named children under ``children``.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Sequence, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from .error_handling import SyntaxTreeError, log_parsing_error

TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
TSX = Language(tree_sitter_typescript.language_tsx())

# Angle-bracket type assertions only exist outside JSX
TYPESCRIPT_SUFFIXES = {".ts", ".mts", ".cts"}

SOURCE_PARSE_SUGGESTIONS = [
    "Check the file for syntax errors",
    "Exclude the file with --ignore-file",
]

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


@dataclass(frozen=True)
class SyntaxTree:
    """An ESTree ``Program`` together with the source it was parsed from."""

    path: str
    source: str
    program: Dict[str, Any]

    def slice(self, node: Dict[str, Any]) -> str:
        """Source text covered by ``node``; empty when ranges are unavailable."""
        node_range = node.get("range")
        if (
            isinstance(node_range, (list, tuple))
            and len(node_range) == 2
            and all(isinstance(offset, int) for offset in node_range)
        ):
            start, end = node_range
            return self.source[start:end]
        return ""


def language_for(path: str) -> Language:
    if PurePosixPath(path).suffix.lower() in TYPESCRIPT_SUFFIXES:
        return TYPESCRIPT
    return TSX


def decode_escape(sequence: str) -> str:
    """Value of a JavaScript escape sequence such as ``\\n`` or ``\\u{1F600}``."""
    body = sequence[1:]
    if not body or body[0] in "\r\n\u2028\u2029":
        return ""
    if body[0] in _SIMPLE_ESCAPES and (body[0] != "0" or len(body) == 1):
        return _SIMPLE_ESCAPES[body[0]]
    if body[0] == "x" and len(body) == 3:
        return chr(int(body[1:], 16))
    if body[0] == "u":
        digits = body[2:-1] if body.startswith("u{") else body[1:]
        try:
            return chr(int(digits, 16))
        except ValueError:
            return body
    if body.isdigit():
        return chr(int(body, 8))
    return body


class _EstreeBuilder:
    """Converts a tree-sitter tree into ESTree-shaped dictionaries."""

    def __init__(self, source: str, encoded: bytes):
        self.encoded = encoded
        self._char_offsets: Optional[List[int]] = None
        if len(encoded) != len(source):
            offsets = []
            for index, char in enumerate(source):
                offsets.extend([index] * len(char.encode("utf-8")))
            offsets.append(len(source))
            self._char_offsets = offsets

    def offset(self, byte_offset: int) -> int:
        if self._char_offsets is None:
            return byte_offset
        return self._char_offsets[byte_offset]

    def text(self, node: Node) -> str:
        return self.encoded[node.start_byte : node.end_byte].decode("utf-8")

    def span(self, node: Node) -> List[int]:
        return [self.offset(node.start_byte), self.offset(node.end_byte)]

    def build(self, root: Node) -> Dict[str, Any]:
        # Nodes waiting to be converted, each with the list it is appended to
        pending: List[Tuple[Node, List[Any]]] = []
        program = self.convert(root, pending)
        while pending:
            node, target = pending.pop()
            target.append(self.convert(node, pending))
        return program

    def schedule(self, nodes: Sequence[Node], target: List[Any], pending: List[Tuple[Node, List[Any]]]) -> None:
        for node in reversed(nodes):
            pending.append((node, target))

    def convert(self, node: Node, pending: List[Tuple[Node, List[Any]]]) -> Dict[str, Any]:
        if node.type == "program":
            converted = {"type": "Program", "sourceType": "module", "range": self.span(node), "body": []}
            self.schedule(node.named_children, converted["body"], pending)
            return converted
        if node.type == "import_statement":
            return self.import_statement(node, pending)
        if node.type == "call_expression":
            return self.call_expression(node, pending)
        if node.type == "string":
            return self.literal(node)
        if node.type == "template_string":
            return self.template_literal(node, pending)
        if node.type == "identifier":
            return {"type": "Identifier", "name": self.text(node), "range": self.span(node)}
        return self.generic(node, pending)

    def generic(self, node: Node, pending: List[Tuple[Node, List[Any]]]) -> Dict[str, Any]:
        converted = {"type": node.type, "range": self.span(node), "children": []}
        self.schedule(node.named_children, converted["children"], pending)
        return converted

    def import_statement(self, node: Node, pending: List[Tuple[Node, List[Any]]]) -> Dict[str, Any]:
        source = node.child_by_field_name("source")
        if source is not None:
            return {
                "type": "ImportDeclaration",
                "range": self.span(node),
                "importKind": "type" if any(child.type == "type" for child in node.children) else "value",
                "source": self.literal(source),
            }

        # import name = require('pkg')
        for child in node.named_children:
            if child.type != "import_require_clause":
                continue
            source = child.child_by_field_name("source") or next(
                (part for part in child.named_children if part.type == "string"), None
            )
            if source is None:
                break
            call = {
                "type": "CallExpression",
                "range": self.span(child),
                "callee": {"type": "Identifier", "name": "require"},
                "arguments": [self.literal(source)],
            }
            return {"type": node.type, "range": self.span(node), "children": [call]}
        return self.generic(node, pending)

    def call_expression(self, node: Node, pending: List[Tuple[Node, List[Any]]]) -> Dict[str, Any]:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or arguments is None or arguments.type != "arguments":
            return self.generic(node, pending)

        if function.type == "import":
            callee = {"type": "Import", "range": self.span(function)}
        else:
            callee = self.convert(function, pending)
        converted = {"type": "CallExpression", "range": self.span(node), "callee": callee, "arguments": []}
        self.schedule(
            [child for child in arguments.named_children if child.type != "comment"],
            converted["arguments"],
            pending,
        )
        return converted

    def literal(self, node: Node) -> Dict[str, Any]:
        value = []
        for child in node.named_children:
            if child.type == "escape_sequence":
                value.append(decode_escape(self.text(child)))
            else:
                value.append(self.text(child))
        return {"type": "Literal", "value": "".join(value), "raw": self.text(node), "range": self.span(node)}

    def template_literal(self, node: Node, pending: List[Tuple[Node, List[Any]]]) -> Dict[str, Any]:
        quasis = []
        expressions: List[Any] = []
        current = []
        for child in node.named_children:
            if child.type == "template_substitution":
                quasis.append({"type": "TemplateElement", "value": {"raw": "".join(current)}})
                current = []
                self.schedule(child.named_children, expressions, pending)
            else:
                current.append(self.text(child))
        quasis.append({"type": "TemplateElement", "value": {"raw": "".join(current)}})
        return {"type": "TemplateLiteral", "range": self.span(node), "quasis": quasis, "expressions": expressions}


def first_syntax_error(root: Node, encoded: bytes) -> str:
    """Describe the first ERROR or missing node below ``root``."""
    stack = [root]
    while stack:
        node = stack.pop()
        line = node.start_point[0] + 1
        if node.is_missing:
            return f"Line {line}: missing {node.type}"
        if node.type == "ERROR":
            text = encoded[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
            text = text.strip().splitlines()[0] if text.strip() else text
            return f"Line {line}: unexpected {text[:40]!r}"
        if node.has_error:
            stack.extend(reversed(node.children))
    return "invalid syntax"


def normalize_source(index: int, path: str, content: str) -> SyntaxTree:
    """
    Parse one source file.

    Raises:
        SyntaxTreeError: If the content is not a parseable module
    """
    encoded = content.encode("utf-8")
    root = Parser(language_for(path)).parse(encoded).root_node

    if root.has_error:
        reason = first_syntax_error(root, encoded)
        log_parsing_error(
            f"Failed to parse source file: {reason}",
            "source_normalizer",
            "normalize_source",
            file_path=path,
            suggestions=SOURCE_PARSE_SUGGESTIONS,
        )
        raise SyntaxTreeError(index, path, reason, content)

    return SyntaxTree(path=path, source=content, program=_EstreeBuilder(content, encoded).build(root))


def normalize_sources(sources: Sequence[Tuple[str, str]]) -> List[SyntaxTree]:
    """
    Parse every ``(path, content)`` pair in order.

    A single failure aborts the whole batch, since analysing the remaining
    files alone would under-report usage.
    """
    return [normalize_source(index, path, content) for index, (path, content) in enumerate(sources)]
