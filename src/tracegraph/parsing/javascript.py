"""JavaScript / TypeScript parsing — tree-sitter-based, error-recovering."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import tree_sitter
from tree_sitter_javascript import language as _js_language
from tree_sitter_typescript import language_tsx as _tsx_language
from tree_sitter_typescript import language_typescript as _ts_language

from tracegraph.exceptions import ParseError
from tracegraph.parsing._base import (
    ClassDecl,
    FunctionDecl,
    ImportDecl,
    OtherNode,
    ParsedSource,
    SyntaxEvent,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_FUNCTION_TYPES = frozenset({"function_declaration", "generator_function_declaration"})
_CLASS_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})
_FUNCTION_VALUE_TYPES = frozenset({"arrow_function", "function_expression", "function"})
_TOP_LEVEL_PARENTS = frozenset({"program", "export_statement"})


class JavaScriptParser:
    """Parses JavaScript and TypeScript (including JSX/TSX) with tree-sitter.

    TypeScript and JavaScript share the same tree-sitter node names for the
    declarations and imports extracted here, so one visitor serves both.
    """

    def __init__(self) -> None:
        self._languages: dict[str, tree_sitter.Language] = {
            "javascript": tree_sitter.Language(_js_language()),
            "typescript": tree_sitter.Language(_ts_language()),
            "tsx": tree_sitter.Language(_tsx_language()),
        }

    @property
    def extensions(self) -> frozenset[str]:
        return frozenset({".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx"})

    def _language_for(self, path: str) -> tree_sitter.Language:
        lowered = path.lower()
        if lowered.endswith(".tsx"):
            return self._languages["tsx"]
        if lowered.endswith(".ts"):
            return self._languages["typescript"]
        # JSX parses with the JavaScript grammar
        return self._languages["javascript"]

    def parse(self, source: str, path: str = "") -> ParsedSource:
        data = source.encode("utf-8")
        parser = tree_sitter.Parser(self._language_for(path))
        try:
            tree = parser.parse(data)
        except Exception as e:
            msg = f"Parser aborted on {path or '<source>'}: {e}"
            raise ParseError(msg) from e
        if tree is None or tree.root_node is None:
            msg = f"Parser produced no tree for {path or '<source>'}"
            raise ParseError(msg)

        error_count = _count_errors(tree.root_node) if tree.root_node.has_error else 0
        if error_count:
            logger.debug("Recovered from %d syntax error(s) in %s", error_count, path)
        return ParsedSource(path=path, source=data, tree=tree, error_count=error_count)

    def events(self, parsed: ParsedSource) -> Iterator[SyntaxEvent]:
        """Single pre-order pass over the tree, yielding syntax events."""
        stack: list[tree_sitter.Node] = [parsed.tree.root_node]
        while stack:
            node = stack.pop()
            event = _classify(node)
            if event is not None:
                yield event
            # Reversed so children are visited in source order
            stack.extend(reversed(node.children))


# ---------------------------------------------------------------------------
# Node classification
# ---------------------------------------------------------------------------


def _classify(node: tree_sitter.Node) -> SyntaxEvent | None:
    kind = node.type
    if kind in _FUNCTION_TYPES:
        return FunctionDecl(_node_name(node), *_bounds(node))
    if kind in _CLASS_TYPES:
        return ClassDecl(_node_name(node), *_bounds(node))
    if kind == "import_statement" or kind == "export_statement":
        # ``export ... from './x'`` re-exports carry a source field too
        specifier = _string_value(node.child_by_field_name("source"))
        return ImportDecl(specifier) if specifier else None
    if kind == "call_expression":
        return _require_call(node)
    if kind == "variable_declarator":
        return _function_binding(node)
    if kind == "ERROR" or node.is_missing:
        return OtherNode(node_type=kind, line_start=node.start_point.row + 1)
    return None


def _function_binding(node: tree_sitter.Node) -> FunctionDecl | None:
    """``const name = () => ...`` at module level, spanning the whole declaration."""
    value = node.child_by_field_name("value")
    if value is None or value.type not in _FUNCTION_VALUE_TYPES:
        return None
    declaration = node.parent
    if declaration is None or declaration.type not in ("lexical_declaration", "variable_declaration"):
        return None
    if declaration.parent is None or declaration.parent.type not in _TOP_LEVEL_PARENTS:
        return None
    return FunctionDecl(_node_name(node), *_bounds(declaration))


def _require_call(node: tree_sitter.Node) -> ImportDecl | None:
    function = node.child_by_field_name("function")
    if function is None or function.type != "identifier" or function.text != b"require":
        return None
    arguments = node.child_by_field_name("arguments")
    if arguments is None or not arguments.named_children:
        return None
    specifier = _string_value(arguments.named_children[0])
    return ImportDecl(specifier) if specifier else None


def _node_name(node: tree_sitter.Node) -> str | None:
    """Extract the name from a declaration node via the 'name' field."""
    name_node = node.child_by_field_name("name")
    if name_node is not None and name_node.text is not None:
        return name_node.text.decode("utf-8", errors="replace")
    return None


def _string_value(node: tree_sitter.Node | None) -> str | None:
    if node is None or node.type != "string" or node.text is None:
        return None
    return node.text.decode("utf-8", errors="replace").strip("'\"`") or None


def _bounds(node: tree_sitter.Node) -> tuple[int, int, int, int]:
    return (
        node.start_byte,
        node.end_byte,
        node.start_point.row + 1,
        node.end_point.row + 1,
    )


def _count_errors(root: tree_sitter.Node) -> int:
    count = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            count += 1
        if node.has_error:
            stack.extend(node.children)
    return count
