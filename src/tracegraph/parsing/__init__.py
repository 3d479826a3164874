"""Source parsing — declarations and imports from repository files."""

from __future__ import annotations

import logging
import posixpath

from tracegraph.parsing._base import (
    ClassDecl,
    Declaration,
    FunctionDecl,
    ImportDecl,
    ImportRef,
    OtherNode,
    ParsedSource,
    SourceParser,
    SyntaxEvent,
    extract_declarations,
    extract_imports,
    resolve_import,
    span_text,
)
from tracegraph.parsing.filters import is_analyzable

logger = logging.getLogger(__name__)


class ParserRegistry:
    """Maps file extensions to language-specific parsers."""

    _warned_unavailable = False

    def __init__(self) -> None:
        self._ext_map: dict[str, SourceParser] = {}
        self._register_builtins()

    def _register_builtins(self) -> None:
        """Auto-register built-in parsers."""
        # JS/TS, needs the tree-sitter grammars
        try:
            from tracegraph.parsing.javascript import JavaScriptParser

            self.register(JavaScriptParser())
        except Exception:
            if not ParserRegistry._warned_unavailable:
                logger.warning(
                    "tree-sitter grammars not available; JavaScript/TypeScript parsing disabled",
                    exc_info=True,
                )
                ParserRegistry._warned_unavailable = True

    def register(self, parser: SourceParser) -> None:
        """Register a parser for each of its extensions."""
        for ext in parser.extensions:
            self._ext_map[ext.lower()] = parser

    def get(self, path: str) -> SourceParser | None:
        """Look up a parser by file path extension (case-insensitive)."""
        ext = posixpath.splitext(path)[1].lower()
        return self._ext_map.get(ext)

    def supported_extensions(self) -> frozenset[str]:
        """Return all registered extensions."""
        return frozenset(self._ext_map.keys())

    def analyze(self, path: str, content: str) -> tuple[list[Declaration], list[ImportRef]] | None:
        """Parse *content* and return ``(declarations, imports)``.

        Returns ``None`` if no parser handles *path*; raises ``ParseError``
        only on a total parse abort.
        """
        parser = self.get(path)
        if parser is None:
            return None
        parsed = parser.parse(content, path)
        events = list(parser.events(parsed))
        return (
            extract_declarations(parser, parsed, events),
            extract_imports(parser, parsed, events),
        )

    def imports_of(self, path: str, content: str) -> list[ImportRef] | None:
        """Imports only; ``None`` if no parser handles *path*."""
        parser = self.get(path)
        if parser is None:
            return None
        return extract_imports(parser, parser.parse(content, path))


__all__ = [
    "ClassDecl",
    "Declaration",
    "FunctionDecl",
    "ImportDecl",
    "ImportRef",
    "OtherNode",
    "ParsedSource",
    "ParserRegistry",
    "SourceParser",
    "SyntaxEvent",
    "extract_declarations",
    "extract_imports",
    "is_analyzable",
    "resolve_import",
    "span_text",
]
