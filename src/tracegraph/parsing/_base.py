"""Parser protocol, syntax event union, and shared helpers."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

type DeclarationKind = Literal["function", "class"]


@dataclass(frozen=True, slots=True)
class Declaration:
    """A named function or class extracted from a source file."""

    kind: DeclarationKind
    name: str
    span_text: str
    line_start: int
    line_end: int


@dataclass(frozen=True, slots=True)
class ImportRef:
    """An import specifier and, for relative specifiers, its repository path.

    ``resolved_path`` is ``None`` for bare module specifiers (``"react"``) and
    for relative specifiers that climb above the repository root.
    """

    specifier: str
    resolved_path: str | None

    @property
    def is_relative(self) -> bool:
        return self.specifier.startswith(".")


@dataclass(frozen=True, slots=True)
class ParsedSource:
    """A best-effort syntax tree for one file.

    ``tree`` is the backend's tree object; ``error_count`` is the number of
    regions the parser had to recover from.
    """

    path: str
    source: bytes
    tree: Any
    error_count: int = 0

    @property
    def text(self) -> str:
        return self.source.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Syntax events: the closed set of node kinds a visitor reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FunctionDecl:
    name: str | None
    start_byte: int
    end_byte: int
    line_start: int
    line_end: int


@dataclass(frozen=True, slots=True)
class ClassDecl:
    name: str | None
    start_byte: int
    end_byte: int
    line_start: int
    line_end: int


@dataclass(frozen=True, slots=True)
class ImportDecl:
    specifier: str


@dataclass(frozen=True, slots=True)
class OtherNode:
    """Anything else worth reporting (currently: parser error regions)."""

    node_type: str
    line_start: int


type SyntaxEvent = FunctionDecl | ClassDecl | ImportDecl | OtherNode


@runtime_checkable
class SourceParser(Protocol):
    """Protocol for language-specific parsers.

    ``parse`` raises ``ParseError`` only when no tree at all can be built;
    malformed regions are recovered from.  Extraction never raises.
    """

    @property
    def extensions(self) -> frozenset[str]:
        """File extensions this parser handles (e.g. ``{".ts"}``)."""
        ...

    def parse(self, source: str, path: str = "") -> ParsedSource: ...

    def events(self, parsed: ParsedSource) -> Iterable[SyntaxEvent]: ...


def extract_declarations(
    parser: SourceParser,
    parsed: ParsedSource,
    events: Iterable[SyntaxEvent] | None = None,
) -> list[Declaration]:
    """Named functions and classes, in source order.  Unnamed ones are skipped.

    Pass *events* to reuse an already collected walk of the tree.
    """
    result: list[Declaration] = []
    for event in parser.events(parsed) if events is None else events:
        if isinstance(event, FunctionDecl):
            kind: DeclarationKind = "function"
        elif isinstance(event, ClassDecl):
            kind = "class"
        elif isinstance(event, (ImportDecl, OtherNode)):
            continue
        else:  # pragma: no cover - closed union
            msg = f"Unexpected syntax event: {event!r}"
            raise TypeError(msg)
        if not event.name:
            continue
        result.append(
            Declaration(
                kind=kind,
                name=event.name,
                span_text=span_text(parsed.source, event.start_byte, event.end_byte),
                line_start=event.line_start,
                line_end=event.line_end,
            )
        )
    return result


def extract_imports(
    parser: SourceParser,
    parsed: ParsedSource,
    events: Iterable[SyntaxEvent] | None = None,
) -> list[ImportRef]:
    """Unique import specifiers in source order, resolved against *parsed.path*."""
    seen: set[str] = set()
    result: list[ImportRef] = []
    for event in parser.events(parsed) if events is None else events:
        if not isinstance(event, ImportDecl):
            continue
        if not event.specifier or event.specifier in seen:
            continue
        seen.add(event.specifier)
        result.append(
            ImportRef(
                specifier=event.specifier,
                resolved_path=resolve_import(parsed.path, event.specifier),
            )
        )
    return result


def span_text(source: bytes, start_byte: int, end_byte: int) -> str:
    """Decode the exact byte span ``[start_byte, end_byte)`` of *source*."""
    start = max(start_byte, 0)
    end = min(end_byte, len(source))
    return source[start:end].decode("utf-8", errors="replace")


def resolve_import(importing_path: str, specifier: str) -> str | None:
    """Resolve a relative *specifier* against the importing file's directory.

    Path joining only — no extension probing or package resolution.

    >>> resolve_import("src/app/main.ts", "../lib/util")
    'src/lib/util'
    >>> resolve_import("src/main.ts", "react") is None
    True
    """
    if not specifier.startswith("."):
        return None
    base = posixpath.dirname(importing_path)
    resolved = posixpath.normpath(posixpath.join(base, specifier))
    if resolved == ".." or resolved.startswith("../") or resolved.startswith("/"):
        return None
    return resolved
