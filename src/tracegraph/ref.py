"""SymbolRef — the ``"<path>#<name>"`` identity of a declaration node."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

SEPARATOR = "#"


@dataclass(frozen=True, slots=True)
class SymbolRef:
    """Immutable reference to a file, or to a named symbol inside a file.

    Attributes:
        file_path: Repository-relative path of the containing file.
        symbol: Declared name, or ``None`` for the file itself.

    ``str(ref)`` renders the storage key: ``"src/a.ts"`` for a file,
    ``"src/a.ts#Widget"`` for a symbol.
    """

    file_path: str
    symbol: str | None = None

    def __str__(self) -> str:
        if self.symbol is None:
            return self.file_path
        return f"{self.file_path}{SEPARATOR}{self.symbol}"

    @property
    def is_file(self) -> bool:
        return self.symbol is None

    @property
    def name(self) -> str:
        """Declared name for symbols, basename for files."""
        if self.symbol is not None:
            return self.symbol
        return posixpath.basename(self.file_path) or self.file_path

    def child(self, symbol: str) -> SymbolRef:
        """Return the ref for *symbol* declared in this file."""
        return SymbolRef(file_path=self.file_path, symbol=symbol)

    @classmethod
    def parse(cls, key: str) -> SymbolRef:
        """Parse a storage key back into a ref.

        >>> SymbolRef.parse("src/a.ts#Widget")
        SymbolRef(file_path='src/a.ts', symbol='Widget')
        >>> SymbolRef.parse("src/a.ts")
        SymbolRef(file_path='src/a.ts', symbol=None)
        """
        file_path, sep, symbol = key.partition(SEPARATOR)
        if not sep or not symbol:
            return cls(file_path=file_path)
        return cls(file_path=file_path, symbol=symbol)


def file_ref(path: str) -> SymbolRef:
    """Create a SymbolRef for a whole file, normalizing the path."""
    return SymbolRef(file_path=normalize_repo_path(path))


def normalize_repo_path(path: str) -> str:
    """Normalize a repository-relative path.

    - Strips leading ``/`` and ``./``
    - Resolves ``.`` and ``..`` references
    - Removes double slashes

    >>> normalize_repo_path("/src//lib/../a.ts")
    'src/a.ts'
    """
    if not path:
        return ""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized
