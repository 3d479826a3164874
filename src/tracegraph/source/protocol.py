"""Source access protocol — what the walker, analyzer and assembler consume."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

type EntryKind = Literal["file", "dir"]


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    """``owner/name`` identity of a hosted repository, optionally pinned to a ref."""

    owner: str
    name: str
    ref: str | None = None

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str, ref: str | None = None) -> RepositoryRef:
        """Parse ``"owner/name"``.  Raises ``ValueError`` on anything else."""
        owner, sep, name = full_name.strip().strip("/").partition("/")
        if not sep or not owner or not name or "/" in name:
            msg = f"Expected 'owner/name', got {full_name!r}"
            raise ValueError(msg)
        return cls(owner=owner, name=name, ref=ref)


@dataclass(frozen=True, slots=True)
class DirEntry:
    """One child of a directory listing."""

    path: str
    kind: EntryKind


@runtime_checkable
class SourceClient(Protocol):
    """Read access to a remote repository.

    ``get_content`` returns file text for a file path and a list of
    ``DirEntry`` for a directory path (``""`` is the root).  Raises
    ``RateLimitError`` when throttled, ``PathNotFoundError`` for missing
    paths and ``SourceAccessError`` for anything else.
    """

    async def get_content(self, repo: RepositoryRef, path: str) -> str | list[DirEntry]: ...

    async def aclose(self) -> None: ...
