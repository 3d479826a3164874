"""CodeNode model — one row per file, function or class."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from tracegraph.ref import SymbolRef


class NodeType(Enum):
    """Kinds of structural fact stored as nodes."""

    FILE = "file"
    FUNCTION = "function"
    CLASS = "class"


class CodeNode(SQLModel, table=True):
    """A structural fact about the repository.

    ``path`` is the repository-relative path for files and the
    ``"<filePath>#<name>"`` key (see :class:`~tracegraph.ref.SymbolRef`) for
    declarations.  ``(path, type, name)`` is unique.
    """

    __tablename__ = "code_nodes"
    __table_args__ = (UniqueConstraint("path", "type", "name", name="uq_code_nodes_key"),)

    id: int | None = Field(default=None, primary_key=True)
    path: str = Field(index=True)
    type: str = Field(default=NodeType.FILE.value, index=True)
    name: str = Field(default="")
    content: str = Field(default="", sa_type=Text)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )

    @property
    def ref(self) -> SymbolRef:
        return SymbolRef.parse(self.path)

    @property
    def key(self) -> str:
        """Natural key used by the graph index: ``"<type>:<path>"``."""
        return node_key(self.type, self.path)

    @classmethod
    def for_file(cls, path: str, content: str = "") -> CodeNode:
        ref = SymbolRef(file_path=path)
        return cls(path=str(ref), type=NodeType.FILE.value, name=ref.name, content=content)

    @classmethod
    def for_symbol(cls, ref: SymbolRef, node_type: NodeType, content: str) -> CodeNode:
        return cls(path=str(ref), type=node_type.value, name=ref.name, content=content)


def node_key(node_type: str, path: str) -> str:
    return f"{node_type}:{path}"
