"""CodeEdge model — single table for all graph edges."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class EdgeType(Enum):
    """Directed relationship kinds.

    The analyzer produces ``imports`` and ``contains``; ``calls`` and
    ``extends`` are accepted by the store for other producers.
    """

    IMPORTS = "imports"
    CONTAINS = "contains"
    CALLS = "calls"
    EXTENDS = "extends"


class CodeEdge(SQLModel, table=True):
    """A directed edge between two ``CodeNode`` rows."""

    __tablename__ = "code_edges"
    __table_args__ = (
        UniqueConstraint("source_id", "target_id", "type", name="uq_code_edges_key"),
    )

    id: int | None = Field(default=None, primary_key=True)
    source_id: int = Field(foreign_key="code_nodes.id", index=True)
    target_id: int = Field(foreign_key="code_nodes.id", index=True)
    type: str = Field(default=EdgeType.IMPORTS.value)
    metadata_json: str = Field(default="{}")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )

    def get_metadata(self) -> dict[str, Any]:
        """Decoded ``metadata_json``; an unreadable payload decodes to ``{}``."""
        try:
            data = json.loads(self.metadata_json or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
