"""GraphState model — which repository the stored graph was built from."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class GraphState(SQLModel, table=True):
    """Single row, rewritten each time the graph is cleared for a new analysis.

    ``repository`` is the ``owner/name`` the current nodes and edges came from.
    """

    __tablename__ = "graph_state"

    id: int = Field(default=1, primary_key=True)
    repository: str = Field(default="")
    cleared_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )

    def holds(self, repository: str) -> bool:
        """Whether this graph was built from *repository* (names are case-insensitive)."""
        return bool(self.repository) and self.repository.casefold() == repository.casefold()
