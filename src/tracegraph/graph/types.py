"""Graph result types — immutable data containers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tracegraph.models.edges import CodeEdge
    from tracegraph.models.nodes import CodeNode


@dataclass(frozen=True, slots=True)
class GraphSnapshot:
    """Read-only projection of the stored graph at one point in time."""

    nodes: tuple[CodeNode, ...]
    edges: tuple[CodeEdge, ...]

    def to_display(self, *, is_analyzing: bool = False) -> dict[str, Any]:
        """Shape consumed by the dashboard: string ids and ``data`` payloads."""
        return {
            "nodes": [
                {
                    "id": str(node.id),
                    "type": node.type,
                    "data": {"name": node.name, "content": node.content, "type": node.type},
                }
                for node in self.nodes
            ],
            "edges": [
                {
                    "id": str(edge.id),
                    "source": str(edge.source_id),
                    "target": str(edge.target_id),
                    "type": edge.type,
                    "data": {"relationship": edge.type, "metadata": edge.get_metadata()},
                }
                for edge in self.edges
            ],
            "isAnalyzing": is_analyzing,
        }
