"""SQLModel database models for tracegraph."""

from tracegraph.models.defects import DefectRecord
from tracegraph.models.edges import CodeEdge, EdgeType
from tracegraph.models.graph_state import GraphState
from tracegraph.models.nodes import CodeNode, NodeType

__all__ = [
    "CodeEdge",
    "CodeNode",
    "DefectRecord",
    "EdgeType",
    "GraphState",
    "NodeType",
]
