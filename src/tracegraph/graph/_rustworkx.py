"""RustworkxGraphIndex — in-process graph index implementing GraphIndex."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import rustworkx

from tracegraph.models.edges import EdgeType
from tracegraph.models.nodes import NodeType, node_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tracegraph.models.nodes import CodeNode


class RustworkxGraphIndex:
    """Directed code graph held in memory.

    Wraps a ``rustworkx.PyDiGraph`` with nodes keyed by ``"<type>:<path>"``
    and at most one edge per ``(source, target, type)``.  Always reachable,
    so it never triggers degraded mode; ``from_sql`` rebuilds it from the
    relational tables after a restart.

    Implements ``GraphIndex`` and ``SupportsDependencyQueries``.
    """

    def __init__(self) -> None:
        self._graph: rustworkx.PyDiGraph = rustworkx.PyDiGraph()
        self._key_to_idx: dict[str, int] = {}
        self._idx_to_key: dict[int, str] = {}

    @property
    def available(self) -> bool:
        return True

    async def probe(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def merge_node(self, node: CodeNode) -> None:
        self._merge_node(node.key, id=node.id, path=node.path, type=node.type, name=node.name)

    async def merge_edge(
        self,
        source: CodeNode,
        target: CodeNode,
        edge_type: str,
        metadata: dict[str, Any],
    ) -> None:
        src_idx = self._merge_node(
            source.key, id=source.id, path=source.path, type=source.type, name=source.name
        )
        tgt_idx = self._merge_node(
            target.key, id=target.id, path=target.path, type=target.type, name=target.name
        )
        self._merge_edge(src_idx, tgt_idx, edge_type, metadata)

    async def clear(self) -> None:
        self._graph = rustworkx.PyDiGraph()
        self._key_to_idx = {}
        self._idx_to_key = {}

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Queries (SupportsDependencyQueries)
    # ------------------------------------------------------------------

    def dependencies(self, path: str) -> list[str]:
        """File paths *path* imports."""
        idx = self._key_to_idx.get(node_key(NodeType.FILE.value, path))
        if idx is None:
            return []
        return [
            self._graph[succ]["path"]
            for succ in self._graph.successor_indices(idx)
            if self._has_edge_of_type(idx, succ, EdgeType.IMPORTS.value)
        ]

    def dependents(self, path: str) -> list[str]:
        """File paths that import *path*."""
        idx = self._key_to_idx.get(node_key(NodeType.FILE.value, path))
        if idx is None:
            return []
        return [
            self._graph[pred]["path"]
            for pred in self._graph.predecessor_indices(idx)
            if self._has_edge_of_type(pred, idx, EdgeType.IMPORTS.value)
        ]

    def has_node(self, key: str) -> bool:
        return key in self._key_to_idx

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.num_edges()

    def __repr__(self) -> str:
        return f"RustworkxGraphIndex(nodes={self.node_count}, edges={self.edge_count})"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def from_sql(self, session: AsyncSession) -> None:
        """Load graph state from ``code_nodes`` / ``code_edges``, replacing in-memory state."""
        from sqlalchemy import select

        from tracegraph.models.edges import CodeEdge
        from tracegraph.models.nodes import CodeNode

        await self.clear()

        id_to_idx: dict[int, int] = {}
        result = await session.execute(select(CodeNode))
        for row in result.scalars().all():
            idx = self._merge_node(row.key, id=row.id, path=row.path, type=row.type, name=row.name)
            if row.id is not None:
                id_to_idx[row.id] = idx

        result = await session.execute(select(CodeEdge))
        for edge_row in result.scalars().all():
            src_idx = id_to_idx.get(edge_row.source_id)
            tgt_idx = id_to_idx.get(edge_row.target_id)
            if src_idx is None or tgt_idx is None:
                continue
            self._merge_edge(src_idx, tgt_idx, edge_row.type, edge_row.get_metadata())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _merge_node(self, key: str, **attrs: Any) -> int:
        """Add or update a node; returns its index."""
        if key in self._key_to_idx:
            idx = self._key_to_idx[key]
            existing: dict[str, Any] = self._graph[idx]
            existing.update(attrs)
            return idx
        idx = self._graph.add_node({"key": key, **attrs})
        self._key_to_idx[key] = idx
        self._idx_to_key[idx] = key
        return idx

    def _merge_edge(
        self, src_idx: int, tgt_idx: int, edge_type: str, metadata: dict[str, Any]
    ) -> None:
        existing_idx = self._find_edge_idx(src_idx, tgt_idx, edge_type)
        if existing_idx is not None:
            data: dict[str, Any] = self._graph.get_edge_data_by_index(existing_idx)
            data["metadata"].update(metadata)
            return
        self._graph.add_edge(
            src_idx,
            tgt_idx,
            {"type": edge_type, "metadata": json.loads(json.dumps(metadata))},
        )

    def _find_edge_idx(self, src_idx: int, tgt_idx: int, edge_type: str) -> int | None:
        """Return the index of the ``edge_type`` edge between two nodes, or ``None``."""
        try:
            indices = self._graph.edge_indices_from_endpoints(src_idx, tgt_idx)
        except Exception:
            return None
        for edge_idx in indices:
            if self._graph.get_edge_data_by_index(edge_idx).get("type") == edge_type:
                return edge_idx
        return None

    def _has_edge_of_type(self, src_idx: int, tgt_idx: int, edge_type: str) -> bool:
        return self._find_edge_idx(src_idx, tgt_idx, edge_type) is not None
