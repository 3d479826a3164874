"""GraphPersistence — dual-write store for code nodes and edges.

The relational store (SQLModel over an async SQLAlchemy engine) is
authoritative: every mutation commits there first, and a failure there
propagates to the caller.  The ``GraphIndex`` is a best-effort secondary
index written after the commit; its failures are logged, never raised.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import aliased
from sqlmodel import SQLModel

from tracegraph.exceptions import DanglingReferenceError, StorageError
from tracegraph.graph._null import NullGraphIndex
from tracegraph.graph.types import GraphSnapshot
from tracegraph.models.defects import DefectRecord
from tracegraph.models.edges import CodeEdge, EdgeType
from tracegraph.models.graph_state import GraphState
from tracegraph.models.nodes import CodeNode, NodeType

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from tracegraph.graph.protocols import GraphIndex
    from tracegraph.source.protocol import RepositoryRef

logger = logging.getLogger(__name__)

_TABLES = (CodeNode, CodeEdge, GraphState, DefectRecord)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the tracegraph tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(
            lambda c: SQLModel.metadata.create_all(
                c,
                tables=[m.__table__ for m in _TABLES],  # type: ignore[attr-defined]
                checkfirst=True,
            )
        )


class GraphPersistence:
    """Owns the lifecycle of ``CodeNode`` and ``CodeEdge`` rows.

    Node upserts are idempotent by ``(path, type, name)``, edge upserts by
    ``(source_id, target_id, type)``.  Each upsert is one check-then-insert
    transaction.

    *session_factory* must produce sessions with ``expire_on_commit=False``
    so returned rows stay readable after commit.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        index: GraphIndex | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._index: GraphIndex = index if index is not None else NullGraphIndex("not configured")

    @property
    def index(self) -> GraphIndex:
        return self._index

    @property
    def degraded(self) -> bool:
        """True when only the relational store is being written."""
        return not self._index.available

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert_node(self, node: CodeNode, *, update_content: bool = True) -> CodeNode:
        """Insert *node*, or return the existing row with the same natural key.

        An existing row takes *node*'s ``content`` unless *update_content* is
        false (used for import placeholders, which must not blank out a file
        that was already analyzed).
        """
        try:
            row = await self._upsert_node_once(node, update_content)
        except IntegrityError:
            # Lost an insert race on the unique key; the row exists now
            logger.debug("Concurrent insert for %s; retrying as update", node.path)
            try:
                row = await self._upsert_node_once(node, update_content)
            except SQLAlchemyError as e:
                msg = f"Failed to upsert node {node.path!r}: {e}"
                raise StorageError(msg) from e
        except SQLAlchemyError as e:
            msg = f"Failed to upsert node {node.path!r}: {e}"
            raise StorageError(msg) from e

        await self._mirror("merge_node", row)
        return row

    async def _upsert_node_once(self, node: CodeNode, update_content: bool) -> CodeNode:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(CodeNode).where(
                    CodeNode.path == node.path,
                    CodeNode.type == node.type,
                    CodeNode.name == node.name,
                )
            )
            existing = result.scalar_one_or_none()
            if existing is not None:
                if update_content and existing.content != node.content:
                    existing.content = node.content
                    existing.updated_at = datetime.now(UTC)
                return existing

            row = CodeNode(path=node.path, type=node.type, name=node.name, content=node.content)
            session.add(row)
            await session.flush()
            return row

    async def upsert_edge(
        self,
        source_id: int,
        target_id: int,
        edge_type: EdgeType | str,
        metadata: dict[str, Any] | None = None,
    ) -> CodeEdge:
        """Create the edge or merge *metadata* into the existing one.

        Raises ``DanglingReferenceError`` (and writes nothing) if either
        endpoint id does not exist.
        """
        type_value = edge_type.value if isinstance(edge_type, EdgeType) else edge_type
        metadata = dict(metadata or {})
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    select(CodeNode).where(CodeNode.id.in_([source_id, target_id]))  # type: ignore[union-attr]
                )
                endpoints = {n.id: n for n in result.scalars().all()}
                missing = [i for i in (source_id, target_id) if i not in endpoints]
                if missing:
                    raise DanglingReferenceError(source_id, target_id, missing)

                result = await session.execute(
                    select(CodeEdge).where(
                        CodeEdge.source_id == source_id,
                        CodeEdge.target_id == target_id,
                        CodeEdge.type == type_value,
                    )
                )
                edge = result.scalar_one_or_none()
                if edge is None:
                    edge = CodeEdge(
                        source_id=source_id,
                        target_id=target_id,
                        type=type_value,
                        metadata_json=json.dumps(metadata, sort_keys=True),
                    )
                    session.add(edge)
                    await session.flush()
                elif metadata:
                    merged = {**edge.get_metadata(), **metadata}
                    edge.metadata_json = json.dumps(merged, sort_keys=True)
        except SQLAlchemyError as e:
            msg = f"Failed to upsert edge {source_id} -> {target_id} ({type_value}): {e}"
            raise StorageError(msg) from e

        await self._mirror(
            "merge_edge", endpoints[source_id], endpoints[target_id], type_value, edge.get_metadata()
        )
        return edge

    async def clear_graph(self, repository: RepositoryRef | None = None) -> None:
        """Delete all edges, then all nodes, in one transaction; then clear the index.

        *repository* is recorded as the source of the graph about to be
        built; without one the graph belongs to no repository.
        """
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(CodeEdge))
                await session.execute(delete(CodeNode))
                await session.execute(delete(GraphState))
                if repository is not None:
                    session.add(GraphState(repository=str(repository)))
        except SQLAlchemyError as e:
            msg = f"Failed to clear graph: {e}"
            raise StorageError(msg) from e
        await self._mirror("clear")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_node(self, path: str, node_type: NodeType = NodeType.FILE) -> CodeNode | None:
        """Look up a node by path and type."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CodeNode).where(CodeNode.path == path, CodeNode.type == node_type.value)
            )
            return result.scalars().first()

    async def graph_repository(self) -> str | None:
        """``owner/name`` the stored graph was built from, if recorded."""
        async with self._session_factory() as session:
            state = await session.get(GraphState, 1)
            return state.repository if state is not None and state.repository else None

    async def holds_repository(self, repository: RepositoryRef) -> bool:
        """Whether stored nodes belong to *repository*."""
        async with self._session_factory() as session:
            state = await session.get(GraphState, 1)
            return state is not None and state.holds(str(repository))

    async def get_file_content(self, path: str) -> str | None:
        """Stored content of a file node; ``None`` if missing or a placeholder."""
        node = await self.get_node(path)
        if node is None or not node.content:
            return None
        return node.content

    async def import_neighbors(self, path: str) -> tuple[list[str], list[str]]:
        """``(dependencies, dependents)`` of a file from stored ``imports`` edges."""
        source = aliased(CodeNode)
        target = aliased(CodeNode)
        imports = EdgeType.IMPORTS.value
        async with self._session_factory() as session:
            deps = await session.execute(
                select(target.path)
                .join(CodeEdge, CodeEdge.target_id == target.id)  # type: ignore[arg-type]
                .join(source, CodeEdge.source_id == source.id)  # type: ignore[arg-type]
                .where(source.path == path, CodeEdge.type == imports)
            )
            dependents = await session.execute(
                select(source.path)
                .join(CodeEdge, CodeEdge.source_id == source.id)  # type: ignore[arg-type]
                .join(target, CodeEdge.target_id == target.id)  # type: ignore[arg-type]
                .where(target.path == path, CodeEdge.type == imports)
            )
            return list(deps.scalars().all()), list(dependents.scalars().all())

    async def list_nodes(self) -> list[CodeNode]:
        async with self._session_factory() as session:
            result = await session.execute(select(CodeNode).order_by(CodeNode.id))  # type: ignore[arg-type]
            return list(result.scalars().all())

    async def list_edges(self) -> list[CodeEdge]:
        async with self._session_factory() as session:
            result = await session.execute(select(CodeEdge).order_by(CodeEdge.id))  # type: ignore[arg-type]
            return list(result.scalars().all())

    async def snapshot(self) -> GraphSnapshot:
        """Consistent read of all nodes and edges."""
        async with self._session_factory() as session:
            nodes = await session.execute(select(CodeNode).order_by(CodeNode.id))  # type: ignore[arg-type]
            edges = await session.execute(select(CodeEdge).order_by(CodeEdge.id))  # type: ignore[arg-type]
            return GraphSnapshot(
                nodes=tuple(nodes.scalars().all()),
                edges=tuple(edges.scalars().all()),
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _mirror(self, operation: str, *args: Any) -> None:
        """Apply *operation* to the graph index; failures are logged only."""
        if not self._index.available:
            return
        try:
            await getattr(self._index, operation)(*args)
        except Exception:
            logger.warning(
                "Graph index %s failed; relational store remains authoritative",
                operation,
                exc_info=True,
            )
