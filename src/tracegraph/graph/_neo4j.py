"""Neo4jGraphIndex — Neo4j-backed graph index implementing GraphIndex."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from neo4j import AsyncGraphDatabase

from tracegraph.models.edges import EdgeType

if TYPE_CHECKING:
    from neo4j import AsyncDriver

    from tracegraph.models.nodes import CodeNode

logger = logging.getLogger(__name__)

# Relationship types cannot be query parameters, so they come from this closed map
_REL_TYPES: dict[str, str] = {t.value: t.value.upper() for t in EdgeType}


class Neo4jGraphIndex:
    """Mirrors ``code_nodes`` / ``code_edges`` into Neo4j with MERGE semantics.

    Nodes are ``(:CodeNode {key})``; edges are typed relationships
    (``IMPORTS``, ``CONTAINS``, ...) MERGEd by endpoint pair.
    """

    def __init__(
        self,
        uri: str,
        *,
        username: str = "neo4j",
        password: str = "",
        database: str = "neo4j",
        driver: AsyncDriver | None = None,
    ) -> None:
        self.uri = uri
        self.database = database
        self._driver = driver or AsyncGraphDatabase.driver(uri, auth=(username, password))

    @property
    def available(self) -> bool:
        return True

    async def probe(self) -> bool:
        """Verify connectivity and create the key constraint.  Raises on failure."""
        await self._driver.verify_connectivity()
        await self._run(
            "CREATE CONSTRAINT code_node_key IF NOT EXISTS "
            "FOR (n:CodeNode) REQUIRE n.key IS UNIQUE"
        )
        return True

    async def merge_node(self, node: CodeNode) -> None:
        await self._run(
            """
            MERGE (n:CodeNode {key: $key})
            SET n.node_id = $node_id,
                n.path = $path,
                n.type = $type,
                n.name = $name
            """,
            {
                "key": node.key,
                "node_id": node.id,
                "path": node.path,
                "type": node.type,
                "name": node.name,
            },
        )

    async def merge_edge(
        self,
        source: CodeNode,
        target: CodeNode,
        edge_type: str,
        metadata: dict[str, Any],
    ) -> None:
        rel = _REL_TYPES.get(edge_type)
        if rel is None:
            msg = f"Unsupported edge type: {edge_type!r}"
            raise ValueError(msg)
        await self._run(
            f"""
            MERGE (a:CodeNode {{key: $source_key}})
            ON CREATE SET a.node_id = $source_id, a.path = $source_path,
                          a.type = $source_type, a.name = $source_name
            MERGE (b:CodeNode {{key: $target_key}})
            ON CREATE SET b.node_id = $target_id, b.path = $target_path,
                          b.type = $target_type, b.name = $target_name
            MERGE (a)-[r:{rel}]->(b)
            SET r.metadata = $metadata
            """,
            {
                "source_key": source.key,
                "source_id": source.id,
                "source_path": source.path,
                "source_type": source.type,
                "source_name": source.name,
                "target_key": target.key,
                "target_id": target.id,
                "target_path": target.path,
                "target_type": target.type,
                "target_name": target.name,
                "metadata": json.dumps(metadata, sort_keys=True),
            },
        )

    async def clear(self) -> None:
        await self._run("MATCH (n:CodeNode) DETACH DELETE n")

    async def close(self) -> None:
        await self._driver.close()

    async def _run(self, query: str, params: dict[str, Any] | None = None) -> None:
        await self._driver.execute_query(query, params or {}, database_=self.database)

    def __repr__(self) -> str:
        return f"Neo4jGraphIndex(uri={self.uri!r}, database={self.database!r})"
