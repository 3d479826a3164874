"""Code graph layer — relational persistence plus an optional graph index."""

from __future__ import annotations

import logging

from tracegraph.graph._null import NullGraphIndex
from tracegraph.graph._rustworkx import RustworkxGraphIndex
from tracegraph.graph.persistence import GraphPersistence, create_tables
from tracegraph.graph.protocols import GraphIndex, SupportsDependencyQueries
from tracegraph.graph.types import GraphSnapshot

logger = logging.getLogger(__name__)


async def open_graph_index(
    neo4j_uri: str = "",
    *,
    username: str = "neo4j",
    password: str = "",
    database: str = "neo4j",
) -> GraphIndex:
    """Pick and probe the graph index once, at startup.

    No *neo4j_uri* selects the in-process rustworkx index.  A Neo4j server
    that fails its connectivity probe yields a ``NullGraphIndex`` (degraded
    mode) for the rest of the process lifetime.
    """
    if not neo4j_uri:
        return RustworkxGraphIndex()

    try:
        from tracegraph.graph._neo4j import Neo4jGraphIndex

        index = Neo4jGraphIndex(neo4j_uri, username=username, password=password, database=database)
    except Exception as e:
        logger.warning("Graph store driver unavailable (%s); running in degraded mode", e)
        return NullGraphIndex(reason=str(e))

    try:
        await index.probe()
    except Exception as e:
        logger.warning(
            "Graph store at %s unreachable (%s); running in degraded mode, "
            "relational store is the sole source of truth",
            neo4j_uri,
            e,
        )
        try:
            await index.close()
        except Exception:
            logger.debug("Error closing unreachable graph store driver", exc_info=True)
        return NullGraphIndex(reason=str(e))

    logger.info("Graph store connected at %s", neo4j_uri)
    return index


__all__ = [
    "GraphIndex",
    "GraphPersistence",
    "GraphSnapshot",
    "NullGraphIndex",
    "RustworkxGraphIndex",
    "SupportsDependencyQueries",
    "create_tables",
    "open_graph_index",
]
