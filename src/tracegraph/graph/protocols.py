"""Graph index protocols — the optional graph-oriented secondary store.

The relational store is authoritative.  A ``GraphIndex`` mirrors every node
and edge mutation as a best-effort secondary index; when the graph store is
unreachable at startup a ``NullGraphIndex`` stands in and every write is a
no-op.

Follows the core-plus-capabilities pattern: ``GraphIndex`` is what every
index implements, ``SupportsDependencyQueries`` is opt-in and detected via
``isinstance()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tracegraph.models.nodes import CodeNode


@runtime_checkable
class GraphIndex(Protocol):
    """Core graph index interface — idempotent MERGE of nodes and edges."""

    @property
    def available(self) -> bool:
        """``False`` only for the degraded-mode null index."""
        ...

    async def probe(self) -> bool:
        """Connectivity check, run once at startup."""
        ...

    async def merge_node(self, node: CodeNode) -> None: ...

    async def merge_edge(
        self,
        source: CodeNode,
        target: CodeNode,
        edge_type: str,
        metadata: dict[str, Any],
    ) -> None: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class SupportsDependencyQueries(Protocol):
    """Opt-in: import-edge lookups by file path."""

    def dependencies(self, path: str) -> list[str]: ...
    def dependents(self, path: str) -> list[str]: ...
