"""NullGraphIndex — degraded-mode stand-in when the graph store is unreachable."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tracegraph.models.nodes import CodeNode


class NullGraphIndex:
    """Accepts every write and does nothing.

    Used for the lifetime of the process once the startup probe has failed;
    the relational store is then the sole source of truth.
    """

    def __init__(self, reason: str = "") -> None:
        self.reason = reason

    @property
    def available(self) -> bool:
        return False

    async def probe(self) -> bool:
        return False

    async def merge_node(self, node: CodeNode) -> None:
        return None

    async def merge_edge(
        self,
        source: CodeNode,
        target: CodeNode,
        edge_type: str,
        metadata: dict[str, Any],
    ) -> None:
        return None

    async def clear(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"NullGraphIndex(reason={self.reason!r})"
