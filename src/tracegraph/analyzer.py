"""RepositoryAnalyzer — walk, fetch, parse and persist a whole repository."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from tracegraph.exceptions import AnalysisInProgressError
from tracegraph.models.edges import EdgeType
from tracegraph.models.nodes import CodeNode, NodeType
from tracegraph.parsing import ParserRegistry
from tracegraph.ref import SymbolRef
from tracegraph.source._retry import fetch_file
from tracegraph.walker import RepositoryWalker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracegraph.graph.persistence import GraphPersistence
    from tracegraph.source.protocol import RepositoryRef, SourceClient

logger = logging.getLogger(__name__)


class AnalysisState(Enum):
    """Lifecycle of one repository analysis run."""

    IDLE = "idle"
    CLEARING = "clearing"
    WALKING = "walking"
    PROCESSING_BATCHES = "processing_batches"
    DONE = "done"
    FAILED = "failed"


# Suffixes tried when an extension-less import is matched against walked paths
_IMPORT_SUFFIXES = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    "/index.ts", "/index.tsx", "/index.js", "/index.jsx",
)

_ACTIVE_STATES = frozenset({
    AnalysisState.CLEARING,
    AnalysisState.WALKING,
    AnalysisState.PROCESSING_BATCHES,
})


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Aggregate outcome of a run.  ``DONE`` is reached even with failures."""

    success_count: int
    failure_count: int
    failed_paths: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


@dataclass
class AnalysisProgress:
    """Live counters for the run in progress."""

    total_files: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_paths: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FileStats:
    declarations: int = 0
    imports: int = 0


class RepositoryAnalyzer:
    """Orchestrates walker, parser and persistence for one repository.

    Single flight: batches run sequentially and files within a batch run
    sequentially, so the relational store never sees concurrent
    transactions from one analysis.  There is no cancellation; a run is
    stopped only by stopping the process.
    """

    def __init__(
        self,
        client: SourceClient,
        persistence: GraphPersistence,
        *,
        parsers: ParserRegistry | None = None,
        walker: RepositoryWalker | None = None,
        batch_size: int = 10,
        batch_delay: float = 0.5,
        fetch_attempts: int = 3,
        fetch_backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._persistence = persistence
        self._parsers = parsers or ParserRegistry()
        self._walker = walker or RepositoryWalker(client, sleep=sleep)
        self._batch_size = max(batch_size, 1)
        self._batch_delay = batch_delay
        self._fetch_attempts = fetch_attempts
        self._fetch_backoff = fetch_backoff
        self._sleep = sleep

        self._state = AnalysisState.IDLE
        self._progress = AnalysisProgress()

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def is_analyzing(self) -> bool:
        return self._state in _ACTIVE_STATES

    @property
    def progress(self) -> AnalysisProgress:
        return self._progress

    # ------------------------------------------------------------------
    # Whole-repository run
    # ------------------------------------------------------------------

    async def analyze_repository(self, repo: RepositoryRef) -> AnalysisResult:
        """Clear the graph and rebuild it from *repo*.

        Per-file failures are counted, not raised.  Failures while clearing or
        walking move the run to ``FAILED`` and propagate.
        """
        if self.is_analyzing:
            msg = f"An analysis is already running (state: {self._state.value})"
            raise AnalysisInProgressError(msg)

        self._state = AnalysisState.IDLE
        self._progress = AnalysisProgress()
        try:
            self._state = AnalysisState.CLEARING
            await self._persistence.clear_graph(repo)

            self._state = AnalysisState.WALKING
            paths = await self._walker.list_all_files(repo)
        except Exception:
            self._state = AnalysisState.FAILED
            raise

        self._state = AnalysisState.PROCESSING_BATCHES
        self._progress.total_files = len(paths)
        known = frozenset(paths)
        batches = [paths[i : i + self._batch_size] for i in range(0, len(paths), self._batch_size)]
        logger.info(
            "Analyzing %s: %d file(s) in %d batch(es)", repo, len(paths), len(batches)
        )

        try:
            for number, batch in enumerate(batches, start=1):
                for path in batch:
                    await self._process_file(repo, path, known)
                logger.info(
                    "Batch %d/%d done (%d ok, %d failed so far)",
                    number,
                    len(batches),
                    self._progress.succeeded,
                    self._progress.failed,
                )
                if self._batch_delay > 0:
                    await self._sleep(self._batch_delay)
        except BaseException:
            self._state = AnalysisState.FAILED
            raise

        self._state = AnalysisState.DONE
        result = AnalysisResult(
            success_count=self._progress.succeeded,
            failure_count=self._progress.failed,
            failed_paths=tuple(self._progress.failed_paths),
        )
        logger.info(
            "Analysis of %s complete: %d succeeded, %d failed",
            repo,
            result.success_count,
            result.failure_count,
        )
        return result

    async def _process_file(
        self, repo: RepositoryRef, path: str, known: frozenset[str]
    ) -> None:
        try:
            content = await fetch_file(
                self._client,
                repo,
                path,
                attempts=self._fetch_attempts,
                backoff=self._fetch_backoff,
                sleep=self._sleep,
            )
            await self.analyze_file(path, content, known_paths=known)
        except Exception:
            logger.warning("Failed to analyze %s", path, exc_info=True)
            self._progress.failed += 1
            self._progress.failed_paths.append(path)
        else:
            self._progress.succeeded += 1
        finally:
            self._progress.processed += 1

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    async def analyze_file(
        self,
        path: str,
        content: str,
        *,
        known_paths: frozenset[str] = frozenset(),
    ) -> FileStats:
        """Persist the file, its declarations and its relative imports.

        Extension-less import targets are matched against *known_paths*
        (``./util`` links to ``util.ts`` when that file was walked); unmatched
        targets become content-less placeholder nodes.

        Raises ``ParseError`` on a total parse abort and ``StorageError`` /
        ``DanglingReferenceError`` from the persistence layer.
        """
        file_node = await self._persistence.upsert_node(CodeNode.for_file(path, content))
        assert file_node.id is not None

        analysis = self._parsers.analyze(path, content)
        if analysis is None:
            logger.debug("No parser for %s; stored without structure", path)
            return FileStats()
        declarations, imports = analysis

        file_ref = SymbolRef(file_path=path)
        for decl in declarations:
            node_type = NodeType.CLASS if decl.kind == "class" else NodeType.FUNCTION
            decl_node = await self._persistence.upsert_node(
                CodeNode.for_symbol(file_ref.child(decl.name), node_type, decl.span_text)
            )
            assert decl_node.id is not None
            await self._persistence.upsert_edge(file_node.id, decl_node.id, EdgeType.CONTAINS)

        linked = 0
        for imp in imports:
            if imp.resolved_path is None:
                continue
            target_path = link_target(imp.resolved_path, known_paths)
            target = await self._persistence.upsert_node(
                CodeNode.for_file(target_path), update_content=False
            )
            assert target.id is not None
            await self._persistence.upsert_edge(
                file_node.id, target.id, EdgeType.IMPORTS, {"specifier": imp.specifier}
            )
            linked += 1

        return FileStats(declarations=len(declarations), imports=linked)


def link_target(resolved: str, known_paths: frozenset[str]) -> str:
    """The walked file *resolved* refers to, or *resolved* itself."""
    if resolved in known_paths:
        return resolved
    for suffix in _IMPORT_SUFFIXES:
        if resolved + suffix in known_paths:
            return resolved + suffix
    return resolved
