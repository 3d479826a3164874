"""TraceGraph — async facade wiring source access, analysis, graph and context."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tracegraph.analyzer import RepositoryAnalyzer
from tracegraph.context import ContextAssembler, ContextBundle
from tracegraph.exceptions import (
    AnalysisInProgressError,
    DefectNotFoundError,
    PathNotFoundError,
    RateLimitError,
    RepositoryAnalysisError,
    SourceAccessError,
    StorageError,
    TraceGraphError,
)
from tracegraph.graph import GraphPersistence, RustworkxGraphIndex, create_tables, open_graph_index
from tracegraph.models.defects import DefectRecord
from tracegraph.parsing import ParserRegistry
from tracegraph.settings import Settings
from tracegraph.source import GitHubSourceClient, RepositoryRef, SlidingWindowRateLimiter
from tracegraph.walker import RepositoryWalker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from tracegraph.context import MentionExtractor, RelevanceScorer
    from tracegraph.graph import GraphIndex
    from tracegraph.source import SourceClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TraceGraph:
    """Entry point for the dashboard/API layer.

    Everything not passed in is built from *settings* on :meth:`open`::

        async with TraceGraph(Settings.load()) as tg:
            await tg.analyze_repository("acme", "shop")
            snapshot = await tg.get_graph_snapshot()

    Injected collaborators (engine, source client, graph index) are used as
    given and are not closed by :meth:`close`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AsyncEngine | None = None,
        source_client: SourceClient | None = None,
        graph_index: GraphIndex | None = None,
        mention_extractor: MentionExtractor | None = None,
        scorer: RelevanceScorer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or Settings()
        self._engine = engine
        self._client = source_client
        self._index = graph_index
        self._mention_extractor = mention_extractor
        self._scorer = scorer
        self._sleep = sleep

        self._owns_engine = engine is None
        self._owns_client = source_client is None
        self._owns_index = graph_index is None

        self._persistence: GraphPersistence | None = None
        self._analyzer: RepositoryAnalyzer | None = None
        self._assembler: ContextAssembler | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> TraceGraph:
        if self._persistence is not None:
            return self
        settings = self._settings

        if self._engine is None:
            self._engine = create_async_engine(settings.database_url)
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        await create_tables(self._engine)

        if self._index is None:
            self._index = await open_graph_index(
                settings.neo4j_uri,
                username=settings.neo4j_username,
                password=settings.neo4j_password,
                database=settings.neo4j_database,
            )
        if isinstance(self._index, RustworkxGraphIndex):
            try:
                async with self._session_factory() as session:
                    await self._index.from_sql(session)
            except SQLAlchemyError:
                logger.debug("No existing graph state to load", exc_info=True)

        if self._client is None:
            self._client = GitHubSourceClient(
                token=settings.github_token,
                api_base_url=settings.github_api_base_url,
                timeout=settings.http_timeout,
                rate_limiter=SlidingWindowRateLimiter(
                    settings.rate_limit_requests, settings.rate_limit_window
                ),
            )

        parsers = ParserRegistry()
        self._persistence = GraphPersistence(self._session_factory, self._index)
        self._analyzer = RepositoryAnalyzer(
            self._client,
            self._persistence,
            parsers=parsers,
            walker=RepositoryWalker(
                self._client,
                batch_size=settings.walk_batch_size,
                delay=settings.walk_delay,
                sleep=self._sleep,
            ),
            batch_size=settings.file_batch_size,
            batch_delay=settings.batch_delay,
            fetch_attempts=settings.fetch_attempts,
            fetch_backoff=settings.fetch_backoff,
            sleep=self._sleep,
        )
        self._assembler = ContextAssembler(
            self._persistence,
            self._client,
            parsers=parsers,
            mention_extractor=self._mention_extractor,
            scorer=self._scorer,
            chunk_size=settings.chunk_size,
            fetch_attempts=settings.fetch_attempts,
            fetch_backoff=settings.fetch_backoff,
            sleep=self._sleep,
        )
        # open_graph_index already logged the degradation for an owned index
        if self._persistence.degraded and not self._owns_index:
            logger.warning("Graph index unavailable; running with the relational store only")
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._owns_client and self._client is not None:
            await self._client.aclose()
        if self._owns_index and self._index is not None:
            await self._index.close()
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> TraceGraph:
        return await self.open()

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def persistence(self) -> GraphPersistence:
        return self._require(self._persistence)

    @property
    def analyzer(self) -> RepositoryAnalyzer:
        return self._require(self._analyzer)

    @property
    def is_analyzing(self) -> bool:
        return self._analyzer is not None and self._analyzer.is_analyzing

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def analyze_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Rebuild the code graph from ``owner/repo``.

        Raises ``RepositoryAnalysisError`` with a reason and an actionable
        detail when the run cannot start or cannot complete.
        """
        analyzer = self.analyzer
        if not owner or not repo:
            raise RepositoryAnalysisError(
                "Missing repository information",
                "Both the repository owner and name are required.",
            )
        ref = RepositoryRef(owner=owner, name=repo)

        try:
            check_access = getattr(self._client, "check_access", None)
            if check_access is not None:
                await check_access(ref)
            result = await analyzer.analyze_repository(ref)
        except AnalysisInProgressError as e:
            raise RepositoryAnalysisError(
                "Analysis already in progress",
                "Wait for the running analysis to finish before starting another.",
            ) from e
        except PathNotFoundError as e:
            raise RepositoryAnalysisError(
                f"Repository {ref} not found",
                "Check the owner and name, and that the access token can read the repository.",
            ) from e
        except RateLimitError as e:
            wait = f" Retry in about {int(e.reset_after)}s." if e.reset_after else ""
            raise RepositoryAnalysisError(
                "Repository host rate limit exceeded",
                f"Too many requests to the repository host.{wait}",
            ) from e
        except SourceAccessError as e:
            raise RepositoryAnalysisError(
                f"Could not access repository {ref}",
                f"Check the access token and network connectivity. ({e})",
            ) from e
        except StorageError as e:
            raise RepositoryAnalysisError(
                "Failed to store the code graph",
                f"Check the database connection. ({e})",
            ) from e

        message = (
            f"Repository analysis completed: {result.success_count} file(s) analyzed, "
            f"{result.failure_count} failed"
        )
        return {
            "message": message,
            "successCount": result.success_count,
            "failureCount": result.failure_count,
            "failedPaths": list(result.failed_paths),
        }

    async def get_graph_snapshot(self) -> dict[str, Any]:
        """Current nodes and edges in the dashboard's display shape."""
        snapshot = await self.persistence.snapshot()
        return snapshot.to_display(is_analyzing=self.is_analyzing)

    async def record_defect(
        self,
        title: str,
        stacktrace: str = "",
        *,
        external_id: str = "",
        context: dict[str, Any] | None = None,
        status: str = "new",
    ) -> DefectRecord:
        """Store a defect report so :meth:`build_context` can resolve it by id."""
        record = DefectRecord(
            external_id=external_id,
            title=title,
            stacktrace=stacktrace,
            status=status,
            context_json=json.dumps(context or {}),
        )
        factory = self._require(self._session_factory)
        try:
            async with factory() as session, session.begin():
                session.add(record)
                await session.flush()
        except SQLAlchemyError as e:
            msg = f"Failed to store defect {title!r}: {e}"
            raise StorageError(msg) from e
        return record

    async def build_context(self, defect_id: int | str) -> ContextBundle:
        """Context bundle for a stored defect.

        Raises ``DefectNotFoundError`` for an unknown id; every other failure
        resolves to a fallback bundle.
        """
        assembler = self._require(self._assembler)
        factory = self._require(self._session_factory)
        try:
            key = int(defect_id)
        except (TypeError, ValueError) as e:
            msg = f"Defect not found: {defect_id!r}"
            raise DefectNotFoundError(msg) from e

        async with factory() as session:
            record = await session.get(DefectRecord, key)
        if record is None:
            msg = f"Defect not found: {defect_id!r}"
            raise DefectNotFoundError(msg)
        return await assembler.build_context(record.to_report())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, component: T | None) -> T:
        if self._closed:
            raise TraceGraphError("TraceGraph is closed")
        if component is None:
            raise TraceGraphError("TraceGraph is not open; call open() first")
        return component
