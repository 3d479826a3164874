"""Tests for RepositoryAnalyzer — end-to-end repository analysis."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from tracegraph.analyzer import AnalysisState, RepositoryAnalyzer, link_target
from tracegraph.exceptions import AnalysisInProgressError, SourceAccessError
from tracegraph.graph import GraphPersistence, RustworkxGraphIndex
from tracegraph.models import CodeNode, NodeType
from tracegraph.walker import RepositoryWalker

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tracegraph.source.protocol import RepositoryRef

SMALL_REPO = {
    "src/index.ts": "import { add } from './math';\nimport React from 'react';\nexport function main() { return add(1, 2); }\n",
    "src/math.ts": "export function add(a: number, b: number) { return a + b; }\nexport class Calc {}\n",
    "src/ui/button.tsx": "import { Calc } from '../math';\nexport const Button = () => <button />;\n",
}


def _analyzer(source, persistence: GraphPersistence, sleep, **kwargs) -> RepositoryAnalyzer:
    return RepositoryAnalyzer(
        source,
        persistence,
        walker=RepositoryWalker(source, sleep=sleep),
        sleep=sleep,
        **kwargs,
    )


# ======================================================================
# analyze_file
# ======================================================================


class TestAnalyzeFile:
    async def test_persists_file_declarations_and_imports(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(), persistence, recording_sleep)
        stats = await analyzer.analyze_file(
            "src/index.ts",
            SMALL_REPO["src/index.ts"],
            known_paths=frozenset(SMALL_REPO),
        )

        assert stats.declarations == 1
        assert stats.imports == 1
        main = await persistence.get_node("src/index.ts#main", NodeType.FUNCTION)
        assert main is not None
        assert main.content.startswith("function main()")

        placeholder = await persistence.get_node("src/math.ts")
        assert placeholder is not None
        assert placeholder.content == ""

        edges = await persistence.list_edges()
        assert sorted(e.type for e in edges) == ["contains", "imports"]
        imports = next(e for e in edges if e.type == "imports")
        assert imports.get_metadata() == {"specifier": "./math"}

    async def test_bare_imports_create_no_nodes(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(), persistence, recording_sleep)
        await analyzer.analyze_file("a.js", "const x = require('lodash');\n")
        assert [n.path for n in await persistence.list_nodes()] == ["a.js"]

    async def test_placeholder_does_not_blank_analyzed_file(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(), persistence, recording_sleep)
        await analyzer.analyze_file("src/math.ts", SMALL_REPO["src/math.ts"])
        await analyzer.analyze_file(
            "src/index.ts", SMALL_REPO["src/index.ts"], known_paths=frozenset(SMALL_REPO)
        )
        assert await persistence.get_file_content("src/math.ts") == SMALL_REPO["src/math.ts"]

    async def test_unparseable_extension_is_stored_without_structure(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(), persistence, recording_sleep)
        stats = await analyzer.analyze_file("notes.md", "# hi")
        assert stats.declarations == 0
        assert len(await persistence.list_nodes()) == 1

    def test_link_target(self) -> None:
        known = frozenset({"src/math.ts", "src/ui/index.tsx", "src/raw.js"})
        assert link_target("src/math", known) == "src/math.ts"
        assert link_target("src/ui", known) == "src/ui/index.tsx"
        assert link_target("src/raw.js", known) == "src/raw.js"
        assert link_target("src/missing", known) == "src/missing"


# ======================================================================
# analyze_repository
# ======================================================================


class TestAnalyzeRepository:
    async def test_degraded_mode_three_files(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        assert persistence.degraded
        analyzer = _analyzer(make_source(SMALL_REPO), persistence, recording_sleep)

        result = await analyzer.analyze_repository(repo)

        assert result.success_count == 3
        assert result.failure_count == 0
        assert analyzer.state is AnalysisState.DONE
        for path, content in SMALL_REPO.items():
            assert await persistence.get_file_content(path) == content

    async def test_imports_link_to_walked_files(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(SMALL_REPO), persistence, recording_sleep)
        await analyzer.analyze_repository(repo)

        deps, dependents = await persistence.import_neighbors("src/math.ts")
        assert deps == []
        assert sorted(dependents) == ["src/index.ts", "src/ui/button.tsx"]
        files = [n.path for n in await persistence.list_nodes() if n.type == "file"]
        assert sorted(files) == sorted(SMALL_REPO)

    async def test_batch_isolation_one_failure_in_twelve(
        self,
        make_source,
        repo: RepositoryRef,
        persistence: GraphPersistence,
        recording_sleep,
    ) -> None:
        files = {f"src/f{i:02d}.ts": f"export function f{i}() {{}}\n" for i in range(1, 13)}
        source = make_source(files, failing={"src/f07.ts"})
        analyzer = _analyzer(source, persistence, recording_sleep)

        result = await analyzer.analyze_repository(repo)

        assert (result.success_count, result.failure_count) == (11, 1)
        assert result.failed_paths == ("src/f07.ts",)
        assert source.calls["src/f07.ts"] == 3
        stored = {n.path for n in await persistence.list_nodes() if n.type == "file"}
        assert stored == set(files) - {"src/f07.ts"}

    async def test_batches_pause_between_them(
        self,
        make_source,
        repo: RepositoryRef,
        persistence: GraphPersistence,
        recording_sleep,
        sleeps: list[float],
    ) -> None:
        files = {f"f{i:02d}.ts": "" for i in range(12)}
        analyzer = _analyzer(
            make_source(files), persistence, recording_sleep, batch_size=5, batch_delay=0.5
        )
        await analyzer.analyze_repository(repo)
        assert sleeps.count(0.5) == 3
        assert analyzer.progress.processed == 12

    async def test_reanalysis_replaces_previous_graph(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        await persistence.upsert_node(CodeNode.for_file("stale.ts", "old"))
        analyzer = _analyzer(make_source(SMALL_REPO), persistence, recording_sleep)

        await analyzer.analyze_repository(repo)
        await analyzer.analyze_repository(repo)

        assert await persistence.get_node("stale.ts") is None
        file_nodes = [n for n in await persistence.list_nodes() if n.type == "file"]
        assert len(file_nodes) == 3
        assert await persistence.graph_repository() == "acme/shop"

    async def test_walk_failure_marks_failed(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        analyzer = _analyzer(make_source(SMALL_REPO, failing={""}), persistence, recording_sleep)
        with pytest.raises(SourceAccessError):
            await analyzer.analyze_repository(repo)
        assert analyzer.state is AnalysisState.FAILED
        assert not analyzer.is_analyzing

    async def test_concurrent_run_is_rejected(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        release = asyncio.Event()

        async def blocking_sleep(delay: float) -> None:
            await release.wait()

        # Only the pause after the first batch blocks; the walk runs freely
        source = make_source(SMALL_REPO)
        analyzer = RepositoryAnalyzer(
            source,
            persistence,
            walker=RepositoryWalker(source, sleep=recording_sleep),
            sleep=blocking_sleep,
        )
        first = asyncio.create_task(analyzer.analyze_repository(repo))
        while analyzer.progress.processed < 3:
            await asyncio.sleep(0)
        assert analyzer.is_analyzing

        with pytest.raises(AnalysisInProgressError):
            await analyzer.analyze_repository(repo)

        release.set()
        result = await first
        assert result.success_count == 3
        assert analyzer.state is AnalysisState.DONE

    async def test_graph_index_is_mirrored(
        self,
        make_source,
        repo: RepositoryRef,
        session_factory: async_sessionmaker[AsyncSession],
        recording_sleep,
    ) -> None:
        index = RustworkxGraphIndex()
        persistence = GraphPersistence(session_factory, index)
        analyzer = _analyzer(make_source(SMALL_REPO), persistence, recording_sleep)

        await analyzer.analyze_repository(repo)

        assert sorted(index.dependents("src/math.ts")) == ["src/index.ts", "src/ui/button.tsx"]
        assert index.has_node("class:src/math.ts#Calc")
