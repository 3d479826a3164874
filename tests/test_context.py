"""Tests for ContextAssembler — ranked context bundles for defect reports."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tracegraph.analyzer import RepositoryAnalyzer
from tracegraph.context import ContextAssembler, DefectReport
from tracegraph.context.assembler import TEST_FILE_RELEVANCE
from tracegraph.context.scoring import CandidateSignals
from tracegraph.graph import GraphPersistence, NullGraphIndex, RustworkxGraphIndex
from tracegraph.models import CodeNode, EdgeType
from tracegraph.source.protocol import RepositoryRef
from tracegraph.walker import RepositoryWalker

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

USER_SERVICE = "import { db } from './db';\nexport class UserService extends Base {}\n"

REPO_FILES = {
    "src/services/user.ts": USER_SERVICE,
    "src/services/user.test.ts": "test('loads', () => {});\n",
    "package.json": '{"dependencies": {"react": "^18.2.0"}}',
}

TRACE = "TypeError: x is undefined\n    at getUser (webpack:///src/services/user.ts:42:17)\n"


async def _analyze(
    files: dict[str, str],
    persistence: GraphPersistence,
    repo: RepositoryRef,
    make_source,
    sleep,
) -> None:
    source = make_source(files)
    analyzer = RepositoryAnalyzer(
        source, persistence, walker=RepositoryWalker(source, sleep=sleep), sleep=sleep
    )
    await analyzer.analyze_repository(repo)


class FixedScorer:
    def __init__(self, value: float) -> None:
        self.value = value

    def score(self, signals: CandidateSignals) -> float:
        return self.value


class FailingScorer:
    def score(self, signals: CandidateSignals) -> float:
        raise RuntimeError("scorer exploded")


class FailingMentions:
    async def extract_relevant_files(self, text: str) -> list[str]:
        raise TimeoutError("model timed out")


# ======================================================================
# Report-only bundles
# ======================================================================


class TestReportOnly:
    async def test_title_and_snippet_without_repository(
        self, persistence: GraphPersistence
    ) -> None:
        defect = DefectReport(id="1", title="Checkout fails", code_snippets=("cart.total()",))
        bundle = await ContextAssembler(persistence).build_context(defect)

        assert len(bundle.files) >= 2
        snippet = next(f for f in bundle.files if f.path.startswith("code-snippet"))
        assert snippet.content == "cart.total()"
        assert snippet.relevance == 0.9
        assert bundle.files[0].relevance == 1.0
        assert bundle.metadata.error is False

    async def test_malformed_repository_is_ignored(self, persistence: GraphPersistence) -> None:
        defect = DefectReport(id="1", title="t", repository="not-a-repo")
        bundle = await ContextAssembler(persistence).build_context(defect)
        assert bundle.metadata.error is False
        assert bundle.files[0].path == "issue-context"

    async def test_analyzed_config_files_do_not_replace_report_fields(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        await _analyze(
            {"vite.config.ts": "export default {};\n", "src/cart.ts": "export const c = 1;\n"},
            persistence,
            repo,
            make_source,
            recording_sleep,
        )
        defect = DefectReport(id="1", title="Checkout fails", code_snippets=("cart.total()",))

        bundle = await ContextAssembler(persistence, make_source()).build_context(defect)

        assert [(f.path, f.relevance) for f in bundle.files] == [
            ("issue-context", 1.0),
            ("code-snippet-1", 0.9),
        ]
        assert bundle.metadata.config_files == 0


# ======================================================================
# Repository-backed bundles
# ======================================================================


class TestRepositoryContext:
    async def test_trace_config_and_test_files(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        assembler = ContextAssembler(
            persistence, make_source(REPO_FILES), sleep=recording_sleep
        )
        defect = DefectReport(
            id="9", title="Profile crash", stacktrace=TRACE, repository="acme/shop"
        )

        bundle = await assembler.build_context(defect)

        assert [f.path for f in bundle.files] == [
            "src/services/user.test.ts",
            "src/services/user.ts",
            "package.json",
        ]
        assert bundle.files[0].relevance == TEST_FILE_RELEVANCE
        relevances = [f.relevance for f in bundle.files]
        assert relevances == sorted(relevances, reverse=True)

        structure = bundle.project_structure
        assert structure.hierarchy == {"src/services/user.ts": ["Base"]}
        assert structure.dependencies == {"src/services/user.ts": ["src/services/db"]}
        assert structure.test_coverage == {"src/services/user.ts": ["src/services/user.test.ts"]}
        assert bundle.package_dependencies.dependencies == {"react": "^18.2.0"}
        assert [(r.source, r.relationship, r.target) for r in bundle.relationships] == [
            ("src/services/user.ts", "imports", "src/services/db")
        ]

        meta = bundle.metadata
        assert (meta.files_from_trace, meta.config_files, meta.test_files) == (1, 1, 1)
        assert meta.total_files == 3
        assert meta.repository == "acme/shop"

    async def test_stored_content_is_preferred(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        await persistence.clear_graph(repo)
        await persistence.upsert_node(CodeNode.for_file("src/services/user.ts", "stored copy"))
        source = make_source(REPO_FILES)
        assembler = ContextAssembler(persistence, source, sleep=recording_sleep)

        bundle = await assembler.build_context(
            DefectReport(id="1", title="t", stacktrace=TRACE, repository="acme/shop")
        )

        entry = next(f for f in bundle.files if f.path == "src/services/user.ts")
        assert entry.content == "stored copy"
        assert source.calls["src/services/user.ts"] == 0

    async def test_other_repository_is_fetched_live(
        self, make_source, repo: RepositoryRef, persistence: GraphPersistence, recording_sleep
    ) -> None:
        await _analyze(
            {"src/a.ts": "import { b } from './b';\nexport const shop = 1;\n", "src/b.ts": ""},
            persistence,
            repo,
            make_source,
            recording_sleep,
        )
        blog = make_source({"src/a.ts": "export const blog = 1;\n"})
        assembler = ContextAssembler(persistence, blog, sleep=recording_sleep)

        bundle = await assembler.build_context(
            DefectReport(
                id="1", title="t", stacktrace="at run (src/a.ts:2:1)", repository="acme/blog"
            )
        )

        assert [(f.path, f.content) for f in bundle.files] == [
            ("src/a.ts", "export const blog = 1;\n")
        ]
        assert blog.calls["src/a.ts"] == 1
        assert bundle.project_structure.dependencies == {}
        assert bundle.project_structure.dependents == {}

    async def test_repository_match_ignores_case(
        self, repo: RepositoryRef, persistence: GraphPersistence
    ) -> None:
        await persistence.clear_graph(repo)
        await persistence.upsert_node(CodeNode.for_file("src/a.ts", "stored"))

        bundle = await ContextAssembler(persistence).build_context(
            DefectReport(id="1", title="t", stacktrace="at src/a.ts:1:1", repository="ACME/Shop")
        )

        assert [(f.path, f.content) for f in bundle.files] == [("src/a.ts", "stored")]

    async def test_mentions_without_source_client(
        self, repo: RepositoryRef, persistence: GraphPersistence
    ) -> None:
        await persistence.clear_graph(repo)
        await persistence.upsert_node(CodeNode.for_file("src/components/Profile.tsx", "<div />"))
        defect = DefectReport(
            id="1",
            title="Blank page",
            description="Broken in src/components/Profile.tsx",
            repository="acme/shop",
        )

        bundle = await ContextAssembler(persistence).build_context(defect)

        assert [f.path for f in bundle.files] == ["src/components/Profile.tsx"]
        assert bundle.files[0].relevance == 0.3
        assert bundle.metadata.files_from_mentions == 1

    async def test_unfetchable_trace_file_is_skipped(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        source = make_source(REPO_FILES, failing={"src/services/user.ts"})
        assembler = ContextAssembler(persistence, source, sleep=recording_sleep)

        bundle = await assembler.build_context(
            DefectReport(id="1", title="t", stacktrace=TRACE, repository="acme/shop")
        )

        assert [f.path for f in bundle.files] == ["package.json"]
        assert bundle.metadata.error is False

    async def test_relevant_file_keeps_three_chunks(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        big = ("let value = compute();\n" * 200)[:4600]
        assembler = ContextAssembler(
            persistence,
            make_source({"src/big.ts": big}),
            scorer=FixedScorer(0.95),
            chunk_size=1000,
            sleep=recording_sleep,
        )
        trace = "at run (src/big.ts:1:1)"

        bundle = await assembler.build_context(
            DefectReport(id="1", title="t", stacktrace=trace, repository="acme/shop")
        )

        chunks = [f for f in bundle.files if f.path == "src/big.ts"]
        assert len(chunks) == 3
        assert "".join(c.content for c in chunks) == big

    async def test_low_relevance_file_is_truncated(
        self, make_source, persistence: GraphPersistence, recording_sleep
    ) -> None:
        big = "x = 1;\n" * 400
        assembler = ContextAssembler(
            persistence,
            make_source({"src/big.ts": big}),
            scorer=FixedScorer(0.4),
            chunk_size=1000,
            sleep=recording_sleep,
        )
        bundle = await assembler.build_context(
            DefectReport(id="1", title="t", stacktrace="at src/big.ts:3:1", repository="acme/shop")
        )
        chunks = [f for f in bundle.files if f.path == "src/big.ts"]
        assert len(chunks) == 1
        assert len(chunks[0].content) <= 1000


# ======================================================================
# Stored dependency neighbours
# ======================================================================


class TestStoredNeighbors:
    async def _seed(self, persistence: GraphPersistence, repo: RepositoryRef) -> None:
        await persistence.clear_graph(repo)
        a = await persistence.upsert_node(CodeNode.for_file("a.ts", "export const a = 1;\n"))
        b = await persistence.upsert_node(CodeNode.for_file("b.ts", "export const b = 2;\n"))
        c = await persistence.upsert_node(CodeNode.for_file("c.ts", "export const c = 3;\n"))
        await persistence.upsert_edge(a.id, b.id, EdgeType.IMPORTS)
        await persistence.upsert_edge(c.id, a.id, EdgeType.IMPORTS)

    async def test_relational_neighbors_in_degraded_mode(
        self, repo: RepositoryRef, persistence: GraphPersistence
    ) -> None:
        await self._seed(persistence, repo)
        bundle = await ContextAssembler(persistence).build_context(
            DefectReport(id="1", title="Bug in a.ts", repository="acme/shop")
        )
        assert bundle.project_structure.dependencies == {"a.ts": ["b.ts"]}
        assert bundle.project_structure.dependents == {"a.ts": ["c.ts"]}
        assert bundle.files[0].relevance == pytest.approx(0.4)

    async def test_graph_index_neighbors(
        self, repo: RepositoryRef, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        persistence = GraphPersistence(session_factory, RustworkxGraphIndex())
        await self._seed(persistence, repo)
        bundle = await ContextAssembler(persistence).build_context(
            DefectReport(id="1", title="Bug in a.ts", repository="acme/shop")
        )
        assert bundle.project_structure.dependencies == {"a.ts": ["b.ts"]}
        assert bundle.project_structure.dependents == {"a.ts": ["c.ts"]}

    async def test_no_repository_means_no_stored_reads(
        self, repo: RepositoryRef, persistence: GraphPersistence
    ) -> None:
        await self._seed(persistence, repo)
        bundle = await ContextAssembler(persistence).build_context(
            DefectReport(id="1", title="Bug in a.ts")
        )
        assert bundle.project_structure.dependencies == {}
        assert [f.path for f in bundle.files] == ["issue-context"]


# ======================================================================
# Failures
# ======================================================================


class TestFailures:
    async def test_mention_failure_is_not_fatal(self, persistence: GraphPersistence) -> None:
        assembler = ContextAssembler(persistence, mention_extractor=FailingMentions())
        bundle = await assembler.build_context(DefectReport(id="1", title="Bug in a.ts"))
        assert bundle.metadata.error is False
        assert bundle.files[0].path == "issue-context"

    async def test_unexpected_failure_returns_fallback(
        self, repo: RepositoryRef, persistence: GraphPersistence
    ) -> None:
        await persistence.clear_graph(repo)
        await persistence.upsert_node(CodeNode.for_file("a.ts", "export {};\n"))
        assembler = ContextAssembler(persistence, scorer=FailingScorer())

        bundle = await assembler.build_context(
            DefectReport(
                id="1", title="Bug in a.ts", repository="acme/shop", code_snippets=("a()",)
            )
        )

        assert bundle.metadata.error is True
        assert bundle.metadata.error_message == "scorer exploded"
        assert [f.path for f in bundle.files] == [
            "issue-context",
            "code-snippet-1",
            "repository-info",
        ]

    async def test_storage_failure_returns_fallback(self) -> None:
        class BrokenPersistence:
            index = NullGraphIndex("down")

            async def holds_repository(self, repository: RepositoryRef) -> bool:
                raise ConnectionError("database is gone")

        assembler = ContextAssembler(BrokenPersistence())  # type: ignore[arg-type]
        bundle = await assembler.build_context(
            DefectReport(id="1", title="t", repository="acme/shop")
        )
        assert bundle.metadata.error is True
        assert "database is gone" in (bundle.metadata.error_message or "")
