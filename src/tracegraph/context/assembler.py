"""ContextAssembler — ranked, chunked code context for one defect report."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tracegraph.analyzer import link_target
from tracegraph.context.chunking import DEFAULT_CHUNK_SIZE, chunk_content, max_chunks_for
from tracegraph.context.discovery import (
    CONFIG_FILES,
    extract_hierarchy,
    parse_package_json,
    parse_stack_trace,
    probe_test_paths,
    regex_imports,
)
from tracegraph.context.fallback import build_fallback, defect_entries
from tracegraph.context.mentions import MentionExtractor, RegexMentionExtractor
from tracegraph.context.scoring import CandidateSignals, HeuristicScorer, RelevanceScorer
from tracegraph.context.types import (
    BundleMetadata,
    ContextBundle,
    DefectReport,
    FileContext,
    PackageDependencies,
    ProjectStructure,
    Relationship,
)
from tracegraph.exceptions import ParseError, PathNotFoundError, SourceAccessError
from tracegraph.graph.protocols import SupportsDependencyQueries
from tracegraph.parsing import ImportRef, ParserRegistry
from tracegraph.source._retry import fetch_file
from tracegraph.source.protocol import RepositoryRef

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracegraph.graph.persistence import GraphPersistence
    from tracegraph.source.protocol import SourceClient

logger = logging.getLogger(__name__)

TEST_FILE_RELEVANCE = 0.7


@dataclass
class _Candidate:
    path: str
    content: str
    from_trace: bool = False
    from_mention: bool = False
    is_config: bool = False


class ContextAssembler:
    """Builds a :class:`ContextBundle` for a defect report.

    Candidates come from the stack trace, from mention extraction over the
    report's free text, and from well-known config files.  When the stored
    graph was built from the defect's repository, file content and import
    neighbours come from the store first; everything else is fetched live.
    A defect without a repository never reads the store.  Any unexpected
    failure resolves to the fallback bundle; ``build_context`` never raises.
    """

    def __init__(
        self,
        persistence: GraphPersistence,
        client: SourceClient | None = None,
        *,
        parsers: ParserRegistry | None = None,
        mention_extractor: MentionExtractor | None = None,
        scorer: RelevanceScorer | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        fetch_attempts: int = 3,
        fetch_backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._persistence = persistence
        self._client = client
        self._parsers = parsers or ParserRegistry()
        self._mentions: MentionExtractor = mention_extractor or RegexMentionExtractor()
        self._scorer: RelevanceScorer = scorer or HeuristicScorer()
        self._chunk_size = chunk_size
        self._fetch_attempts = fetch_attempts
        self._fetch_backoff = fetch_backoff
        self._sleep = sleep

    async def build_context(self, defect: DefectReport) -> ContextBundle:
        try:
            return await self._assemble(defect)
        except Exception as e:
            logger.warning(
                "Context assembly failed for defect %s; using fallback", defect.id, exc_info=True
            )
            return build_fallback(defect, error=e)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def _assemble(self, defect: DefectReport) -> ContextBundle:
        repo = _repository_of(defect)
        # Stored nodes are only trusted for the repository they were built from
        use_store = repo is not None and await self._persistence.holds_repository(repo)
        cache: dict[str, str | None] = {}

        async def read(path: str) -> str | None:
            if path not in cache:
                cache[path] = await self._read(repo, path, use_store=use_store)
            return cache[path]

        # 1. Candidates, in discovery order
        candidates: dict[str, _Candidate] = {}
        for path in parse_stack_trace(defect.stacktrace):
            content = await read(path)
            if content is not None:
                candidates.setdefault(path, _Candidate(path, content)).from_trace = True
        for path in await self._mentioned_paths(defect):
            content = await read(path)
            if content is not None:
                candidates.setdefault(path, _Candidate(path, content)).from_mention = True
        for path in CONFIG_FILES:
            content = await read(path)
            if content is not None:
                candidates.setdefault(path, _Candidate(path, content)).is_config = True

        # 2. Dependency graph
        dependencies: dict[str, list[str]] = {}
        dependents: dict[str, list[str]] = {}
        for candidate in candidates.values():
            stored_deps, stored_dependents = (
                await self._stored_neighbors(candidate.path) if use_store else ([], [])
            )
            known = frozenset(stored_deps)
            for imp in self._imports(candidate.path, candidate.content):
                if imp.resolved_path is not None:
                    target = link_target(imp.resolved_path, known)
                    _append(dependencies, candidate.path, target)
                    _append(dependents, target, candidate.path)
            for target in stored_deps:
                _append(dependencies, candidate.path, target)
            for source in stored_dependents:
                _append(dependents, candidate.path, source)

        # 3. Hierarchy
        hierarchy: dict[str, list[str]] = {}
        for candidate in candidates.values():
            if candidate.is_config:
                continue
            names = extract_hierarchy(candidate.content)
            if names:
                hierarchy[candidate.path] = names

        # 4 + 5. Score and chunk
        entries: list[FileContext] = []
        for candidate in candidates.values():
            relevance = self._scorer.score(
                CandidateSignals(
                    from_trace=candidate.from_trace,
                    from_mention=candidate.from_mention,
                    is_config=candidate.is_config,
                    dependency_count=len(dependencies.get(candidate.path, [])),
                    dependent_count=len(dependents.get(candidate.path, [])),
                )
            )
            for chunk in chunk_content(
                candidate.content, self._chunk_size, max_chunks_for(relevance)
            ):
                entries.append(FileContext(candidate.path, chunk, relevance))

        # 6. Tests
        test_coverage: dict[str, list[str]] = {}
        included = set(candidates)
        for candidate in list(candidates.values()):
            if candidate.is_config:
                continue
            for test_path in probe_test_paths(candidate.path):
                if test_path in included:
                    continue
                content = await read(test_path)
                if content is None:
                    continue
                included.add(test_path)
                _append(test_coverage, candidate.path, test_path)
                for chunk in chunk_content(content, self._chunk_size, 1):
                    entries.append(FileContext(test_path, chunk, TEST_FILE_RELEVANCE))

        # 7. Never empty
        if not entries:
            logger.info("No repository files found for defect %s; using report fields", defect.id)
            entries = defect_entries(defect)

        # 8. Manifest, relationships, metadata
        manifest = candidates.get("package.json")
        packages = (
            parse_package_json(manifest.content) if manifest is not None else PackageDependencies()
        )
        relationships = tuple(
            Relationship(source, "imports", target)
            for source, targets in dependencies.items()
            for target in targets
        )
        entries.sort(key=lambda f: -f.relevance)

        values = list(candidates.values())
        bundle = ContextBundle(
            files=tuple(entries),
            relationships=relationships,
            project_structure=ProjectStructure(
                hierarchy=hierarchy,
                dependencies=dependencies,
                dependents=dependents,
                test_coverage=test_coverage,
            ),
            package_dependencies=packages,
            metadata=BundleMetadata(
                total_files=len({f.path for f in entries}),
                files_from_trace=sum(c.from_trace for c in values),
                files_from_mentions=sum(c.from_mention for c in values),
                config_files=sum(c.is_config for c in values),
                test_files=sum(len(v) for v in test_coverage.values()),
                repository=defect.repository,
                labels=tuple(defect.labels),
                issue_url=defect.issue_url,
            ),
        )
        logger.info(
            "Built context for defect %s: %d entries from %d file(s)",
            defect.id,
            len(bundle.files),
            bundle.metadata.total_files,
        )
        return bundle

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _mentioned_paths(self, defect: DefectReport) -> list[str]:
        text = defect.free_text
        if not text:
            return []
        try:
            return list(await self._mentions.extract_relevant_files(text))
        except Exception:
            logger.warning("Mention extraction failed for defect %s", defect.id, exc_info=True)
            return []

    async def _read(
        self, repo: RepositoryRef | None, path: str, *, use_store: bool
    ) -> str | None:
        """Stored content, else a live fetch; ``None`` when neither has it."""
        if use_store:
            stored = await self._persistence.get_file_content(path)
            if stored is not None:
                return stored
        if repo is None or self._client is None:
            return None
        try:
            return await fetch_file(
                self._client,
                repo,
                path,
                attempts=self._fetch_attempts,
                backoff=self._fetch_backoff,
                sleep=self._sleep,
            )
        except PathNotFoundError:
            return None
        except SourceAccessError as e:
            logger.info("Could not fetch %s from %s: %s", path, repo, e)
            return None

    def _imports(self, path: str, content: str) -> list[ImportRef]:
        try:
            imports = self._parsers.imports_of(path, content)
        except ParseError:
            logger.debug("Parse failed for %s; scanning imports textually", path)
            imports = None
        if imports is None:
            return regex_imports(path, content)
        return imports

    async def _stored_neighbors(self, path: str) -> tuple[list[str], list[str]]:
        index = self._persistence.index
        if index.available and isinstance(index, SupportsDependencyQueries):
            return index.dependencies(path), index.dependents(path)
        return await self._persistence.import_neighbors(path)


def _repository_of(defect: DefectReport) -> RepositoryRef | None:
    if not defect.repository:
        return None
    try:
        return RepositoryRef.parse(defect.repository)
    except ValueError:
        logger.warning("Ignoring malformed repository %r on defect %s", defect.repository, defect.id)
        return None


def _append(mapping: dict[str, list[str]], key: str, value: str) -> None:
    values = mapping.setdefault(key, [])
    if value not in values:
        values.append(value)
