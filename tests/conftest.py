"""Shared fixtures for tracegraph tests."""

from __future__ import annotations

import posixpath
from collections import Counter
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tracegraph.exceptions import PathNotFoundError, SourceAccessError
from tracegraph.graph import GraphPersistence, NullGraphIndex, create_tables
from tracegraph.source.protocol import DirEntry, RepositoryRef

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class FakeSourceClient:
    """In-memory repository: ``files`` maps paths to content.

    Directories are implied by file paths.  Paths in ``failing`` raise
    ``SourceAccessError`` on every request; ``calls`` counts requests per path.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        *,
        failing: set[str] | None = None,
    ) -> None:
        self.files = dict(files or {})
        self.failing = set(failing or ())
        self.calls: Counter[str] = Counter()
        self.closed = False

    async def get_content(self, repo: RepositoryRef, path: str) -> str | list[DirEntry]:
        path = path.strip("/")
        self.calls[path] += 1
        if path in self.failing:
            msg = f"simulated failure for {path}"
            raise SourceAccessError(msg)
        if path in self.files:
            return self.files[path]

        prefix = f"{path}/" if path else ""
        children: dict[str, str] = {}
        for file_path in self.files:
            if not file_path.startswith(prefix):
                continue
            head = file_path[len(prefix) :].split("/", 1)[0]
            child = posixpath.join(path, head) if path else head
            children[child] = "file" if child in self.files else "dir"
        if not children and path:
            msg = f"{path} not found"
            raise PathNotFoundError(msg)
        return [DirEntry(path=p, kind=k) for p, k in sorted(children.items())]  # type: ignore[arg-type]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def repo() -> RepositoryRef:
    return RepositoryRef(owner="acme", name="shop")


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with the tracegraph tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def persistence(session_factory: async_sessionmaker[AsyncSession]) -> GraphPersistence:
    """Persistence in degraded mode: relational store only."""
    return GraphPersistence(session_factory, NullGraphIndex("tests"))


@pytest.fixture
def make_source() -> type[FakeSourceClient]:
    """The in-memory ``SourceClient`` class, for tests that build their own."""
    return FakeSourceClient


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested through :func:`recording_sleep`."""
    return []


@pytest.fixture
def recording_sleep(sleeps: list[float]):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep
