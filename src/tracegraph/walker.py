"""RepositoryWalker — breadth-first enumeration of analyzable repository paths."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING

from tracegraph.exceptions import SourceAccessError
from tracegraph.parsing.filters import is_analyzable, is_excluded_dir
from tracegraph.source.protocol import DirEntry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracegraph.source.protocol import RepositoryRef, SourceClient

logger = logging.getLogger(__name__)


class RepositoryWalker:
    """Walks a repository tree through a ``SourceClient``.

    The work queue is drained *batch_size* entries at a time; directory
    listings inside one batch are issued concurrently, and the walker pauses
    *delay* seconds between batches to stay under host rate limits.  A
    directory that fails to list is logged and skipped, and directories
    *prune_dir* rejects (dependency caches, build output) are never listed.
    """

    def __init__(
        self,
        client: SourceClient,
        *,
        batch_size: int = 5,
        delay: float = 1.0,
        path_filter: Callable[[str], bool] = is_analyzable,
        prune_dir: Callable[[str], bool] = is_excluded_dir,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._batch_size = max(batch_size, 1)
        self._delay = delay
        self._filter = path_filter
        self._prune_dir = prune_dir
        self._sleep = sleep

    async def list_all_files(self, repo: RepositoryRef) -> list[str]:
        """Return every analyzable file path, in breadth-first discovery order.

        Raises ``SourceAccessError`` if the root itself cannot be listed.
        """
        root = await self._client.get_content(repo, "")
        if not isinstance(root, list):
            msg = f"Expected a directory listing for the root of {repo}"
            raise SourceAccessError(msg)

        queue: deque[DirEntry] = deque()
        seen: set[tuple[str, str]] = set()
        self._enqueue(root, queue, seen)
        files: list[str] = []
        batches = 0

        while queue:
            batch = [queue.popleft() for _ in range(min(self._batch_size, len(queue)))]
            results = await asyncio.gather(*(self._visit(repo, entry) for entry in batch))

            for entry, children in zip(batch, results, strict=True):
                if entry.kind == "file":
                    if self._filter(entry.path):
                        files.append(entry.path)
                    continue
                self._enqueue(children, queue, seen)

            batches += 1
            if queue and self._delay > 0:
                await self._sleep(self._delay)

        logger.info(
            "Walked %s: %d analyzable file(s) in %d batch(es)", repo, len(files), batches
        )
        return files

    def _enqueue(
        self, entries: list[DirEntry], queue: deque[DirEntry], seen: set[tuple[str, str]]
    ) -> None:
        for entry in entries:
            key = (entry.path, entry.kind)
            if key in seen:
                continue
            seen.add(key)
            if entry.kind == "dir" and self._prune_dir(entry.path):
                continue
            queue.append(entry)

    async def _visit(self, repo: RepositoryRef, entry: DirEntry) -> list[DirEntry]:
        if entry.kind != "dir":
            return []
        try:
            listing = await self._client.get_content(repo, entry.path)
        except Exception:
            logger.warning("Failed to list directory %s; skipping", entry.path, exc_info=True)
            return []
        if not isinstance(listing, list):
            logger.warning("Expected a directory listing for %s; skipping", entry.path)
            return []
        return listing
