"""Bounded retry for file fetches."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tracegraph.exceptions import PathNotFoundError, RateLimitError, SourceAccessError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracegraph.source.protocol import RepositoryRef, SourceClient

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_WAIT = 60.0
"""Longest host-requested wait honoured before falling back to plain backoff."""


async def fetch_file(
    client: SourceClient,
    repo: RepositoryRef,
    path: str,
    *,
    attempts: int = 3,
    backoff: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """Fetch file text, retrying transient failures up to *attempts* times.

    Missing paths and directory listings are not retried.  The last error is
    re-raised once attempts are exhausted.
    """
    last_error: SourceAccessError | None = None
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            content = await client.get_content(repo, path)
        except PathNotFoundError:
            raise
        except SourceAccessError as e:
            last_error = e
            if attempt >= attempts:
                break
            delay = backoff
            if isinstance(e, RateLimitError) and e.reset_after is not None:
                if e.reset_after <= MAX_RATE_LIMIT_WAIT:
                    delay = max(backoff, e.reset_after)
            logger.info(
                "Fetch of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                path, attempt, attempts, delay, e,
            )
            await sleep(delay)
            continue

        if isinstance(content, str):
            return content
        msg = f"Expected file content for {path} but got a directory listing"
        raise SourceAccessError(msg)

    assert last_error is not None
    raise last_error
