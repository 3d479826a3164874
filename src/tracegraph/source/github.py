"""GitHubSourceClient — repository contents over the GitHub REST API."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx

from tracegraph.exceptions import PathNotFoundError, RateLimitError, SourceAccessError
from tracegraph.source._ratelimit import SlidingWindowRateLimiter
from tracegraph.source.protocol import DirEntry, RepositoryRef

logger = logging.getLogger(__name__)


class GitHubSourceClient:
    """Fetches file content and directory listings from the contents API.

    Every request carries a bounded timeout and passes through a client-side
    sliding-window limiter; host-side throttling surfaces as
    ``RateLimitError`` with the host's reset hint.
    """

    def __init__(
        self,
        *,
        token: str = "",
        api_base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "tracegraph",
        }
        if token:
            headers["Authorization"] = f"token {token}"
        self._limiter = rate_limiter or SlidingWindowRateLimiter()
        self._client = httpx.AsyncClient(
            base_url=api_base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_access(self, repo: RepositoryRef) -> None:
        """Verify the repository is reachable with the configured credentials."""
        await self._get(f"/repos/{repo.owner}/{repo.name}", what=str(repo))

    async def get_content(self, repo: RepositoryRef, path: str) -> str | list[DirEntry]:
        url = f"/repos/{repo.owner}/{repo.name}/contents/{path.strip('/')}"
        params = {"ref": repo.ref} if repo.ref else None
        data = await self._get(url, params=params, what=f"{repo}:{path or '/'}")

        if isinstance(data, list):
            return [
                DirEntry(path=str(item["path"]), kind="dir" if item.get("type") == "dir" else "file")
                for item in data
                if item.get("type") in ("file", "dir")
            ]
        if isinstance(data, dict) and data.get("type") == "file":
            return await self._decode_file(data, what=f"{repo}:{path}")
        msg = f"Unsupported content type for {repo}:{path}: {data.get('type') if isinstance(data, dict) else type(data).__name__}"
        raise SourceAccessError(msg)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _decode_file(self, data: dict[str, Any], *, what: str) -> str:
        encoding = data.get("encoding")
        content = data.get("content")
        if encoding == "base64" and isinstance(content, str):
            return base64.b64decode(content).decode("utf-8", errors="replace")
        # Files over the contents API size cap come back without inline content
        download_url = data.get("download_url")
        if download_url:
            await self._limiter.acquire()
            try:
                resp = await self._client.get(download_url)
            except httpx.TransportError as e:
                msg = f"Network error downloading {what}: {e}"
                raise SourceAccessError(msg) from e
            self._raise_for_status(resp, what)
            return resp.text
        msg = f"No content available for {what}"
        raise SourceAccessError(msg)

    async def _get(
        self, url: str, *, params: dict[str, str] | None = None, what: str
    ) -> Any:
        await self._limiter.acquire()
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TransportError as e:
            msg = f"Network error fetching {what}: {e}"
            raise SourceAccessError(msg) from e
        self._raise_for_status(resp, what)
        return resp.json()

    def _raise_for_status(self, resp: httpx.Response, what: str) -> None:
        if resp.status_code == 404:
            msg = f"Not found: {what}"
            raise PathNotFoundError(msg)
        if resp.status_code in (403, 429) and _is_rate_limited(resp):
            reset_after = _reset_after(resp)
            logger.warning("Rate limited fetching %s (reset in %s s)", what, reset_after)
            msg = f"Rate limited fetching {what}"
            raise RateLimitError(msg, reset_after=reset_after)
        if resp.is_error:
            msg = f"HTTP {resp.status_code} fetching {what}"
            raise SourceAccessError(msg)


def _is_rate_limited(resp: httpx.Response) -> bool:
    if resp.status_code == 429:
        return True
    if resp.headers.get("retry-after") is not None:
        return True
    return resp.headers.get("x-ratelimit-remaining") == "0"


def _reset_after(resp: httpx.Response) -> float | None:
    retry_after = resp.headers.get("retry-after")
    if retry_after is not None:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            return None
    reset = resp.headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None
