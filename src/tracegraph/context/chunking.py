"""Line-aware content chunking for bundle entries."""

from __future__ import annotations

DEFAULT_CHUNK_SIZE = 1000
HIGH_RELEVANCE_THRESHOLD = 0.8


def max_chunks_for(relevance: float) -> int:
    """Highly relevant files keep up to three chunks; everything else one."""
    return 3 if relevance > HIGH_RELEVANCE_THRESHOLD else 1


def chunk_content(
    content: str,
    preferred_size: int = DEFAULT_CHUNK_SIZE,
    max_chunks: int = 1,
) -> list[str]:
    """Split *content* into at most *max_chunks* pieces of about *preferred_size*.

    Each cut is made just after the newline nearest the target offset, or at
    the target itself when the window has no newline.  The final chunk takes
    the remaining text, so concatenating the chunks reproduces *content*
    whenever it fits in *max_chunks*; with ``max_chunks=1`` longer content is
    truncated to one chunk.
    """
    if preferred_size <= 0:
        raise ValueError("preferred_size must be positive")
    if max_chunks < 1:
        raise ValueError("max_chunks must be at least 1")
    if len(content) <= preferred_size:
        return [content] if content else []

    chunks: list[str] = []
    start = 0
    while start < len(content) and len(chunks) < max_chunks:
        remaining = len(content) - start
        last = len(chunks) == max_chunks - 1
        if remaining <= preferred_size or (last and max_chunks > 1):
            chunks.append(content[start:])
            break
        end = _nearest_break(content, start, start + preferred_size)
        chunks.append(content[start:end])
        start = end
    return chunks


def _nearest_break(content: str, start: int, target: int) -> int:
    """Offset just past the newline closest to *target* within ``(start, 2*target-start)``."""
    window = target - start
    before = content.rfind("\n", start, target)
    after = content.find("\n", target, min(len(content), target + window))
    candidates = [i + 1 for i in (before, after) if i != -1 and i + 1 > start]
    if not candidates:
        return target
    return min(candidates, key=lambda i: abs(i - target))
