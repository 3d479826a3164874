"""Mention extraction — file paths referenced in a defect's free text."""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from tracegraph.ref import normalize_repo_path


@runtime_checkable
class MentionExtractor(Protocol):
    """Proposes repository paths referenced by free text.

    Implementations may call out to a language model; the assembler treats
    any exception as "no mentions".
    """

    async def extract_relevant_files(self, text: str) -> list[str]: ...


_PATH_TOKEN = re.compile(
    r"(?<![\w/.-])((?:[\w@.-]+/)*[\w@.-]+\.(?:tsx?|jsx?|mjs|cjs|json))(?![\w/])"
)


class RegexMentionExtractor:
    """Finds path-like tokens (``src/app.tsx``, ``package.json``) in text."""

    async def extract_relevant_files(self, text: str) -> list[str]:
        found: list[str] = []
        seen: set[str] = set()
        for match in _PATH_TOKEN.finditer(text or ""):
            path = normalize_repo_path(match.group(1))
            if not path or path.startswith("..") or "node_modules" in path.split("/"):
                continue
            if path not in seen:
                seen.add(path)
                found.append(path)
        return found
