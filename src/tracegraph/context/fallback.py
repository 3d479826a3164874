"""Fallback context — a bundle built from the defect report alone."""

from __future__ import annotations

import logging

from tracegraph.context.types import BundleMetadata, ContextBundle, DefectReport, FileContext

logger = logging.getLogger(__name__)

ISSUE_CONTEXT_PATH = "issue-context"
REPOSITORY_INFO_PATH = "repository-info"
SNIPPET_PATH_PREFIX = "code-snippet"


def defect_entries(defect: DefectReport) -> list[FileContext]:
    """Issue context (1.0), repository info (0.8) and one entry per snippet (0.9)."""
    entries = [FileContext(ISSUE_CONTEXT_PATH, _issue_text(defect), 1.0)]
    if defect.repository:
        owner, _, name = defect.repository.partition("/")
        text = f"Repository: {defect.repository}\nOwner: {owner}\nName: {name}"
        if defect.issue_url:
            text += f"\nIssue: {defect.issue_url}"
        entries.append(FileContext(REPOSITORY_INFO_PATH, text, 0.8))
    for number, snippet in enumerate((s for s in defect.code_snippets if s.strip()), start=1):
        entries.append(FileContext(f"{SNIPPET_PATH_PREFIX}-{number}", snippet, 0.9))
    return entries


def build_fallback(defect: DefectReport, error: BaseException | None = None) -> ContextBundle:
    """Minimal bundle for when assembly failed.  Never raises."""
    try:
        entries = defect_entries(defect)
    except Exception:
        logger.exception("Could not build fallback entries for defect %s", defect.id)
        entries = [FileContext(ISSUE_CONTEXT_PATH, str(defect.title), 1.0)]

    entries.sort(key=lambda f: -f.relevance)
    return ContextBundle(
        files=tuple(entries),
        metadata=BundleMetadata(
            total_files=len(entries),
            repository=defect.repository,
            labels=tuple(defect.labels),
            issue_url=defect.issue_url,
            error=True,
            error_message=str(error) if error is not None else None,
        ),
    )


def _issue_text(defect: DefectReport) -> str:
    lines = [f"Title: {defect.title}"]
    if defect.repository:
        lines.append(f"Repository: {defect.repository}")
    if defect.description:
        lines.append(f"Description: {defect.description}")
    if defect.labels:
        lines.append(f"Labels: {', '.join(defect.labels)}")
    if defect.stacktrace:
        lines.append(f"Stack trace:\n{defect.stacktrace}")
    return "\n".join(lines)
