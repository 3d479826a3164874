"""DefectRecord model — stored defect reports, resolved by id for context builds."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel

if TYPE_CHECKING:
    from tracegraph.context.types import DefectReport


class DefectRecord(SQLModel, table=True):
    """A defect as delivered by the reporting integration.

    ``context_json`` holds the free-form payload: ``codeSnippets``,
    ``repository``, ``labels``, ``description`` and ``issueUrl``.
    """

    __tablename__ = "defects"

    id: int | None = Field(default=None, primary_key=True)
    external_id: str = Field(default="", index=True)
    title: str = Field(default="")
    stacktrace: str = Field(default="", sa_type=Text)
    status: str = Field(default="new")
    context_json: str = Field(default="{}", sa_type=Text)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )

    def get_context(self) -> dict[str, Any]:
        try:
            data = json.loads(self.context_json or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def to_report(self) -> DefectReport:
        """Convert to the immutable report the context assembler consumes."""
        from tracegraph.context.types import DefectReport

        ctx = self.get_context()
        snippets = ctx.get("codeSnippets") or []
        labels = ctx.get("labels") or []
        repository = ctx.get("repository") or None
        return DefectReport(
            id=str(self.id) if self.id is not None else self.external_id,
            title=self.title,
            stacktrace=self.stacktrace,
            description=str(ctx.get("description") or ""),
            labels=tuple(str(label) for label in labels),
            repository=str(repository) if repository else None,
            code_snippets=tuple(str(s) for s in snippets),
            issue_url=ctx.get("issueUrl") or None,
            status=self.status,
        )
