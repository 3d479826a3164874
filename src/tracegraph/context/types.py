"""Context bundle types — immutable data containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class DefectReport:
    """A reported defect, as the assembler sees it."""

    id: str
    title: str
    stacktrace: str = ""
    description: str = ""
    labels: tuple[str, ...] = ()
    repository: str | None = None
    code_snippets: tuple[str, ...] = ()
    issue_url: str | None = None
    status: str = "new"

    @property
    def free_text(self) -> str:
        """Title, description and labels joined for mention extraction."""
        parts = [self.title, self.description, *self.labels]
        return "\n".join(p for p in parts if p)


@dataclass(frozen=True, slots=True)
class FileContext:
    """One bundle entry: a file (or chunk of one) and how much it matters."""

    path: str
    content: str
    relevance: float


@dataclass(frozen=True, slots=True)
class Relationship:
    source: str
    relationship: str
    target: str


@dataclass(frozen=True, slots=True)
class ProjectStructure:
    hierarchy: dict[str, list[str]] = field(default_factory=dict)
    dependencies: dict[str, list[str]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)
    test_coverage: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PackageDependencies:
    """``package.json`` dependency maps, name to version range."""

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BundleMetadata:
    total_files: int = 0
    files_from_trace: int = 0
    files_from_mentions: int = 0
    config_files: int = 0
    test_files: int = 0
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    repository: str | None = None
    labels: tuple[str, ...] = ()
    issue_url: str | None = None
    error: bool = False
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class ContextBundle:
    """Relevance-ranked code and metadata assembled for one defect.

    Built fresh per request and never persisted.  ``files`` is ordered by
    descending relevance.
    """

    files: tuple[FileContext, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    project_structure: ProjectStructure = field(default_factory=ProjectStructure)
    package_dependencies: PackageDependencies = field(default_factory=PackageDependencies)
    metadata: BundleMetadata = field(default_factory=BundleMetadata)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready projection with camelCase keys."""
        structure = self.project_structure
        packages = self.package_dependencies
        meta = self.metadata
        return {
            "files": [
                {"path": f.path, "content": f.content, "relevance": f.relevance}
                for f in self.files
            ],
            "relationships": [
                {"source": r.source, "relationship": r.relationship, "target": r.target}
                for r in self.relationships
            ],
            "projectStructure": {
                "hierarchy": dict(structure.hierarchy),
                "dependencies": dict(structure.dependencies),
                "dependents": dict(structure.dependents),
                "testCoverage": dict(structure.test_coverage),
            },
            "packageDependencies": {
                "dependencies": dict(packages.dependencies),
                "devDependencies": dict(packages.dev_dependencies),
                "peerDependencies": dict(packages.peer_dependencies),
            },
            "metadata": {
                "totalFiles": meta.total_files,
                "filesFromTrace": meta.files_from_trace,
                "filesFromMentions": meta.files_from_mentions,
                "configFiles": meta.config_files,
                "testFiles": meta.test_files,
                "generatedAt": meta.generated_at.isoformat(),
                "repository": meta.repository,
                "labels": list(meta.labels),
                "issueUrl": meta.issue_url,
                "error": meta.error,
                "errorMessage": meta.error_message,
            },
        }
