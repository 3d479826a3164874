"""Custom exception hierarchy for tracegraph."""


class TraceGraphError(Exception):
    """Base exception for all tracegraph errors."""


class SourceAccessError(TraceGraphError):
    """Raised when the repository host cannot serve a listing or file."""


class RateLimitError(SourceAccessError):
    """Raised when the repository host rejects a request for rate limiting.

    ``reset_after`` is the number of seconds the host asked us to wait, when
    it said so.
    """

    def __init__(self, message: str, reset_after: float | None = None) -> None:
        super().__init__(message)
        self.reset_after = reset_after


class PathNotFoundError(SourceAccessError):
    """Raised when a repository path does not exist."""


class ParseError(TraceGraphError):
    """Raised when the parser cannot produce any tree at all."""


class StorageError(TraceGraphError):
    """Raised on relational store failures (connection, constraint, I/O)."""


class DanglingReferenceError(TraceGraphError):
    """Raised when an edge references a node id that does not exist."""

    def __init__(self, source_id: int, target_id: int, missing: list[int]) -> None:
        ids = ", ".join(str(i) for i in missing)
        super().__init__(f"Edge {source_id} -> {target_id} references missing node(s): {ids}")
        self.source_id = source_id
        self.target_id = target_id
        self.missing = missing


class AnalysisInProgressError(TraceGraphError):
    """Raised when a repository analysis is started while one is running."""


class RepositoryAnalysisError(TraceGraphError):
    """Raised by the facade when a repository analysis cannot complete.

    ``reason`` is the short human-readable cause, ``details`` the actionable
    hint shown next to it.
    """

    def __init__(self, reason: str, details: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.details = details


class DefectNotFoundError(TraceGraphError):
    """Raised when a defect id has no stored report."""
