"""Source access — remote repository listings and file content."""

from tracegraph.source._ratelimit import SlidingWindowRateLimiter
from tracegraph.source._retry import fetch_file
from tracegraph.source.github import GitHubSourceClient
from tracegraph.source.protocol import DirEntry, EntryKind, RepositoryRef, SourceClient

__all__ = [
    "DirEntry",
    "EntryKind",
    "GitHubSourceClient",
    "RepositoryRef",
    "SlidingWindowRateLimiter",
    "SourceClient",
    "fetch_file",
]
