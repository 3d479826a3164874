"""Analyzable-file filter — which repository paths are worth parsing."""

from __future__ import annotations

import fnmatch
import posixpath

ANALYZABLE_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"})

# Any path segment equal to one of these excludes the path
EXCLUDED_DIRS = frozenset({
    # Dependency caches
    "node_modules", "bower_components", "vendor", "jspm_packages",
    # Build output
    "dist", "build", "out", "coverage", ".next", ".nuxt", ".cache", ".turbo",
    # Version control
    ".git", ".svn", ".hg",
    # Tests and fixtures
    "__tests__", "__mocks__", "test", "tests", "spec", "e2e",
    "fixtures", "__fixtures__",
    # Examples and docs
    "examples", "example", "docs", "doc",
})

EXCLUDED_FILE_PATTERNS = (
    "*.test.*",
    "*.spec.*",
    "*.d.ts",
    "*.d.mts",
    "*.d.cts",
    "*.min.js",
    "*.bundle.js",
    "*.chunk.js",
)


def is_analyzable(path: object) -> bool:
    """Return whether *path* should be fetched and parsed.

    Total: never raises, any non-string or empty input is rejected.

    >>> is_analyzable("src/a.ts")
    True
    >>> is_analyzable("node_modules/x.ts")
    False
    """
    if not isinstance(path, str) or not path.strip():
        return False

    segments = [s for s in path.replace("\\", "/").split("/") if s]
    if not segments:
        return False

    *dirs, filename = segments
    if any(d.lower() in EXCLUDED_DIRS for d in dirs):
        return False

    lowered = filename.lower()
    if any(fnmatch.fnmatchcase(lowered, pattern) for pattern in EXCLUDED_FILE_PATTERNS):
        return False

    return posixpath.splitext(lowered)[1] in ANALYZABLE_EXTENSIONS


def is_excluded_dir(path: str) -> bool:
    """Return whether nothing under directory *path* can be analyzable."""
    return any(s.lower() in EXCLUDED_DIRS for s in path.replace("\\", "/").split("/") if s)
