"""Candidate discovery — stack traces, config files, tests, and textual patterns.

Everything here is pure text processing; fetching is the assembler's job.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re

from tracegraph.context.types import PackageDependencies
from tracegraph.parsing import ImportRef, resolve_import
from tracegraph.ref import normalize_repo_path

logger = logging.getLogger(__name__)

CONFIG_FILES: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "webpack.config.js",
    "vite.config.ts",
    ".env",
    ".eslintrc.json",
    ".eslintrc.js",
    "tailwind.config.js",
    "tailwind.config.ts",
    "postcss.config.js",
)

# ---------------------------------------------------------------------------
# Stack traces
# ---------------------------------------------------------------------------

# "at frame (path:line:col)" or "at path:line:col"
_FRAME = re.compile(
    r"^\s*at\s+(?:(?P<frame>.*?)\s+\()?(?P<location>[^\s()]+?):(?P<line>\d+):(?P<column>\d+)\)?\s*$",
    re.MULTILINE,
)

_LOCATION_PREFIXES = ("webpack:///", "webpack://", "file://")
_IGNORED_LOCATIONS = ("node:", "internal/", "<anonymous>", "native")


def parse_stack_trace(stacktrace: str) -> list[str]:
    """Repository-relative paths named by the frames of *stacktrace*, in order.

    Frames inside ``node_modules`` and runtime-internal frames are dropped.
    """
    paths: list[str] = []
    seen: set[str] = set()
    for match in _FRAME.finditer(stacktrace or ""):
        path = normalize_trace_location(match.group("location"))
        if path is None or path in seen:
            continue
        seen.add(path)
        paths.append(path)
    return paths


def normalize_trace_location(location: str) -> str | None:
    """Strip bundler and URL prefixes; ``None`` for frames to ignore."""
    if location.startswith(_IGNORED_LOCATIONS):
        return None
    for prefix in _LOCATION_PREFIXES:
        if location.startswith(prefix):
            location = location[len(prefix) :]
            break
    location = location.split("?", 1)[0]
    path = normalize_repo_path(location)
    if not path or path.startswith(".."):
        return None
    if "node_modules" in path.split("/"):
        return None
    if not posixpath.splitext(path)[1]:
        return None
    return path


# ---------------------------------------------------------------------------
# Imports (regex fallback for files the parser does not handle)
# ---------------------------------------------------------------------------

_IMPORT_PATTERNS = (
    re.compile(r"""\b(?:import|export)\s[^'";]*?\bfrom\s+['"]([^'"]+)['"]"""),
    re.compile(r"""\bimport\s+['"]([^'"]+)['"]"""),
    re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)"""),
)


def regex_imports(path: str, content: str) -> list[ImportRef]:
    """Textual import scan used when no syntax tree is available."""
    specifiers: list[str] = []
    for pattern in _IMPORT_PATTERNS:
        for match in pattern.finditer(content):
            if match.group(1) not in specifiers:
                specifiers.append(match.group(1))
    return [ImportRef(specifier=s, resolved_path=resolve_import(path, s)) for s in specifiers]


# ---------------------------------------------------------------------------
# Class hierarchy
# ---------------------------------------------------------------------------

_TYPE_HEADER = re.compile(r"\b(?:class|interface)\s+[A-Za-z_$][\w$]*(?P<rest>[^{;]*)\{")
_GENERIC_ARGS = re.compile(r"<[^<>]*>")
_EXTENDS = re.compile(r"\bextends\s+(?P<names>.+?)(?=\bimplements\b|$)", re.DOTALL)
_IMPLEMENTS = re.compile(r"\bimplements\s+(?P<names>.+)$", re.DOTALL)
_TYPE_NAME = re.compile(r"^[A-Za-z_$][\w$.]*$")


def extract_hierarchy(content: str) -> list[str]:
    """Names this file's classes and interfaces extend or implement.

    Textual only: ``class X extends Y implements A, B`` yields ``Y, A, B``.
    """
    names: list[str] = []
    for match in _TYPE_HEADER.finditer(content):
        header = match.group("rest")
        while _GENERIC_ARGS.search(header):
            header = _GENERIC_ARGS.sub("", header)
        for clause in (_EXTENDS, _IMPLEMENTS):
            found = clause.search(header)
            if found is None:
                continue
            for raw in found.group("names").split(","):
                name = raw.strip()
                if _TYPE_NAME.match(name) and name not in names:
                    names.append(name)
    return names


# ---------------------------------------------------------------------------
# Tests and manifests
# ---------------------------------------------------------------------------


def probe_test_paths(path: str) -> list[str]:
    """Conventional test locations for *path*: sibling ``.test``/``.spec`` and ``__tests__``."""
    directory, filename = posixpath.split(path)
    stem, ext = posixpath.splitext(filename)
    if not ext or ".test" in stem or ".spec" in stem:
        return []
    return [
        posixpath.join(directory, f"{stem}.test{ext}"),
        posixpath.join(directory, f"{stem}.spec{ext}"),
        posixpath.join(directory, "__tests__", f"{stem}.test{ext}"),
    ]


def parse_package_json(content: str) -> PackageDependencies:
    """Dependency maps from a ``package.json``; empty maps if it will not parse."""
    try:
        manifest = json.loads(content)
    except ValueError:
        logger.debug("package.json is not valid JSON; ignoring dependencies")
        return PackageDependencies()
    if not isinstance(manifest, dict):
        return PackageDependencies()
    return PackageDependencies(
        dependencies=_string_map(manifest.get("dependencies")),
        dev_dependencies=_string_map(manifest.get("devDependencies")),
        peer_dependencies=_string_map(manifest.get("peerDependencies")),
    )


def _string_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}
