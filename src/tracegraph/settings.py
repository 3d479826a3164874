"""Settings — environment-backed configuration for the service facade."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Components take explicit keyword arguments; only ``TraceGraph`` reads a
    ``Settings`` and wires them together.
    """

    database_url: str = "sqlite+aiosqlite:///tracegraph.db"

    github_token: str = ""
    github_api_base_url: str = "https://api.github.com"
    http_timeout: float = 30.0
    rate_limit_requests: int = 60
    rate_limit_window: float = 60.0

    neo4j_uri: str = ""
    """Empty means the in-process rustworkx index is used."""
    neo4j_username: str = "neo4j"
    neo4j_password: str = ""
    neo4j_database: str = "neo4j"

    walk_batch_size: int = 5
    walk_delay: float = 1.0
    file_batch_size: int = 10
    batch_delay: float = 0.5
    fetch_attempts: int = 3
    fetch_backoff: float = 2.0

    chunk_size: int = 1000

    @staticmethod
    def load() -> Settings:
        """Build settings from ``TRACEGRAPH_*``, ``GITHUB_*`` and ``NEO4J_*`` variables."""
        defaults = Settings()
        return Settings(
            database_url=_env_str("TRACEGRAPH_DATABASE_URL", defaults.database_url).strip(),
            github_token=_env_str("GITHUB_TOKEN").strip(),
            github_api_base_url=_env_str(
                "GITHUB_API_BASE_URL", defaults.github_api_base_url
            ).strip().rstrip("/"),
            http_timeout=_env_float("TRACEGRAPH_HTTP_TIMEOUT", defaults.http_timeout),
            rate_limit_requests=_env_int("TRACEGRAPH_RATE_LIMIT", defaults.rate_limit_requests),
            rate_limit_window=_env_float(
                "TRACEGRAPH_RATE_LIMIT_WINDOW", defaults.rate_limit_window
            ),
            neo4j_uri=_env_str("NEO4J_URI").strip(),
            neo4j_username=_env_str("NEO4J_USERNAME", defaults.neo4j_username).strip(),
            neo4j_password=_env_str("NEO4J_PASSWORD"),
            neo4j_database=_env_str("NEO4J_DATABASE", defaults.neo4j_database).strip(),
            walk_batch_size=_env_int("TRACEGRAPH_WALK_BATCH_SIZE", defaults.walk_batch_size),
            walk_delay=_env_float("TRACEGRAPH_WALK_DELAY", defaults.walk_delay),
            file_batch_size=_env_int("TRACEGRAPH_FILE_BATCH_SIZE", defaults.file_batch_size),
            batch_delay=_env_float("TRACEGRAPH_BATCH_DELAY", defaults.batch_delay),
            fetch_attempts=_env_int("TRACEGRAPH_FETCH_ATTEMPTS", defaults.fetch_attempts),
            fetch_backoff=_env_float("TRACEGRAPH_FETCH_BACKOFF", defaults.fetch_backoff),
            chunk_size=_env_int("TRACEGRAPH_CHUNK_SIZE", defaults.chunk_size),
        )
