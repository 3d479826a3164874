"""Tests for environment-backed settings."""

from __future__ import annotations

import pytest

from tracegraph.settings import Settings


class TestSettingsLoad:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("GITHUB_TOKEN", "NEO4J_URI", "TRACEGRAPH_DATABASE_URL", "TRACEGRAPH_RATE_LIMIT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.load()
        assert settings == Settings()
        assert settings.neo4j_uri == ""
        assert settings.rate_limit_requests == 60

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", " ghp_abc \n")
        monkeypatch.setenv("GITHUB_API_BASE_URL", "https://ghe.example.test/api/v3/")
        monkeypatch.setenv("NEO4J_URI", "bolt://graph:7687")
        monkeypatch.setenv("TRACEGRAPH_FILE_BATCH_SIZE", "25")
        monkeypatch.setenv("TRACEGRAPH_RATE_LIMIT_WINDOW", "30.5")

        settings = Settings.load()

        assert settings.github_token == "ghp_abc"
        assert settings.github_api_base_url == "https://ghe.example.test/api/v3"
        assert settings.neo4j_uri == "bolt://graph:7687"
        assert settings.file_batch_size == 25
        assert settings.rate_limit_window == 30.5

    def test_bad_numbers_fall_back(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("TRACEGRAPH_CHUNK_SIZE", "big")
        monkeypatch.setenv("TRACEGRAPH_BATCH_DELAY", "soon")
        with caplog.at_level("WARNING", logger="tracegraph.settings"):
            settings = Settings.load()
        assert settings.chunk_size == 1000
        assert settings.batch_delay == 0.5
        assert "TRACEGRAPH_CHUNK_SIZE" in caplog.text

    def test_settings_are_frozen(self) -> None:
        with pytest.raises(AttributeError):
            Settings().chunk_size = 10  # type: ignore[misc]
