"""Tests for ScanSettings and the error hierarchy."""

from datetime import timedelta
from pathlib import Path

import pytest

from starmap.config import ScanSettings
from starmap.errors import CacheReadError, ConfigError, FetchError, ParseError, StarmapError


class TestScanSettings:
    """Tests for defaults, environment overrides and validation."""

    def test_defaults(self):
        settings = ScanSettings()
        assert settings.chunk_size == 100
        assert settings.cache_ttl == timedelta(hours=24)
        assert settings.cache_dir == Path("cache") / "systems"
        settings.validate()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STARMAP_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("STARMAP_CACHE_TTL_HOURS", "6")
        monkeypatch.setenv("STARMAP_CHUNK_SIZE", "25")
        monkeypatch.setenv("STARMAP_MAX_WORKERS", "3")
        monkeypatch.setenv("ESI_USER_AGENT", "tests/1.0")

        settings = ScanSettings.from_env()

        assert settings.cache_dir == tmp_path
        assert settings.cache_ttl == timedelta(hours=6)
        assert settings.chunk_size == 25
        assert settings.max_workers == 3
        assert settings.user_agent == "tests/1.0"

    def test_from_env_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("STARMAP_CHUNK_SIZE", "lots")
        with pytest.raises(ConfigError):
            ScanSettings.from_env()

    def test_from_env_validates(self, monkeypatch):
        monkeypatch.setenv("STARMAP_CHUNK_SIZE", "0")
        with pytest.raises(ConfigError):
            ScanSettings.from_env()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_size": 0},
            {"max_workers": -1},
            {"poll_interval": 0},
            {"cache_ttl": timedelta(0)},
            {"retry_attempts": 0},
        ],
    )
    def test_validate_rejects(self, overrides):
        with pytest.raises(ConfigError):
            ScanSettings(**overrides).validate()


class TestErrors:
    """Tests for the error taxonomy."""

    @pytest.mark.parametrize("error_type", [FetchError, CacheReadError, ParseError, ConfigError])
    def test_hierarchy(self, error_type):
        assert issubclass(error_type, StarmapError)

    def test_fetch_error_carries_id(self):
        error = FetchError(30000142, "timeout")
        assert error.system_id == 30000142
        assert "30000142" in str(error)

    def test_parse_error_carries_clause(self):
        error = ParseError("not a clause")
        assert error.clause == "not a clause"
        assert "'not a clause'" in str(error)

    def test_cache_read_error_carries_path(self):
        error = CacheReadError(Path("/tmp/1.json"), "bad json")
        assert error.path == Path("/tmp/1.json")
