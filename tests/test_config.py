"""
Tests for environment-driven configuration.

CHANGELOG:
- 2026-09-22: Blynk and weather settings (STORY-011)
- 2026-09-14: Initial creation (STORY-001)

TODO:
- None
"""

import pytest
from pydantic import ValidationError

from solarfarm.config import FarmSettings


class TestFarmSettings:
    """Defaults, env loading and validation."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("PANEL_COUNT", "GRID_COLUMNS", "BACKGROUND_TASKS_ENABLED"):
            monkeypatch.delenv(name, raising=False)
        settings = FarmSettings()
        assert settings.database_url == ""
        assert settings.panel_count == 200
        assert settings.grid_columns == 20
        assert settings.persist_interval_s == 30
        assert settings.failure_threshold == 3
        assert settings.background_tasks_enabled is True

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://farm:pw@db:5432/farm")
        monkeypatch.setenv("PERSIST_INTERVAL_S", "15")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = FarmSettings()
        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.persist_interval_s == 15
        assert settings.log_level == "DEBUG"
        assert settings.panel_count == 6

    def test_reads_dotenv_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.delenv("PANEL_COUNT", raising=False)
        (tmp_path / ".env").write_text("PANEL_COUNT=12\n", encoding="utf-8")
        assert FarmSettings().panel_count == 12

    def test_sync_driver_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://farm:pw@db:5432/farm")
        with pytest.raises(ValidationError, match="async driver"):
            FarmSettings()

    @pytest.mark.parametrize("count", ["0", "201"])
    def test_panel_count_bounds(self, monkeypatch: pytest.MonkeyPatch, count: str) -> None:
        monkeypatch.setenv("PANEL_COUNT", count)
        with pytest.raises(ValidationError):
            FarmSettings()

    @pytest.mark.parametrize(
        "name", ["PERSIST_INTERVAL_S", "FAILURE_THRESHOLD", "MAX_CONCURRENT_WRITES"]
    )
    def test_positive_integers(self, monkeypatch: pytest.MonkeyPatch, name: str) -> None:
        monkeypatch.setenv(name, "0")
        with pytest.raises(ValidationError):
            FarmSettings()

    def test_nominal_power_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOMINAL_PANEL_POWER_W", "0")
        with pytest.raises(ValidationError):
            FarmSettings()

    def test_cors_origin_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", "https://farm.example.com, http://localhost:5173,")
        assert FarmSettings().cors_origin_list == [
            "https://farm.example.com",
            "http://localhost:5173",
        ]
