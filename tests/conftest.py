"""
Shared test fixtures for the solar farm service.

Environment variables are set to test values so the application starts in
memory-only mode with a small farm and no background tasks. Tests run from
a temporary directory so a developer's ``.env`` is never picked up.

CHANGELOG:
- 2026-09-24: Add TestClient fixture (STORY-014)
- 2026-09-16: Initial creation (STORY-004)
"""

from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from solarfarm.models import PanelCreate, PanelWithCurrentReading, ReadingCreate

TEST_PANEL_COUNT = 6


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Set environment variables for a memory-only, quiet test service."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("WEATHER_API_KEY", "")
    monkeypatch.setenv("BLYNK_TOKEN", "")
    monkeypatch.setenv("PANEL_COUNT", str(TEST_PANEL_COUNT))
    monkeypatch.setenv("GRID_COLUMNS", "3")
    monkeypatch.setenv("BACKGROUND_TASKS_ENABLED", "false")


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    """Return an aiosqlite URL for a fresh database file under ``tmp_path``."""
    return f"sqlite+aiosqlite:///{tmp_path / 'farm.db'}"


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    """Create a FastAPI TestClient with the application lifespan running.

    Yields:
        TestClient: Configured test client for the FastAPI app.
    """
    from solarfarm.api.main import app

    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_panel(number: int = 1, **overrides: object) -> PanelCreate:
    """Build a PanelCreate with id ``panel-{number}``."""
    fields: dict[str, object] = {
        "id": f"panel-{number}",
        "panel_number": number,
        "location": f"Row 01, Col {number:02d}",
    }
    fields.update(overrides)
    return PanelCreate(**fields)


def make_reading(panel_id: str = "panel-1", **overrides: object) -> ReadingCreate:
    """Build a healthy ReadingCreate; override any field by name."""
    fields: dict[str, object] = {
        "panel_id": panel_id,
        "energy_output": 200.0,
        "sunlight_intensity": 800.0,
        "temperature": 25.0,
        "dust_level": 2.0,
        "tilt_angle": 32.0,
        "efficiency_percent": 80.0,
    }
    fields.update(overrides)
    return ReadingCreate(**fields)


def make_farm_panel(
    number: int = 1, reading: ReadingCreate | None = None, **overrides: object
) -> PanelWithCurrentReading:
    """Build a panel as the storage returns it, with an optional current reading."""
    panel = make_panel(number, **overrides).build()
    return PanelWithCurrentReading(
        **panel.model_dump(),
        current_reading=reading.build() if reading is not None else None,
    )


def at(hour: int, minute: int = 0) -> datetime:
    """Return today's UTC date at ``hour:minute``."""
    return datetime.now(UTC).replace(hour=hour, minute=minute, second=0, microsecond=0)
