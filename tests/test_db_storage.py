"""
Tests for the SQL storage backend against a temporary SQLite database.

The same observable semantics as MemStorage are checked: ordering, time
windows, the health score side effect and duplicate panel handling.

CHANGELOG:
- 2026-09-30: Auto-tilt bounds checked after merge; migration URL (STORY-020)
- 2026-09-19: Current-reading batch lookup tests (STORY-007)
- 2026-09-17: Initial creation (STORY-005)

TODO:
- None
"""

from datetime import timedelta

import pytest
from conftest import make_panel, make_reading
from pydantic import ValidationError

from solarfarm.config import FarmSettings
from solarfarm.db.session import create_engine, create_session_factory, migration_url
from solarfarm.models import (
    AlertCategory,
    AlertCreate,
    AlertLevel,
    AutoTiltSettingsUpdate,
    PanelStatus,
    PredictionCreate,
    RecommendationCategory,
    RecommendationCreate,
    RiskLevel,
    SystemHealthCreate,
    Urgency,
    utc_now,
)
from solarfarm.storage import DbStorage, DuplicatePanelError


async def _make_storage(url: str, panels: int = 3) -> DbStorage:
    engine = create_engine(url)
    storage = DbStorage(engine, create_session_factory(engine))
    await storage.initialize()
    for number in range(1, panels + 1):
        await storage.create_panel(make_panel(number))
    return storage


class TestDbPanels:
    """Panel persistence."""

    @pytest.mark.asyncio
    async def test_panels_round_trip_in_order(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            panels = await storage.get_all_panels()
            assert [p.id for p in panels] == ["panel-1", "panel-2", "panel-3"]
            assert panels[0].install_date.tzinfo is not None
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_duplicate_panel_number_raises_domain_error(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url, panels=1)
        try:
            with pytest.raises(DuplicatePanelError):
                await storage.create_panel(make_panel(1, id="another"))
            # The failed insert must not break later calls.
            assert len(await storage.get_all_panels()) == 1
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_status_update_and_unknown_id(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            updated = await storage.update_panel_status("panel-2", PanelStatus.MAINTENANCE)
            assert updated.status is PanelStatus.MAINTENANCE
            assert await storage.update_panel_status("missing", PanelStatus.OFFLINE) is None
        finally:
            await storage.close()


class TestDbReadings:
    """Readings, windows and derived views."""

    @pytest.mark.asyncio
    async def test_reading_updates_health_score(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            await storage.create_reading(make_reading("panel-1"))
            assert (await storage.get_panel_by_id("panel-1")).health_score == 86
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_windows_and_latest(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        now = utc_now()
        try:
            await storage.create_reading(
                make_reading("panel-1", timestamp=now - timedelta(hours=30))
            )
            recent = await storage.create_reading(
                make_reading("panel-1", timestamp=now - timedelta(hours=1))
            )
            await storage.create_reading(
                make_reading("panel-2", timestamp=now - timedelta(minutes=30))
            )

            readings = await storage.get_readings_by_panel("panel-1", hours=24)
            assert [r.id for r in readings] == [recent.id]
            assert readings[0].timestamp.tzinfo is not None

            farm = await storage.get_readings_by_time_range(24)
            assert [r.panel_id for r in farm] == ["panel-1", "panel-2"]

            latest = await storage.get_latest_reading_by_panel("panel-1")
            assert latest.id == recent.id
            assert (await storage.get_latest_reading()).panel_id == "panel-2"
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_panels_with_current_readings_and_counts(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            await storage.create_reading(make_reading("panel-3", efficiency_percent=40))
            await storage.create_alert(
                AlertCreate(
                    panel_id="panel-3",
                    level=AlertLevel.ERROR,
                    type=AlertCategory.EFFICIENCY,
                    title="Critical: Low Panel Efficiency",
                    message="m",
                )
            )
            panels = await storage.get_panels_with_current_readings()
            assert [p.panel_number for p in panels] == [1, 2, 3]
            assert panels[0].current_reading is None
            assert panels[2].current_reading.efficiency_percent == 40
            assert panels[2].active_alerts == 1
            assert panels[2].recommendations == 0
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_panel_detail(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            for minutes in (3, 2, 1):
                await storage.create_reading(
                    make_reading("panel-1", timestamp=utc_now() - timedelta(minutes=minutes))
                )
            detail = await storage.get_panel_detail("panel-1")
            assert len(detail.recent_readings) == 3
            assert detail.recent_readings[0].timestamp > detail.recent_readings[-1].timestamp
            assert detail.current_reading.id == detail.recent_readings[0].id
            assert await storage.get_panel_detail("missing") is None
        finally:
            await storage.close()


class TestDbAdviceRecords:
    """Predictions, recommendations, alerts, system health, auto-tilt."""

    @pytest.mark.asyncio
    async def test_recommendation_order_matches_contract(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            for urgency, impact in [
                (Urgency.MEDIUM, 90),
                (Urgency.HIGH, 10),
                (Urgency.LOW, 100),
                (Urgency.HIGH, 60),
            ]:
                await storage.create_recommendation(
                    RecommendationCreate(
                        title="t",
                        description="d",
                        type=RecommendationCategory.CLEANING,
                        urgency=urgency,
                        impact_score=impact,
                        ai_explanation="e",
                    )
                )
            recs = await storage.get_recommendations()
            assert [(r.urgency, r.impact_score) for r in recs] == [
                (Urgency.HIGH, 60),
                (Urgency.HIGH, 10),
                (Urgency.MEDIUM, 90),
                (Urgency.LOW, 100),
            ]
            implemented = await storage.update_recommendation_implemented(recs[0].id, True)
            assert implemented.implemented is True
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_prediction_limit_and_factors(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        now = utc_now()
        try:
            for day in range(1, 13):
                await storage.create_prediction(
                    PredictionCreate(
                        predicted_date=now + timedelta(days=day),
                        predicted_efficiency=70,
                        degradation_risk=RiskLevel.MEDIUM,
                        confidence_score=0.7,
                        factors={"dustImpact": 4.0},
                    )
                )
            predictions = await storage.get_predictions()
            assert len(predictions) == 10
            assert predictions[0].factors == {"dustImpact": 4.0}
            dates = [p.predicted_date for p in predictions]
            assert dates == sorted(dates)
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_alert_dismissal(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            alert = await storage.create_alert(
                AlertCreate(
                    level=AlertLevel.WARNING,
                    type=AlertCategory.DUST,
                    title="3 Panels Need Cleaning",
                    message="m",
                )
            )
            assert [a.id for a in await storage.get_active_alerts()] == [alert.id]
            await storage.dismiss_alert(alert.id)
            assert await storage.get_active_alerts() == []
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_system_health_and_auto_tilt(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            assert await storage.get_latest_system_health() is None
            await storage.create_system_health(
                SystemHealthCreate(
                    sensors={"weatherAPI": "synthetic"}, system_uptime=0.5, data_quality=100
                )
            )
            health = await storage.get_latest_system_health()
            assert health.sensors == {"weatherAPI": "synthetic"}

            first = await storage.get_auto_tilt_settings()
            updated = await storage.update_auto_tilt_settings(
                AutoTiltSettingsUpdate(min_tilt_angle=20, enabled=True)
            )
            assert updated.id == first.id
            assert updated.min_tilt_angle == 20
            assert (await storage.get_auto_tilt_settings()).enabled is True
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_auto_tilt_partial_update_cannot_cross_bounds(self, sqlite_url: str) -> None:
        storage = await _make_storage(sqlite_url)
        try:
            with pytest.raises(ValidationError):
                await storage.update_auto_tilt_settings(AutoTiltSettingsUpdate(max_tilt_angle=5))

            stored = await storage.get_auto_tilt_settings()
            assert stored.max_tilt_angle == 60
            assert stored.min_tilt_angle <= stored.max_tilt_angle
        finally:
            await storage.close()


class TestMigrationUrl:
    """URL resolution for Alembic migrations."""

    def test_uses_configured_url(self, monkeypatch: pytest.MonkeyPatch, sqlite_url: str) -> None:
        monkeypatch.setenv("DATABASE_URL", sqlite_url)
        assert migration_url() == sqlite_url

    def test_memory_only_has_nothing_to_migrate(self) -> None:
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            migration_url(FarmSettings())

    def test_sync_driver_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://farm:pw@db:5432/farm")
        with pytest.raises(ValidationError, match="async driver"):
            migration_url()
