"""
In-memory storage backend.

Holds all farm state in process memory. Used on its own when no database
is configured, and as the fallback target of FailoverStorage. Records are
copied on the way in and out so callers can never mutate stored state.

Readings are retained up to ``max_readings``; the oldest inserted readings
are dropped first once the cap is reached.

CHANGELOG:
- 2026-09-18: Reading retention cap (STORY-006)
- 2026-09-16: Initial creation (STORY-004)

TODO:
- None
"""

import logging
from collections import deque
from collections.abc import Iterable
from typing import TypeVar

from pydantic import BaseModel

from solarfarm.models import (
    Alert,
    AlertCreate,
    AutoTiltSettings,
    AutoTiltSettingsUpdate,
    Panel,
    PanelCreate,
    PanelDetail,
    PanelStatus,
    PanelWithCurrentReading,
    Prediction,
    PredictionCreate,
    ReadingCreate,
    Recommendation,
    RecommendationCreate,
    SensorReading,
    SystemHealth,
    SystemHealthCreate,
)
from solarfarm.storage.base import (
    DEFAULT_PANEL_PREDICTION_LIMIT,
    DEFAULT_PREDICTION_LIMIT,
    RECENT_READINGS_HOURS,
    RECENT_READINGS_LIMIT,
    DuplicatePanelError,
    Storage,
    is_finite_score,
    window_start,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_READINGS = 500_000
MAX_SYSTEM_HEALTH_RECORDS = 1_000

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(record: ModelT) -> ModelT:
    return record.model_copy(deep=True)


class MemStorage(Storage):
    """Dict-backed implementation of the storage contract.

    Args:
        panels: Optional panels to seed at construction.
        max_readings: Maximum number of readings retained.
    """

    def __init__(
        self,
        panels: Iterable[PanelCreate] | None = None,
        max_readings: int = DEFAULT_MAX_READINGS,
    ) -> None:
        self._panels: dict[str, Panel] = {}
        self._readings: deque[SensorReading] = deque()
        self._latest_by_panel: dict[str, SensorReading] = {}
        self._predictions: dict[str, Prediction] = {}
        self._recommendations: dict[str, Recommendation] = {}
        self._alerts: dict[str, Alert] = {}
        self._system_health: deque[SystemHealth] = deque(maxlen=MAX_SYSTEM_HEALTH_RECORDS)
        self._auto_tilt: AutoTiltSettings | None = None
        self._max_readings = max_readings

        for panel in panels or ():
            self._insert_panel(panel)
        if self._panels:
            logger.info("Seeded in-memory storage with %d panels", len(self._panels))

    # -- panels ------------------------------------------------------------

    def _insert_panel(self, create: PanelCreate) -> Panel:
        if any(p.panel_number == create.panel_number for p in self._panels.values()):
            raise DuplicatePanelError(create.panel_number)
        panel = create.build()
        if panel.id in self._panels:
            raise DuplicatePanelError(create.panel_number)
        self._panels[panel.id] = panel
        return panel

    async def get_all_panels(self) -> list[Panel]:
        panels = sorted(self._panels.values(), key=lambda p: p.panel_number)
        return [_copy(p) for p in panels]

    async def get_panel_by_id(self, panel_id: str) -> Panel | None:
        panel = self._panels.get(panel_id)
        return _copy(panel) if panel else None

    async def get_panel_by_number(self, panel_number: int) -> Panel | None:
        for panel in self._panels.values():
            if panel.panel_number == panel_number:
                return _copy(panel)
        return None

    async def create_panel(self, panel: PanelCreate) -> Panel:
        return _copy(self._insert_panel(panel))

    async def update_panel_health_score(
        self, panel_id: str, health_score: float
    ) -> Panel | None:
        panel = self._panels.get(panel_id)
        if panel is None:
            return None
        panel.health_score = health_score
        return _copy(panel)

    async def update_panel_status(
        self, panel_id: str, status: PanelStatus
    ) -> Panel | None:
        panel = self._panels.get(panel_id)
        if panel is None:
            return None
        panel.status = PanelStatus(status)
        return _copy(panel)

    async def get_panels_with_current_readings(self) -> list[PanelWithCurrentReading]:
        open_alerts: dict[str, int] = {}
        for alert in self._alerts.values():
            if alert.panel_id and not alert.dismissed:
                open_alerts[alert.panel_id] = open_alerts.get(alert.panel_id, 0) + 1
        open_recs: dict[str, int] = {}
        for rec in self._recommendations.values():
            if rec.panel_id and not rec.implemented:
                open_recs[rec.panel_id] = open_recs.get(rec.panel_id, 0) + 1

        result = []
        for panel in sorted(self._panels.values(), key=lambda p: p.panel_number):
            latest = self._latest_by_panel.get(panel.id)
            result.append(
                PanelWithCurrentReading(
                    **panel.model_dump(),
                    current_reading=_copy(latest) if latest else None,
                    active_alerts=open_alerts.get(panel.id, 0),
                    recommendations=open_recs.get(panel.id, 0),
                )
            )
        return result

    async def get_panel_detail(self, panel_id: str) -> PanelDetail | None:
        panel = self._panels.get(panel_id)
        if panel is None:
            return None
        cutoff = window_start(RECENT_READINGS_HOURS)
        recent = sorted(
            (r for r in self._readings if r.panel_id == panel_id and r.timestamp >= cutoff),
            key=lambda r: r.timestamp,
            reverse=True,
        )[:RECENT_READINGS_LIMIT]
        latest = self._latest_by_panel.get(panel_id)
        return PanelDetail(
            **panel.model_dump(),
            current_reading=_copy(latest) if latest else None,
            recent_readings=[_copy(r) for r in recent],
            predictions=await self.get_predictions_by_panel(panel_id),
            recommendations=await self.get_recommendations_by_panel(panel_id),
            alerts=await self.get_alerts_by_panel(panel_id),
        )

    # -- readings ----------------------------------------------------------

    async def get_latest_reading(self) -> SensorReading | None:
        if not self._latest_by_panel:
            return None
        latest = max(self._latest_by_panel.values(), key=lambda r: r.timestamp)
        return _copy(latest)

    async def get_latest_reading_by_panel(self, panel_id: str) -> SensorReading | None:
        latest = self._latest_by_panel.get(panel_id)
        return _copy(latest) if latest else None

    async def get_readings_by_panel(
        self, panel_id: str, hours: float = 24
    ) -> list[SensorReading]:
        cutoff = window_start(hours)
        readings = [
            r for r in self._readings if r.panel_id == panel_id and r.timestamp >= cutoff
        ]
        readings.sort(key=lambda r: r.timestamp)
        return [_copy(r) for r in readings]

    async def get_readings_by_time_range(self, hours: float) -> list[SensorReading]:
        cutoff = window_start(hours)
        readings = [r for r in self._readings if r.timestamp >= cutoff]
        readings.sort(key=lambda r: r.timestamp)
        return [_copy(r) for r in readings]

    async def create_reading(self, reading: ReadingCreate) -> SensorReading:
        stored = reading.build()
        self._readings.append(stored)
        while len(self._readings) > self._max_readings:
            evicted = self._readings.popleft()
            if self._latest_by_panel.get(evicted.panel_id) is evicted:
                del self._latest_by_panel[evicted.panel_id]
        current = self._latest_by_panel.get(stored.panel_id)
        if current is None or stored.timestamp >= current.timestamp:
            self._latest_by_panel[stored.panel_id] = stored

        factors = self.calculate_health_score(stored)
        if is_finite_score(factors):
            await self.update_panel_health_score(stored.panel_id, factors.total_score)
        return _copy(stored)

    # -- predictions -------------------------------------------------------

    async def get_predictions(
        self, limit: int = DEFAULT_PREDICTION_LIMIT
    ) -> list[Prediction]:
        predictions = sorted(self._predictions.values(), key=lambda p: p.predicted_date)
        return [_copy(p) for p in predictions[:limit]]

    async def get_predictions_by_panel(
        self, panel_id: str, limit: int = DEFAULT_PANEL_PREDICTION_LIMIT
    ) -> list[Prediction]:
        predictions = sorted(
            (p for p in self._predictions.values() if p.panel_id == panel_id),
            key=lambda p: p.predicted_date,
        )
        return [_copy(p) for p in predictions[:limit]]

    async def create_prediction(self, prediction: PredictionCreate) -> Prediction:
        stored = prediction.build()
        self._predictions[stored.id] = stored
        return _copy(stored)

    # -- recommendations ---------------------------------------------------

    async def get_recommendations(self) -> list[Recommendation]:
        recs = sorted(self._recommendations.values(), key=Recommendation.sort_key)
        return [_copy(r) for r in recs]

    async def get_recommendations_by_panel(self, panel_id: str) -> list[Recommendation]:
        recs = sorted(
            (r for r in self._recommendations.values() if r.panel_id == panel_id),
            key=Recommendation.sort_key,
        )
        return [_copy(r) for r in recs]

    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation | None:
        rec = self._recommendations.get(recommendation_id)
        return _copy(rec) if rec else None

    async def create_recommendation(
        self, recommendation: RecommendationCreate
    ) -> Recommendation:
        stored = recommendation.build()
        self._recommendations[stored.id] = stored
        return _copy(stored)

    async def update_recommendation_implemented(
        self, recommendation_id: str, implemented: bool
    ) -> Recommendation | None:
        rec = self._recommendations.get(recommendation_id)
        if rec is None:
            return None
        rec.implemented = implemented
        return _copy(rec)

    # -- alerts ------------------------------------------------------------

    async def get_active_alerts(self) -> list[Alert]:
        alerts = sorted(
            (a for a in self._alerts.values() if not a.dismissed),
            key=lambda a: a.timestamp,
            reverse=True,
        )
        return [_copy(a) for a in alerts]

    async def get_alerts_by_panel(self, panel_id: str) -> list[Alert]:
        alerts = sorted(
            (a for a in self._alerts.values() if a.panel_id == panel_id),
            key=lambda a: a.timestamp,
            reverse=True,
        )
        return [_copy(a) for a in alerts]

    async def create_alert(self, alert: AlertCreate) -> Alert:
        stored = alert.build()
        self._alerts[stored.id] = stored
        return _copy(stored)

    async def dismiss_alert(self, alert_id: str) -> None:
        alert = self._alerts.get(alert_id)
        if alert is not None:
            alert.dismissed = True

    # -- system health -----------------------------------------------------

    async def get_latest_system_health(self) -> SystemHealth | None:
        if not self._system_health:
            return None
        return _copy(max(self._system_health, key=lambda h: h.timestamp))

    async def create_system_health(self, health: SystemHealthCreate) -> SystemHealth:
        stored = health.build()
        self._system_health.append(stored)
        return _copy(stored)

    # -- auto-tilt ---------------------------------------------------------

    async def get_auto_tilt_settings(self) -> AutoTiltSettings:
        if self._auto_tilt is None:
            self._auto_tilt = AutoTiltSettings.defaults()
        return _copy(self._auto_tilt)

    async def update_auto_tilt_settings(
        self, settings: AutoTiltSettingsUpdate
    ) -> AutoTiltSettings:
        if self._auto_tilt is None:
            self._auto_tilt = AutoTiltSettings.defaults()
        self._auto_tilt = self._auto_tilt.merged(settings)
        return _copy(self._auto_tilt)
