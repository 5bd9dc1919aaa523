"""
Abstract storage contract shared by every backend.

Both the in-memory and the SQL backend implement this contract with the
same observable semantics:

- panels ordered by panel number ascending;
- range queries ordered by timestamp ascending, "latest" is the single most
  recent reading or None;
- time windows are inclusive (``timestamp >= now - hours``);
- recommendations ordered by urgency (high, medium, low) then impact score,
  both descending;
- alerts ordered by timestamp descending;
- predictions ordered by predicted date ascending, truncated to ``limit``;
- creating a reading recomputes the owning panel's health score, keeping
  the prior score when the new one is not finite;
- updates against unknown ids return None instead of raising.

CHANGELOG:
- 2026-09-18: Add initialize/close lifecycle hooks (STORY-006)
- 2026-09-16: Initial creation (STORY-004)

TODO:
- None
"""

import abc
import math
from datetime import datetime, timedelta

from solarfarm.models import (
    Alert,
    AlertCreate,
    AutoTiltSettings,
    AutoTiltSettingsUpdate,
    HealthScoreFactors,
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
    utc_now,
)
from solarfarm.scoring import score_reading

# Panel detail shows at most this many readings from the last day.
RECENT_READINGS_LIMIT = 20
RECENT_READINGS_HOURS = 24
DEFAULT_PREDICTION_LIMIT = 10
DEFAULT_PANEL_PREDICTION_LIMIT = 7


class StorageError(Exception):
    """Base class for errors raised by storage backends."""


class DuplicatePanelError(StorageError):
    """Raised when creating a panel whose panel number is already taken."""

    def __init__(self, panel_number: int) -> None:
        super().__init__(f"Panel number {panel_number} already exists")
        self.panel_number = panel_number


def window_start(hours: float) -> datetime:
    """Return the inclusive lower bound of an ``hours`` wide window ending now."""
    return utc_now() - timedelta(hours=hours)


def is_finite_score(factors: HealthScoreFactors) -> bool:
    return math.isfinite(factors.total_score)


class Storage(abc.ABC):
    """Contract for panel, reading, prediction, recommendation, alert,
    system health and auto-tilt state."""

    # -- lifecycle ---------------------------------------------------------

    async def initialize(self) -> None:
        """Prepare the backend (create schema, seed data). Default no-op."""

    async def close(self) -> None:
        """Release backend resources. Default no-op."""

    # -- panels ------------------------------------------------------------

    @abc.abstractmethod
    async def get_all_panels(self) -> list[Panel]: ...

    @abc.abstractmethod
    async def get_panel_by_id(self, panel_id: str) -> Panel | None: ...

    @abc.abstractmethod
    async def get_panel_by_number(self, panel_number: int) -> Panel | None: ...

    @abc.abstractmethod
    async def create_panel(self, panel: PanelCreate) -> Panel: ...

    @abc.abstractmethod
    async def update_panel_health_score(
        self, panel_id: str, health_score: float
    ) -> Panel | None: ...

    @abc.abstractmethod
    async def update_panel_status(
        self, panel_id: str, status: PanelStatus
    ) -> Panel | None: ...

    @abc.abstractmethod
    async def get_panels_with_current_readings(self) -> list[PanelWithCurrentReading]: ...

    @abc.abstractmethod
    async def get_panel_detail(self, panel_id: str) -> PanelDetail | None: ...

    # -- readings ----------------------------------------------------------

    @abc.abstractmethod
    async def get_latest_reading(self) -> SensorReading | None: ...

    @abc.abstractmethod
    async def get_latest_reading_by_panel(self, panel_id: str) -> SensorReading | None: ...

    @abc.abstractmethod
    async def get_readings_by_panel(
        self, panel_id: str, hours: float = 24
    ) -> list[SensorReading]: ...

    @abc.abstractmethod
    async def get_readings_by_time_range(self, hours: float) -> list[SensorReading]: ...

    @abc.abstractmethod
    async def create_reading(self, reading: ReadingCreate) -> SensorReading: ...

    # -- predictions -------------------------------------------------------

    @abc.abstractmethod
    async def get_predictions(
        self, limit: int = DEFAULT_PREDICTION_LIMIT
    ) -> list[Prediction]: ...

    @abc.abstractmethod
    async def get_predictions_by_panel(
        self, panel_id: str, limit: int = DEFAULT_PANEL_PREDICTION_LIMIT
    ) -> list[Prediction]: ...

    @abc.abstractmethod
    async def create_prediction(self, prediction: PredictionCreate) -> Prediction: ...

    # -- recommendations ---------------------------------------------------

    @abc.abstractmethod
    async def get_recommendations(self) -> list[Recommendation]: ...

    @abc.abstractmethod
    async def get_recommendations_by_panel(self, panel_id: str) -> list[Recommendation]: ...

    @abc.abstractmethod
    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation | None: ...

    @abc.abstractmethod
    async def create_recommendation(
        self, recommendation: RecommendationCreate
    ) -> Recommendation: ...

    @abc.abstractmethod
    async def update_recommendation_implemented(
        self, recommendation_id: str, implemented: bool
    ) -> Recommendation | None: ...

    # -- alerts ------------------------------------------------------------

    @abc.abstractmethod
    async def get_active_alerts(self) -> list[Alert]: ...

    @abc.abstractmethod
    async def get_alerts_by_panel(self, panel_id: str) -> list[Alert]: ...

    @abc.abstractmethod
    async def create_alert(self, alert: AlertCreate) -> Alert: ...

    @abc.abstractmethod
    async def dismiss_alert(self, alert_id: str) -> None: ...

    # -- system health -----------------------------------------------------

    @abc.abstractmethod
    async def get_latest_system_health(self) -> SystemHealth | None: ...

    @abc.abstractmethod
    async def create_system_health(self, health: SystemHealthCreate) -> SystemHealth: ...

    # -- auto-tilt ---------------------------------------------------------

    @abc.abstractmethod
    async def get_auto_tilt_settings(self) -> AutoTiltSettings: ...

    @abc.abstractmethod
    async def update_auto_tilt_settings(
        self, settings: AutoTiltSettingsUpdate
    ) -> AutoTiltSettings: ...

    # -- scoring -----------------------------------------------------------

    def calculate_health_score(self, reading: SensorReading) -> HealthScoreFactors:
        """Score a reading. Pure; identical for every backend."""
        return score_reading(reading)
