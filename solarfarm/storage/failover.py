"""
Storage failover between a durable backend and an in-memory fallback.

FailoverStorage presents a single storage contract while routing calls to
the durable backend (normally DbStorage) and falling back to memory when
the database is unreachable.

State machine:

- ``DURABLE_ACTIVE``: every call is tried against the durable backend.
  Success resets the consecutive failure counter. A connectivity failure
  increments the counter and the same call is replayed against the
  fallback, whose result is returned. When the counter reaches the
  threshold the mode switches to ``FALLBACK_ACTIVE`` for good. Any other
  failure is re-raised untouched and does not count.
- ``FALLBACK_ACTIVE``: reached only through failures; every call goes
  straight to the fallback and the durable backend is never retried.
- ``MEMORY_ONLY``: no durable backend was configured; behaves like
  ``FALLBACK_ACTIVE`` from construction.

Writes made while in fallback mode live only in memory and are lost on
restart. Data already committed to the database is not copied across.

CHANGELOG:
- 2026-09-30: Use asyncio.Lock for the counter and mode (STORY-020)
- 2026-09-19: Guard counter and mode with a lock (STORY-007)
- 2026-09-18: Initial creation (STORY-006)

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

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
    Storage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FAILURE_THRESHOLD = 3
"""Consecutive connectivity failures before the permanent switch to memory."""

CONNECTIVITY_MARKERS: tuple[str, ...] = (
    "connection",
    "timeout",
    "econn",
    "econnrefused",
    "enotfound",
    "network",
    "socket",
    "terminated",
)
"""Lower-case substrings identifying a connectivity failure."""


class StorageMode(Enum):
    DURABLE_ACTIVE = "durable_active"
    FALLBACK_ACTIVE = "fallback_active"
    MEMORY_ONLY = "memory_only"


def is_connectivity_error(exc: BaseException) -> bool:
    """Classify an exception as a connectivity failure.

    The exception is described as ``"<TypeName>: <message>"`` so that
    errors such as ``ConnectionRefusedError`` or ``TimeoutError`` with an
    empty message are still recognised. Matching is case-insensitive.

    Args:
        exc: The exception raised by the durable backend.

    Returns:
        bool: True if the description contains any connectivity marker.
    """
    description = f"{type(exc).__name__}: {exc}".lower()
    return any(marker in description for marker in CONNECTIVITY_MARKERS)


class FailoverStorage(Storage):
    """Storage facade with one-way failover from durable to memory.

    Args:
        durable: The durable backend, or None for memory-only mode.
        fallback: The in-memory backend.
        failure_threshold: Consecutive connectivity failures that trigger
            the permanent switch (must be >= 1).
    """

    def __init__(
        self,
        durable: Storage | None,
        fallback: Storage,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._durable = durable
        self._fallback = fallback
        self._failure_threshold = failure_threshold
        self._failure_count = 0
        self._lock = asyncio.Lock()
        self._mode = (
            StorageMode.DURABLE_ACTIVE if durable is not None else StorageMode.MEMORY_ONLY
        )

    @property
    def mode(self) -> StorageMode:
        """Current routing mode."""
        return self._mode

    @property
    def failure_count(self) -> int:
        """Consecutive connectivity failures seen while durable was active."""
        return self._failure_count

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    # -- routing -----------------------------------------------------------

    async def _record_success(self) -> None:
        async with self._lock:
            if self._mode is StorageMode.DURABLE_ACTIVE:
                self._failure_count = 0

    async def _record_failure(self, operation: str, exc: BaseException) -> None:
        async with self._lock:
            if self._mode is not StorageMode.DURABLE_ACTIVE:
                return
            self._failure_count += 1
            count = self._failure_count
            switched = count >= self._failure_threshold
            if switched:
                self._mode = StorageMode.FALLBACK_ACTIVE

        logger.warning(
            "Durable storage connectivity failure %d/%d during %s: %s",
            count,
            self._failure_threshold,
            operation,
            exc,
        )
        if switched:
            logger.error(
                "Durable storage unreachable after %d consecutive failures; "
                "switching permanently to in-memory storage",
                count,
            )

    async def _route(self, operation: str, call: Callable[[Storage], Awaitable[T]]) -> T:
        """Run ``call`` against the active backend, applying failover rules.

        Args:
            operation: Operation name used in log messages.
            call: Invokes the operation on the given backend.

        Returns:
            The durable result, or the fallback result after a
            connectivity failure or once failover has happened.

        Raises:
            Exception: Any non-connectivity error from the durable backend.
        """
        durable = self._durable
        if self._mode is not StorageMode.DURABLE_ACTIVE or durable is None:
            return await call(self._fallback)
        try:
            result = await call(durable)
        except Exception as exc:
            if not is_connectivity_error(exc):
                raise
            await self._record_failure(operation, exc)
            return await call(self._fallback)
        await self._record_success()
        return result

    # -- lifecycle ---------------------------------------------------------

    async def initialize(self) -> None:
        await self._route("initialize", lambda s: s.initialize())

    async def close(self) -> None:
        if self._durable is not None:
            try:
                await self._durable.close()
            except Exception:
                logger.warning("Failed to close durable storage", exc_info=True)
        await self._fallback.close()

    # -- panels ------------------------------------------------------------

    async def get_all_panels(self) -> list[Panel]:
        return await self._route("get_all_panels", lambda s: s.get_all_panels())

    async def get_panel_by_id(self, panel_id: str) -> Panel | None:
        return await self._route("get_panel_by_id", lambda s: s.get_panel_by_id(panel_id))

    async def get_panel_by_number(self, panel_number: int) -> Panel | None:
        return await self._route(
            "get_panel_by_number", lambda s: s.get_panel_by_number(panel_number)
        )

    async def create_panel(self, panel: PanelCreate) -> Panel:
        return await self._route("create_panel", lambda s: s.create_panel(panel))

    async def update_panel_health_score(
        self, panel_id: str, health_score: float
    ) -> Panel | None:
        return await self._route(
            "update_panel_health_score",
            lambda s: s.update_panel_health_score(panel_id, health_score),
        )

    async def update_panel_status(
        self, panel_id: str, status: PanelStatus
    ) -> Panel | None:
        return await self._route(
            "update_panel_status", lambda s: s.update_panel_status(panel_id, status)
        )

    async def get_panels_with_current_readings(self) -> list[PanelWithCurrentReading]:
        return await self._route(
            "get_panels_with_current_readings",
            lambda s: s.get_panels_with_current_readings(),
        )

    async def get_panel_detail(self, panel_id: str) -> PanelDetail | None:
        return await self._route("get_panel_detail", lambda s: s.get_panel_detail(panel_id))

    # -- readings ----------------------------------------------------------

    async def get_latest_reading(self) -> SensorReading | None:
        return await self._route("get_latest_reading", lambda s: s.get_latest_reading())

    async def get_latest_reading_by_panel(self, panel_id: str) -> SensorReading | None:
        return await self._route(
            "get_latest_reading_by_panel",
            lambda s: s.get_latest_reading_by_panel(panel_id),
        )

    async def get_readings_by_panel(
        self, panel_id: str, hours: float = 24
    ) -> list[SensorReading]:
        return await self._route(
            "get_readings_by_panel", lambda s: s.get_readings_by_panel(panel_id, hours)
        )

    async def get_readings_by_time_range(self, hours: float) -> list[SensorReading]:
        return await self._route(
            "get_readings_by_time_range", lambda s: s.get_readings_by_time_range(hours)
        )

    async def create_reading(self, reading: ReadingCreate) -> SensorReading:
        return await self._route("create_reading", lambda s: s.create_reading(reading))

    # -- predictions -------------------------------------------------------

    async def get_predictions(
        self, limit: int = DEFAULT_PREDICTION_LIMIT
    ) -> list[Prediction]:
        return await self._route("get_predictions", lambda s: s.get_predictions(limit))

    async def get_predictions_by_panel(
        self, panel_id: str, limit: int = DEFAULT_PANEL_PREDICTION_LIMIT
    ) -> list[Prediction]:
        return await self._route(
            "get_predictions_by_panel",
            lambda s: s.get_predictions_by_panel(panel_id, limit),
        )

    async def create_prediction(self, prediction: PredictionCreate) -> Prediction:
        return await self._route("create_prediction", lambda s: s.create_prediction(prediction))

    # -- recommendations ---------------------------------------------------

    async def get_recommendations(self) -> list[Recommendation]:
        return await self._route("get_recommendations", lambda s: s.get_recommendations())

    async def get_recommendations_by_panel(self, panel_id: str) -> list[Recommendation]:
        return await self._route(
            "get_recommendations_by_panel",
            lambda s: s.get_recommendations_by_panel(panel_id),
        )

    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation | None:
        return await self._route(
            "get_recommendation_by_id",
            lambda s: s.get_recommendation_by_id(recommendation_id),
        )

    async def create_recommendation(
        self, recommendation: RecommendationCreate
    ) -> Recommendation:
        return await self._route(
            "create_recommendation", lambda s: s.create_recommendation(recommendation)
        )

    async def update_recommendation_implemented(
        self, recommendation_id: str, implemented: bool
    ) -> Recommendation | None:
        return await self._route(
            "update_recommendation_implemented",
            lambda s: s.update_recommendation_implemented(recommendation_id, implemented),
        )

    # -- alerts ------------------------------------------------------------

    async def get_active_alerts(self) -> list[Alert]:
        return await self._route("get_active_alerts", lambda s: s.get_active_alerts())

    async def get_alerts_by_panel(self, panel_id: str) -> list[Alert]:
        return await self._route(
            "get_alerts_by_panel", lambda s: s.get_alerts_by_panel(panel_id)
        )

    async def create_alert(self, alert: AlertCreate) -> Alert:
        return await self._route("create_alert", lambda s: s.create_alert(alert))

    async def dismiss_alert(self, alert_id: str) -> None:
        await self._route("dismiss_alert", lambda s: s.dismiss_alert(alert_id))

    # -- system health -----------------------------------------------------

    async def get_latest_system_health(self) -> SystemHealth | None:
        return await self._route(
            "get_latest_system_health", lambda s: s.get_latest_system_health()
        )

    async def create_system_health(self, health: SystemHealthCreate) -> SystemHealth:
        return await self._route(
            "create_system_health", lambda s: s.create_system_health(health)
        )

    # -- auto-tilt ---------------------------------------------------------

    async def get_auto_tilt_settings(self) -> AutoTiltSettings:
        return await self._route(
            "get_auto_tilt_settings", lambda s: s.get_auto_tilt_settings()
        )

    async def update_auto_tilt_settings(
        self, settings: AutoTiltSettingsUpdate
    ) -> AutoTiltSettings:
        return await self._route(
            "update_auto_tilt_settings", lambda s: s.update_auto_tilt_settings(settings)
        )
