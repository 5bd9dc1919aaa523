"""
SQL storage backend.

Implements the storage contract on SQLAlchemy 2.x async sessions. Each
operation runs in its own short-lived session, so one failed call never
poisons the next. Ordering and time-window semantics match MemStorage
exactly; recommendations are ordered by a CASE expression over urgency so
the database does the sorting.

All timestamps are written as UTC. SQLite returns naive datetimes, which
are re-tagged as UTC on the way out.

CHANGELOG:
- 2026-09-19: Batch current-reading lookup for the panel grid (STORY-007)
- 2026-09-17: Initial creation (STORY-005)

TODO:
- None
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from solarfarm.db.models import (
    AlertRow,
    AutoTiltSettingsRow,
    PanelRow,
    PredictionRow,
    RecommendationRow,
    SensorReadingRow,
    SystemHealthRow,
)
from solarfarm.db.session import create_schema
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

_URGENCY_ORDER = case(
    {"high": 3, "medium": 2, "low": 1},
    value=RecommendationRow.urgency,
    else_=0,
)


# ---------------------------------------------------------------------------
# Row <-> model conversion
# ---------------------------------------------------------------------------


def _utc(value: datetime | None) -> datetime | None:
    """Normalise a datetime to aware UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _panel(row: PanelRow) -> Panel:
    return Panel(
        id=row.id,
        panel_number=row.panel_number,
        location=row.location,
        install_date=_utc(row.install_date),
        health_score=row.health_score,
        status=PanelStatus(row.status),
        last_maintenance=_utc(row.last_maintenance),
        notes=row.notes,
    )


def _reading(row: SensorReadingRow) -> SensorReading:
    return SensorReading(
        id=row.id,
        panel_id=row.panel_id,
        timestamp=_utc(row.timestamp),
        energy_output=row.energy_output,
        sunlight_intensity=row.sunlight_intensity,
        temperature=row.temperature,
        dust_level=row.dust_level,
        tilt_angle=row.tilt_angle,
        efficiency_percent=row.efficiency_percent,
        dust_status=row.dust_status,
        current_level_ma=row.current_level_ma,
        power_output_mw=row.power_output_mw,
        overload=row.overload,
        sweep_enable=row.sweep_enable,
        auto_mode=row.auto_mode,
        cleaning_done=row.cleaning_done,
    )


def _prediction(row: PredictionRow) -> Prediction:
    return Prediction(
        id=row.id,
        panel_id=row.panel_id,
        timestamp=_utc(row.timestamp),
        predicted_date=_utc(row.predicted_date),
        predicted_efficiency=row.predicted_efficiency,
        degradation_risk=row.degradation_risk,
        confidence_score=row.confidence_score,
        factors=dict(row.factors or {}),
    )


def _recommendation(row: RecommendationRow) -> Recommendation:
    return Recommendation(
        id=row.id,
        panel_id=row.panel_id,
        timestamp=_utc(row.timestamp),
        title=row.title,
        description=row.description,
        type=row.type,
        urgency=row.urgency,
        impact_score=row.impact_score,
        ai_explanation=row.ai_explanation,
        implemented=row.implemented,
    )


def _alert(row: AlertRow) -> Alert:
    return Alert(
        id=row.id,
        panel_id=row.panel_id,
        level=row.level,
        type=row.type,
        title=row.title,
        message=row.message,
        details=row.details,
        timestamp=_utc(row.timestamp),
        dismissed=row.dismissed,
    )


def _system_health(row: SystemHealthRow) -> SystemHealth:
    return SystemHealth(
        id=row.id,
        timestamp=_utc(row.timestamp),
        sensors=dict(row.sensors or {}),
        system_uptime=row.system_uptime,
        data_quality=row.data_quality,
        diagnostic_message=row.diagnostic_message,
    )


def _auto_tilt(row: AutoTiltSettingsRow) -> AutoTiltSettings:
    return AutoTiltSettings(
        id=row.id,
        enabled=row.enabled,
        mode=row.mode,
        min_tilt_angle=row.min_tilt_angle,
        max_tilt_angle=row.max_tilt_angle,
        adjustment_interval=row.adjustment_interval,
        use_weather_data=row.use_weather_data,
        aggressiveness=row.aggressiveness,
        updated_at=_utc(row.updated_at),
    )


def _auto_tilt_row(settings: AutoTiltSettings) -> AutoTiltSettingsRow:
    return AutoTiltSettingsRow(
        id=settings.id,
        enabled=settings.enabled,
        mode=settings.mode.value,
        min_tilt_angle=settings.min_tilt_angle,
        max_tilt_angle=settings.max_tilt_angle,
        adjustment_interval=settings.adjustment_interval,
        use_weather_data=settings.use_weather_data,
        aggressiveness=settings.aggressiveness.value,
        updated_at=settings.updated_at,
    )


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class DbStorage(Storage):
    """SQLAlchemy implementation of the storage contract.

    Args:
        engine: Async engine the backend owns and disposes on close.
        session_factory: Factory producing sessions bound to ``engine``.
        create_tables: Create missing tables in ``initialize``.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        create_tables: bool = True,
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory
        self._create_tables = create_tables

    async def initialize(self) -> None:
        if self._create_tables:
            await create_schema(self._engine)
            logger.info("Database schema verified")

    async def close(self) -> None:
        await self._engine.dispose()

    # -- panels ------------------------------------------------------------

    async def get_all_panels(self) -> list[Panel]:
        async with self._session_factory() as session:
            result = await session.execute(select(PanelRow).order_by(PanelRow.panel_number))
            return [_panel(row) for row in result.scalars()]

    async def get_panel_by_id(self, panel_id: str) -> Panel | None:
        async with self._session_factory() as session:
            row = await session.get(PanelRow, panel_id)
            return _panel(row) if row else None

    async def get_panel_by_number(self, panel_number: int) -> Panel | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PanelRow).where(PanelRow.panel_number == panel_number)
            )
            row = result.scalar_one_or_none()
            return _panel(row) if row else None

    async def create_panel(self, panel: PanelCreate) -> Panel:
        built = panel.build()
        row = PanelRow(
            id=built.id,
            panel_number=built.panel_number,
            location=built.location,
            install_date=_utc(built.install_date),
            health_score=built.health_score,
            status=built.status.value,
            last_maintenance=_utc(built.last_maintenance),
            notes=built.notes,
        )
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicatePanelError(panel.panel_number) from exc
            return _panel(row)

    async def _update_panel(self, panel_id: str, **values: object) -> Panel | None:
        async with self._session_factory() as session:
            row = await session.get(PanelRow, panel_id)
            if row is None:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()
            return _panel(row)

    async def update_panel_health_score(
        self, panel_id: str, health_score: float
    ) -> Panel | None:
        return await self._update_panel(panel_id, health_score=health_score)

    async def update_panel_status(
        self, panel_id: str, status: PanelStatus
    ) -> Panel | None:
        return await self._update_panel(panel_id, status=PanelStatus(status).value)

    async def get_panels_with_current_readings(self) -> list[PanelWithCurrentReading]:
        latest_ts = (
            select(
                SensorReadingRow.panel_id,
                func.max(SensorReadingRow.timestamp).label("max_ts"),
            )
            .group_by(SensorReadingRow.panel_id)
            .subquery()
        )
        latest_stmt = select(SensorReadingRow).join(
            latest_ts,
            (SensorReadingRow.panel_id == latest_ts.c.panel_id)
            & (SensorReadingRow.timestamp == latest_ts.c.max_ts),
        )
        alert_counts_stmt = (
            select(AlertRow.panel_id, func.count())
            .where(AlertRow.dismissed.is_(False), AlertRow.panel_id.is_not(None))
            .group_by(AlertRow.panel_id)
        )
        rec_counts_stmt = (
            select(RecommendationRow.panel_id, func.count())
            .where(
                RecommendationRow.implemented.is_(False),
                RecommendationRow.panel_id.is_not(None),
            )
            .group_by(RecommendationRow.panel_id)
        )

        async with self._session_factory() as session:
            panels = (
                await session.execute(select(PanelRow).order_by(PanelRow.panel_number))
            ).scalars().all()
            latest = {
                row.panel_id: _reading(row)
                for row in (await session.execute(latest_stmt)).scalars()
            }
            alert_counts = dict((await session.execute(alert_counts_stmt)).all())
            rec_counts = dict((await session.execute(rec_counts_stmt)).all())

        return [
            PanelWithCurrentReading(
                **_panel(row).model_dump(),
                current_reading=latest.get(row.id),
                active_alerts=alert_counts.get(row.id, 0),
                recommendations=rec_counts.get(row.id, 0),
            )
            for row in panels
        ]

    async def get_panel_detail(self, panel_id: str) -> PanelDetail | None:
        async with self._session_factory() as session:
            row = await session.get(PanelRow, panel_id)
            if row is None:
                return None
            recent = (
                await session.execute(
                    select(SensorReadingRow)
                    .where(
                        SensorReadingRow.panel_id == panel_id,
                        SensorReadingRow.timestamp >= window_start(RECENT_READINGS_HOURS),
                    )
                    .order_by(SensorReadingRow.timestamp.desc())
                    .limit(RECENT_READINGS_LIMIT)
                )
            ).scalars().all()
            panel = _panel(row)

        return PanelDetail(
            **panel.model_dump(),
            current_reading=await self.get_latest_reading_by_panel(panel_id),
            recent_readings=[_reading(r) for r in recent],
            predictions=await self.get_predictions_by_panel(panel_id),
            recommendations=await self.get_recommendations_by_panel(panel_id),
            alerts=await self.get_alerts_by_panel(panel_id),
        )

    # -- readings ----------------------------------------------------------

    async def get_latest_reading(self) -> SensorReading | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SensorReadingRow).order_by(SensorReadingRow.timestamp.desc()).limit(1)
            )
            row = result.scalar_one_or_none()
            return _reading(row) if row else None

    async def get_latest_reading_by_panel(self, panel_id: str) -> SensorReading | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SensorReadingRow)
                .where(SensorReadingRow.panel_id == panel_id)
                .order_by(SensorReadingRow.timestamp.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _reading(row) if row else None

    async def get_readings_by_panel(
        self, panel_id: str, hours: float = 24
    ) -> list[SensorReading]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SensorReadingRow)
                .where(
                    SensorReadingRow.panel_id == panel_id,
                    SensorReadingRow.timestamp >= window_start(hours),
                )
                .order_by(SensorReadingRow.timestamp)
            )
            return [_reading(row) for row in result.scalars()]

    async def get_readings_by_time_range(self, hours: float) -> list[SensorReading]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SensorReadingRow)
                .where(SensorReadingRow.timestamp >= window_start(hours))
                .order_by(SensorReadingRow.timestamp)
            )
            return [_reading(row) for row in result.scalars()]

    async def create_reading(self, reading: ReadingCreate) -> SensorReading:
        built = reading.build()
        row = SensorReadingRow(
            id=built.id,
            panel_id=built.panel_id,
            timestamp=_utc(built.timestamp),
            energy_output=built.energy_output,
            sunlight_intensity=built.sunlight_intensity,
            temperature=built.temperature,
            dust_level=built.dust_level,
            tilt_angle=built.tilt_angle,
            efficiency_percent=built.efficiency_percent,
            dust_status=built.dust_status,
            current_level_ma=built.current_level_ma,
            power_output_mw=built.power_output_mw,
            overload=built.overload,
            sweep_enable=built.sweep_enable,
            auto_mode=built.auto_mode,
            cleaning_done=built.cleaning_done,
        )
        factors = self.calculate_health_score(built)
        async with self._session_factory() as session:
            session.add(row)
            if is_finite_score(factors):
                await session.execute(
                    update(PanelRow)
                    .where(PanelRow.id == built.panel_id)
                    .values(health_score=factors.total_score)
                )
            await session.commit()
        return built

    # -- predictions -------------------------------------------------------

    async def get_predictions(
        self, limit: int = DEFAULT_PREDICTION_LIMIT
    ) -> list[Prediction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PredictionRow).order_by(PredictionRow.predicted_date).limit(limit)
            )
            return [_prediction(row) for row in result.scalars()]

    async def get_predictions_by_panel(
        self, panel_id: str, limit: int = DEFAULT_PANEL_PREDICTION_LIMIT
    ) -> list[Prediction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PredictionRow)
                .where(PredictionRow.panel_id == panel_id)
                .order_by(PredictionRow.predicted_date)
                .limit(limit)
            )
            return [_prediction(row) for row in result.scalars()]

    async def create_prediction(self, prediction: PredictionCreate) -> Prediction:
        built = prediction.build()
        async with self._session_factory() as session:
            session.add(
                PredictionRow(
                    id=built.id,
                    panel_id=built.panel_id,
                    timestamp=_utc(built.timestamp),
                    predicted_date=_utc(built.predicted_date),
                    predicted_efficiency=built.predicted_efficiency,
                    degradation_risk=built.degradation_risk.value,
                    confidence_score=built.confidence_score,
                    factors=built.factors,
                )
            )
            await session.commit()
        return built

    # -- recommendations ---------------------------------------------------

    async def get_recommendations(self) -> list[Recommendation]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecommendationRow).order_by(
                    _URGENCY_ORDER.desc(), RecommendationRow.impact_score.desc()
                )
            )
            return [_recommendation(row) for row in result.scalars()]

    async def get_recommendations_by_panel(self, panel_id: str) -> list[Recommendation]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecommendationRow)
                .where(RecommendationRow.panel_id == panel_id)
                .order_by(_URGENCY_ORDER.desc(), RecommendationRow.impact_score.desc())
            )
            return [_recommendation(row) for row in result.scalars()]

    async def get_recommendation_by_id(self, recommendation_id: str) -> Recommendation | None:
        async with self._session_factory() as session:
            row = await session.get(RecommendationRow, recommendation_id)
            return _recommendation(row) if row else None

    async def create_recommendation(
        self, recommendation: RecommendationCreate
    ) -> Recommendation:
        built = recommendation.build()
        async with self._session_factory() as session:
            session.add(
                RecommendationRow(
                    id=built.id,
                    panel_id=built.panel_id,
                    timestamp=_utc(built.timestamp),
                    title=built.title,
                    description=built.description,
                    type=built.type.value,
                    urgency=built.urgency.value,
                    impact_score=built.impact_score,
                    ai_explanation=built.ai_explanation,
                    implemented=built.implemented,
                )
            )
            await session.commit()
        return built

    async def update_recommendation_implemented(
        self, recommendation_id: str, implemented: bool
    ) -> Recommendation | None:
        async with self._session_factory() as session:
            row = await session.get(RecommendationRow, recommendation_id)
            if row is None:
                return None
            row.implemented = implemented
            await session.commit()
            return _recommendation(row)

    # -- alerts ------------------------------------------------------------

    async def get_active_alerts(self) -> list[Alert]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AlertRow)
                .where(AlertRow.dismissed.is_(False))
                .order_by(AlertRow.timestamp.desc())
            )
            return [_alert(row) for row in result.scalars()]

    async def get_alerts_by_panel(self, panel_id: str) -> list[Alert]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AlertRow)
                .where(AlertRow.panel_id == panel_id)
                .order_by(AlertRow.timestamp.desc())
            )
            return [_alert(row) for row in result.scalars()]

    async def create_alert(self, alert: AlertCreate) -> Alert:
        built = alert.build()
        async with self._session_factory() as session:
            session.add(
                AlertRow(
                    id=built.id,
                    panel_id=built.panel_id,
                    level=built.level.value,
                    type=built.type.value,
                    title=built.title,
                    message=built.message,
                    details=built.details,
                    timestamp=_utc(built.timestamp),
                    dismissed=built.dismissed,
                )
            )
            await session.commit()
        return built

    async def dismiss_alert(self, alert_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(AlertRow).where(AlertRow.id == alert_id).values(dismissed=True)
            )
            await session.commit()

    # -- system health -----------------------------------------------------

    async def get_latest_system_health(self) -> SystemHealth | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SystemHealthRow).order_by(SystemHealthRow.timestamp.desc()).limit(1)
            )
            row = result.scalar_one_or_none()
            return _system_health(row) if row else None

    async def create_system_health(self, health: SystemHealthCreate) -> SystemHealth:
        built = health.build()
        async with self._session_factory() as session:
            session.add(
                SystemHealthRow(
                    id=built.id,
                    timestamp=_utc(built.timestamp),
                    sensors=built.sensors,
                    system_uptime=built.system_uptime,
                    data_quality=built.data_quality,
                    diagnostic_message=built.diagnostic_message,
                )
            )
            await session.commit()
        return built

    # -- auto-tilt ---------------------------------------------------------

    async def _load_or_create_auto_tilt(self, session: AsyncSession) -> AutoTiltSettingsRow:
        result = await session.execute(select(AutoTiltSettingsRow).limit(1))
        row = result.scalar_one_or_none()
        if row is None:
            row = _auto_tilt_row(AutoTiltSettings.defaults())
            session.add(row)
            await session.flush()
        return row

    async def get_auto_tilt_settings(self) -> AutoTiltSettings:
        async with self._session_factory() as session:
            row = await self._load_or_create_auto_tilt(session)
            await session.commit()
            return _auto_tilt(row)

    async def update_auto_tilt_settings(
        self, settings: AutoTiltSettingsUpdate
    ) -> AutoTiltSettings:
        async with self._session_factory() as session:
            row = await self._load_or_create_auto_tilt(session)
            merged = _auto_tilt(row).merged(settings)
            row.enabled = merged.enabled
            row.mode = merged.mode.value
            row.min_tilt_angle = merged.min_tilt_angle
            row.max_tilt_angle = merged.max_tilt_angle
            row.adjustment_interval = merged.adjustment_interval
            row.use_weather_data = merged.use_weather_data
            row.aggressiveness = merged.aggressiveness.value
            row.updated_at = merged.updated_at
            await session.commit()
            return merged
