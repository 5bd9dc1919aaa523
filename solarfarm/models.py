"""
Pydantic domain models for the solar farm.

Every record crossing the HTTP or WebSocket boundary is one of these models.
Python attributes are snake_case; the JSON form uses camelCase aliases so
dashboard clients see ``panelId``, ``energyOutput`` and so on.

Dust level units differ by producer: the hardware feed reports a 0-10
scale while the environment simulator reports raw 0-4095 ADC counts. Both
are stored as-is in ``dust_level``.

CHANGELOG:
- 2026-09-20: Add FarmAggregate and SensorSnapshot (STORY-008)
- 2026-09-15: Safe-default substitution for non-finite readings (STORY-003)
- 2026-09-14: Initial creation (STORY-002)

TODO:
- None
"""

import math
import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PanelStatus(StrEnum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"
    DAMAGED = "damaged"


class Urgency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


URGENCY_WEIGHT: dict[Urgency, int] = {
    Urgency.HIGH: 3,
    Urgency.MEDIUM: 2,
    Urgency.LOW: 1,
}


class RecommendationCategory(StrEnum):
    CLEANING = "cleaning"
    TILT_ADJUSTMENT = "tilt_adjustment"
    MAINTENANCE = "maintenance"
    OPTIMIZATION = "optimization"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AlertCategory(StrEnum):
    EFFICIENCY = "efficiency"
    DUST = "dust"
    TEMPERATURE = "temperature"
    SYSTEM = "system"


class TiltMode(StrEnum):
    TIME_BASED = "time_based"
    WEATHER_BASED = "weather_based"
    SUN_TRACKING = "sun_tracking"


class Aggressiveness(StrEnum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


# ---------------------------------------------------------------------------
# Panels
# ---------------------------------------------------------------------------


class Panel(CamelModel):
    """A single solar panel in the farm.

    Attributes:
        id: Stable identifier (``panel-{n}`` for farm-initialised panels).
        panel_number: Sequential unique number, 1..N.
        location: Grid label such as ``Row 01, Col 05``.
        install_date: When the panel was installed.
        health_score: Current 0-100 composite health score.
        status: Operational status.
        last_maintenance: Last maintenance date, if any.
        notes: Free-text notes.
    """

    id: str
    panel_number: int
    location: str
    install_date: datetime
    health_score: float
    status: PanelStatus = PanelStatus.ACTIVE
    last_maintenance: datetime | None = None
    notes: str | None = None


class PanelCreate(CamelModel):
    """Input for creating a panel. Omitted fields take storage defaults."""

    id: str | None = None
    panel_number: int = Field(ge=1)
    location: str
    install_date: datetime | None = None
    health_score: float = Field(default=100.0, ge=0, le=100)
    status: PanelStatus = PanelStatus.ACTIVE
    last_maintenance: datetime | None = None
    notes: str | None = None

    def build(self) -> Panel:
        """Materialise a Panel, filling in the generated id and dates."""
        return Panel(
            id=self.id or new_id(),
            panel_number=self.panel_number,
            location=self.location,
            install_date=self.install_date or utc_now(),
            health_score=self.health_score,
            status=self.status,
            last_maintenance=self.last_maintenance,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# Sensor readings
# ---------------------------------------------------------------------------

# Substituted when a producer hands us NaN or +/-inf.
READING_DEFAULTS: dict[str, float] = {
    "energy_output": 0.0,
    "sunlight_intensity": 0.0,
    "temperature": 25.0,
    "dust_level": 5.0,
    "tilt_angle": 32.0,
    "efficiency_percent": 50.0,
    "current_level_ma": 0.0,
    "power_output_mw": 0.0,
}


class SensorReading(CamelModel):
    """One timestamped observation for a panel.

    ``dust_level`` is 0-10 when it comes from the hardware feed and 0-4095
    ADC counts when it comes from the environment simulator.
    """

    id: str
    panel_id: str
    timestamp: datetime
    energy_output: float
    sunlight_intensity: float
    temperature: float
    dust_level: float
    tilt_angle: float
    efficiency_percent: float
    dust_status: str = "UNKNOWN"
    current_level_ma: float = Field(default=0.0, alias="currentLevelMA")
    power_output_mw: float = Field(default=0.0, alias="powerOutputMW")
    overload: bool = False
    sweep_enable: bool = False
    auto_mode: bool = True
    cleaning_done: bool = False


class ReadingCreate(CamelModel):
    """Input for persisting a reading.

    Non-finite numbers are replaced with safe defaults and efficiency is
    clamped to 0-100 at construction, so a stored reading never carries NaN.
    """

    panel_id: str
    energy_output: float
    sunlight_intensity: float
    temperature: float
    dust_level: float
    tilt_angle: float
    efficiency_percent: float
    timestamp: datetime | None = None
    dust_status: str = "UNKNOWN"
    current_level_ma: float = Field(default=0.0, alias="currentLevelMA")
    power_output_mw: float = Field(default=0.0, alias="powerOutputMW")
    overload: bool = False
    sweep_enable: bool = False
    auto_mode: bool = True
    cleaning_done: bool = False

    @field_validator(*READING_DEFAULTS)
    @classmethod
    def _replace_non_finite(cls, v: float, info: ValidationInfo) -> float:
        if not math.isfinite(v):
            v = READING_DEFAULTS[info.field_name]
        if info.field_name == "efficiency_percent":
            v = min(100.0, max(0.0, v))
        return v

    def build(self) -> SensorReading:
        """Materialise a SensorReading with a fresh id and timestamp."""
        data = self.model_dump(exclude={"timestamp"})
        return SensorReading(id=new_id(), timestamp=self.timestamp or utc_now(), **data)


class SensorSnapshot(CamelModel):
    """Latest hardware-feed values for one panel.

    Attributes:
        panel_id: Panel the snapshot belongs to.
        energy_output: Instantaneous output in watts (V x I).
        sunlight_intensity: Irradiance in W/m^2.
        temperature: Panel temperature in Celsius.
        dust_level: Dust on the 0-10 scale.
        tilt_angle: Tilt in degrees.
        voltage: Panel voltage in volts.
        current: Panel current in amperes.
        timestamp: When the values were sampled.
    """

    panel_id: str
    energy_output: float
    sunlight_intensity: float
    temperature: float
    dust_level: float
    tilt_angle: float
    voltage: float
    current: float
    timestamp: datetime


class HealthScoreFactors(CamelModel):
    efficiency_score: float
    dust_score: float
    temperature_score: float
    total_score: float


# ---------------------------------------------------------------------------
# Predictions, recommendations, alerts
# ---------------------------------------------------------------------------


class PredictionCreate(CamelModel):
    panel_id: str | None = None
    predicted_date: datetime
    predicted_efficiency: float
    degradation_risk: RiskLevel
    confidence_score: float = Field(ge=0, le=1)
    factors: dict[str, float] = Field(default_factory=dict)
    timestamp: datetime | None = None

    def build(self) -> "Prediction":
        data = self.model_dump(exclude={"timestamp"})
        return Prediction(id=new_id(), timestamp=self.timestamp or utc_now(), **data)


class Prediction(CamelModel):
    """A forecast of panel (or farm-wide when ``panel_id`` is None) efficiency."""

    id: str
    panel_id: str | None = None
    timestamp: datetime
    predicted_date: datetime
    predicted_efficiency: float
    degradation_risk: RiskLevel
    confidence_score: float
    factors: dict[str, float] = Field(default_factory=dict)


class RecommendationCreate(CamelModel):
    panel_id: str | None = None
    title: str
    description: str
    type: RecommendationCategory
    urgency: Urgency
    impact_score: float = Field(ge=0, le=100)
    ai_explanation: str
    implemented: bool = False
    timestamp: datetime | None = None

    def build(self) -> "Recommendation":
        data = self.model_dump(exclude={"timestamp"})
        return Recommendation(id=new_id(), timestamp=self.timestamp or utc_now(), **data)


class Recommendation(CamelModel):
    """An actionable suggestion. Only ``implemented`` ever changes."""

    id: str
    panel_id: str | None = None
    timestamp: datetime
    title: str
    description: str
    type: RecommendationCategory
    urgency: Urgency
    impact_score: float
    ai_explanation: str
    implemented: bool = False

    def sort_key(self) -> tuple[int, float]:
        """Key for the contractual ordering: urgency desc, then impact desc."""
        return (-URGENCY_WEIGHT[self.urgency], -self.impact_score)


class AlertCreate(CamelModel):
    panel_id: str | None = None
    level: AlertLevel
    type: AlertCategory
    title: str
    message: str
    details: str | None = None
    timestamp: datetime | None = None

    def build(self) -> "Alert":
        data = self.model_dump(exclude={"timestamp"})
        return Alert(id=new_id(), timestamp=self.timestamp or utc_now(), dismissed=False, **data)


class Alert(CamelModel):
    """A surfaced condition. Dismissal is a soft delete."""

    id: str
    panel_id: str | None = None
    level: AlertLevel
    type: AlertCategory
    title: str
    message: str
    details: str | None = None
    timestamp: datetime
    dismissed: bool = False


# ---------------------------------------------------------------------------
# System health and auto-tilt
# ---------------------------------------------------------------------------


class SystemHealthCreate(CamelModel):
    sensors: dict[str, str]
    system_uptime: float
    data_quality: float = Field(ge=0, le=100)
    diagnostic_message: str | None = None

    def build(self) -> "SystemHealth":
        return SystemHealth(id=new_id(), timestamp=utc_now(), **self.model_dump())


class SystemHealth(CamelModel):
    """Snapshot of sensor availability and data quality."""

    id: str
    timestamp: datetime
    sensors: dict[str, str]
    system_uptime: float
    data_quality: float
    diagnostic_message: str | None = None


class AutoTiltSettings(CamelModel):
    """The auto-tilt controller configuration singleton."""

    id: str
    enabled: bool = False
    mode: TiltMode = TiltMode.TIME_BASED
    min_tilt_angle: float = 15.0
    max_tilt_angle: float = 60.0
    adjustment_interval: int = 60
    use_weather_data: bool = True
    aggressiveness: Aggressiveness = Aggressiveness.MODERATE
    updated_at: datetime

    @classmethod
    def defaults(cls) -> "AutoTiltSettings":
        """Return a fresh default instance."""
        return cls(id=new_id(), updated_at=utc_now())

    @model_validator(mode="after")
    def _min_not_above_max(self) -> "AutoTiltSettings":
        if self.min_tilt_angle > self.max_tilt_angle:
            raise ValueError("minTiltAngle must not exceed maxTiltAngle")
        return self

    def merged(self, update: "AutoTiltSettingsUpdate") -> "AutoTiltSettings":
        """Return a validated copy with only the explicitly provided fields replaced.

        Raises:
            pydantic.ValidationError: If the merged bounds are inconsistent,
                e.g. a new minimum above the stored maximum.
        """
        changes = update.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()
        return AutoTiltSettings.model_validate({**self.model_dump(), **changes})


class AutoTiltSettingsUpdate(CamelModel):
    """Partial update of the auto-tilt singleton; unset fields are kept."""

    enabled: bool | None = None
    mode: TiltMode | None = None
    min_tilt_angle: float | None = Field(default=None, ge=0, le=90)
    max_tilt_angle: float | None = Field(default=None, ge=0, le=90)
    adjustment_interval: int | None = Field(default=None, ge=1)
    use_weather_data: bool | None = None
    aggressiveness: Aggressiveness | None = None

    @model_validator(mode="after")
    def _min_not_above_max(self) -> "AutoTiltSettingsUpdate":
        if (
            self.min_tilt_angle is not None
            and self.max_tilt_angle is not None
            and self.min_tilt_angle > self.max_tilt_angle
        ):
            raise ValueError("minTiltAngle must not exceed maxTiltAngle")
        return self


# ---------------------------------------------------------------------------
# Composite views
# ---------------------------------------------------------------------------


class PanelWithCurrentReading(Panel):
    """A panel plus its latest reading and open work counts."""

    current_reading: SensorReading | None = None
    active_alerts: int = 0
    recommendations: int = 0


class PanelDetail(Panel):
    """Everything the panel detail view shows for one panel."""

    current_reading: SensorReading | None = None
    recent_readings: list[SensorReading] = Field(default_factory=list)
    predictions: list[Prediction] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)


class FarmAggregate(CamelModel):
    """Summary produced by one ingestion tick."""

    timestamp: datetime
    total_panels: int
    total_energy_output: float
    average_efficiency: float
    latest_readings: list[SensorReading] = Field(default_factory=list)
