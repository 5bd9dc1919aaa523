"""
Farm-level summaries for the dashboard, history and cost views.

All functions here are pure: they take panels (with their current
readings), stored readings or weather and return response models. Averages
over an empty farm are 0 rather than NaN.

CHANGELOG:
- 2026-09-27: Hourly history buckets from stored readings (STORY-017)
- 2026-09-26: Cost-benefit analysis (STORY-017)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

import math
from collections.abc import Sequence
from datetime import datetime

from solarfarm.models import (
    Alert,
    CamelModel,
    PanelStatus,
    PanelWithCurrentReading,
    Recommendation,
    SensorReading,
    utc_now,
)
from solarfarm.sensors.blynk import CLEANING_DUST_THRESHOLD, HardwareState
from solarfarm.sensors.simulator import CLEAN_STATUS, CURRENT_LIMIT_MA, DUSTY_STATUS
from solarfarm.services.advisor import Advisor, Conditions
from solarfarm.services.alerts import farm_alerts
from solarfarm.services.weather import WeatherData

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FARM_READING_ID = "farm-average"
DEFAULT_TILT_ANGLE = 32.0

MAINTENANCE_HEALTH_THRESHOLD = 70.0
MAINTENANCE_DUST_THRESHOLD = 7.0
TOP_RECOMMENDATIONS = 3

# Today's averages are reported slightly below the instantaneous values.
TODAY_ENERGY_FACTOR = 0.95
TODAY_EFFICIENCY_FACTOR = 0.97
TODAY_SUNLIGHT_FACTOR = 0.96

TARIFF_PER_KWH = 8.0
"""Electricity tariff in rupees per kWh."""

GENERATION_HOURS_PER_DAY = 8
DAYS_PER_MONTH = 30
CLEANING_COST_PER_PANEL = 50.0
CLEANING_DUST_LEVEL = 5.0


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PanelSummary(CamelModel):
    total: int
    active: int
    maintenance: int
    offline: int
    damaged: int
    average_health: float
    average_efficiency: float


class TodayAverage(CamelModel):
    energy_output: float
    efficiency: float
    sunlight_intensity: float


class DashboardStats(CamelModel):
    current_reading: SensorReading
    today_average: TodayAverage
    active_alerts: list[Alert]
    top_recommendations: list[Recommendation]
    total_panels: int
    active_panels: int
    panels_needing_maintenance: int
    average_health_score: float


class HistoryPoint(CamelModel):
    """Farm averages over one hour of stored readings."""

    timestamp: datetime
    energy_output: float
    efficiency_percent: float
    sunlight_intensity: float
    temperature: float
    dust_level: float
    reading_count: int


class MonthlyAnalysis(CamelModel):
    potential_revenue: float
    actual_revenue: float
    energy_loss: float
    cleaning_cost: float
    net_savings: float
    roi: str


class CleaningAdvice(CamelModel):
    optimal_cleaning_frequency: int
    estimated_annual_savings: float
    panels_needing_cleaning: int


class CostBenefit(CamelModel):
    monthly_analysis: MonthlyAnalysis
    recommendations: CleaningAdvice


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _current(panels: Sequence[PanelWithCurrentReading], field: str) -> list[float]:
    """Current-reading values of ``field``, counting missing readings as 0."""
    return [
        getattr(p.current_reading, field) if p.current_reading is not None else 0.0
        for p in panels
    ]


def panel_summary(panels: Sequence[PanelWithCurrentReading]) -> PanelSummary:
    """Count panels by status and average their health and efficiency."""
    return PanelSummary(
        total=len(panels),
        active=sum(p.status is PanelStatus.ACTIVE for p in panels),
        maintenance=sum(p.status is PanelStatus.MAINTENANCE for p in panels),
        offline=sum(p.status is PanelStatus.OFFLINE for p in panels),
        damaged=sum(p.status is PanelStatus.DAMAGED for p in panels),
        average_health=_mean([p.health_score for p in panels]),
        average_efficiency=_mean(_current(panels, "efficiency_percent")),
    )


def farm_conditions(
    panels: Sequence[PanelWithCurrentReading], weather: WeatherData
) -> Conditions:
    """Farm-average conditions with the ambient temperature from ``weather``."""
    return Conditions(
        efficiency_percent=_mean(_current(panels, "efficiency_percent")),
        dust_level=_mean(_current(panels, "dust_level")),
        temperature=weather.temperature,
        tilt_angle=DEFAULT_TILT_ANGLE,
        sunlight_intensity=_mean(_current(panels, "sunlight_intensity")),
        energy_output=sum(_current(panels, "energy_output")),
    )


def farm_reading(
    panels: Sequence[PanelWithCurrentReading],
    weather: WeatherData,
    hardware: HardwareState | None = None,
) -> SensorReading:
    """Build a synthetic reading describing the farm as a whole.

    Energy is the farm total; the other measurements are farm averages.
    When the demo panel's hardware values are available they replace the
    simulated energy, light, dust, tilt and current values.

    Args:
        panels: Panels with their current readings.
        weather: Current weather, supplying the temperature.
        hardware: Last polled demo panel values, if any.

    Returns:
        SensorReading: Reading with id and panel id ``farm-average``.
    """
    conditions = farm_conditions(panels, weather)
    energy = conditions.energy_output
    sunlight = conditions.sunlight_intensity
    dust = conditions.dust_level
    tilt = conditions.tilt_angle
    current_ma = 0.0
    sweep = False
    if hardware is not None and hardware.has_data:
        energy = hardware.energy_output
        sunlight = hardware.light_intensity
        dust = hardware.dust_level
        tilt = hardware.tilt_angle
        current_ma = hardware.current_level_ma
        sweep = hardware.cleaning_active

    return SensorReading(
        id=FARM_READING_ID,
        panel_id=FARM_READING_ID,
        timestamp=utc_now(),
        energy_output=energy,
        sunlight_intensity=sunlight,
        temperature=weather.temperature,
        dust_level=dust,
        tilt_angle=tilt,
        efficiency_percent=conditions.efficiency_percent,
        dust_status=DUSTY_STATUS if dust > CLEANING_DUST_THRESHOLD else CLEAN_STATUS,
        current_level_ma=current_ma,
        power_output_mw=energy * 1000,
        overload=current_ma > CURRENT_LIMIT_MA,
        sweep_enable=sweep,
    )


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def dashboard_stats(
    panels: Sequence[PanelWithCurrentReading],
    weather: WeatherData,
    advisor: Advisor,
    hardware: HardwareState | None = None,
) -> DashboardStats:
    """Assemble the dashboard overview.

    Alerts and recommendations here are evaluated live and are not stored.
    """
    reading = farm_reading(panels, weather, hardware)
    summary = panel_summary(panels)
    conditions = farm_conditions(panels, weather)
    recommendations = advisor.generate_recommendations(conditions, weather)
    needing_maintenance = sum(
        p.health_score < MAINTENANCE_HEALTH_THRESHOLD
        or (
            p.current_reading is not None
            and p.current_reading.dust_level > MAINTENANCE_DUST_THRESHOLD
        )
        for p in panels
    )
    return DashboardStats(
        current_reading=reading,
        today_average=TodayAverage(
            energy_output=conditions.energy_output * TODAY_ENERGY_FACTOR,
            efficiency=conditions.efficiency_percent * TODAY_EFFICIENCY_FACTOR,
            sunlight_intensity=reading.sunlight_intensity * TODAY_SUNLIGHT_FACTOR,
        ),
        active_alerts=[alert.build() for alert in farm_alerts(panels)],
        top_recommendations=[rec.build() for rec in recommendations[:TOP_RECOMMENDATIONS]],
        total_panels=summary.total,
        active_panels=summary.active,
        panels_needing_maintenance=needing_maintenance,
        average_health_score=summary.average_health,
    )


def hourly_history(readings: Sequence[SensorReading]) -> list[HistoryPoint]:
    """Bucket stored readings by hour and average each bucket.

    Args:
        readings: Readings in any order.

    Returns:
        list[HistoryPoint]: One point per hour that has readings, oldest first.
    """
    buckets: dict[datetime, list[SensorReading]] = {}
    for reading in readings:
        hour = reading.timestamp.replace(minute=0, second=0, microsecond=0)
        buckets.setdefault(hour, []).append(reading)

    return [
        HistoryPoint(
            timestamp=hour,
            energy_output=_mean([r.energy_output for r in bucket]),
            efficiency_percent=_mean([r.efficiency_percent for r in bucket]),
            sunlight_intensity=_mean([r.sunlight_intensity for r in bucket]),
            temperature=_mean([r.temperature for r in bucket]),
            dust_level=_mean([r.dust_level for r in bucket]),
            reading_count=len(bucket),
        )
        for hour, bucket in sorted(buckets.items())
    ]


def cost_benefit(
    panels: Sequence[PanelWithCurrentReading], nominal_power_w: float = 250.0
) -> CostBenefit:
    """Estimate monthly revenue lost to under-performance against cleaning cost.

    Args:
        panels: Panels with their current readings.
        nominal_power_w: Rated output per panel in watts.

    Returns:
        CostBenefit: Monthly figures in rupees and cleaning advice.
    """
    energy_hours = GENERATION_HOURS_PER_DAY * DAYS_PER_MONTH
    potential_kwh = nominal_power_w * len(panels) * energy_hours / 1000
    actual_kwh = sum(_current(panels, "energy_output")) * energy_hours / 1000
    monthly_loss = (potential_kwh - actual_kwh) * TARIFF_PER_KWH

    needing_cleaning = sum(
        p.current_reading is not None and p.current_reading.dust_level > CLEANING_DUST_LEVEL
        for p in panels
    )
    cleaning_cost = needing_cleaning * CLEANING_COST_PER_PANEL
    net_savings = monthly_loss - cleaning_cost

    if net_savings > 0 and cleaning_cost > 0:
        roi = f"{net_savings / cleaning_cost * 100:.1f}"
    else:
        roi = "0"
    frequency = math.ceil(needing_cleaning / len(panels) * 4) if panels else 0

    return CostBenefit(
        monthly_analysis=MonthlyAnalysis(
            potential_revenue=potential_kwh * TARIFF_PER_KWH,
            actual_revenue=actual_kwh * TARIFF_PER_KWH,
            energy_loss=monthly_loss,
            cleaning_cost=cleaning_cost,
            net_savings=max(0.0, net_savings),
            roi=roi,
        ),
        recommendations=CleaningAdvice(
            optimal_cleaning_frequency=frequency,
            estimated_annual_savings=net_savings * 12,
            panels_needing_cleaning=needing_cleaning,
        ),
    )
