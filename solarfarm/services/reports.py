"""
Farm report assembly.

A report bundles the farm-average reading, the ten most urgent
recommendations (farm rules plus one per critical panel), a one-week
efficiency outlook, hourly history for the last day, the cost-benefit
analysis and the current weather.

CHANGELOG:
- 2026-09-28: Initial creation (STORY-018)

TODO:
- None
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from solarfarm.models import (
    CamelModel,
    PanelWithCurrentReading,
    Prediction,
    Recommendation,
    RecommendationCategory,
    RecommendationCreate,
    SensorReading,
    Urgency,
    utc_now,
)
from solarfarm.sensors.blynk import HardwareState
from solarfarm.services.advisor import Advisor
from solarfarm.services.dashboard import (
    CostBenefit,
    HistoryPoint,
    cost_benefit,
    farm_conditions,
    farm_reading,
    hourly_history,
)
from solarfarm.services.weather import WeatherData

CRITICAL_HEALTH = 70.0
CRITICAL_EFFICIENCY = 60.0
CRITICAL_PANEL_LIMIT = 10
REPORT_RECOMMENDATION_LIMIT = 10
OUTLOOK_DAYS = 7
CLEANING_LEAD_TIME = timedelta(days=7)

ESTIMATED_RECOVERY_PERCENT = 15.0
"""Efficiency typically regained by a full cleaning."""


class OutlookPoint(CamelModel):
    date: datetime
    efficiency: float
    confidence: float


class ReportOutlook(CamelModel):
    prediction: Prediction
    forecast: list[OutlookPoint]
    next_cleaning_date: datetime
    estimated_recovery: float


class FarmReport(CamelModel):
    generated_at: datetime
    current_reading: SensorReading
    recommendations: list[Recommendation]
    predictions: ReportOutlook
    historical_data: list[HistoryPoint]
    cost_analysis: CostBenefit
    weather_data: WeatherData


def critical_panel_recommendations(
    panels: Sequence[PanelWithCurrentReading],
) -> list[RecommendationCreate]:
    """One maintenance recommendation per critical panel, worst health first.

    A panel is critical when its health is below 70 or its current
    efficiency is below 60. At most ten panels are reported.
    """
    critical = [
        p for p in panels
        if p.health_score < CRITICAL_HEALTH
        or (
            p.current_reading is not None
            and p.current_reading.efficiency_percent < CRITICAL_EFFICIENCY
        )
    ]
    critical.sort(key=lambda p: p.health_score)

    recommendations: list[RecommendationCreate] = []
    for panel in critical[:CRITICAL_PANEL_LIMIT]:
        efficiency = (
            panel.current_reading.efficiency_percent if panel.current_reading else 0.0
        )
        recommendations.append(
            RecommendationCreate(
                panel_id=panel.id,
                title=f"Panel {panel.panel_number} Needs Attention",
                description=(
                    f"Health Score: {panel.health_score:.0f}%. Efficiency: "
                    f"{efficiency:.1f}%. Located at {panel.location}."
                ),
                type=RecommendationCategory.MAINTENANCE,
                urgency=Urgency.HIGH if panel.health_score < 50 else Urgency.MEDIUM,
                impact_score=max(0.0, min(100.0, 100 - panel.health_score)),
                ai_explanation=(
                    f"Panel {panel.panel_number} is underperforming based on health metrics."
                ),
            )
        )
    return recommendations


def build_report(
    *,
    panels: Sequence[PanelWithCurrentReading],
    history: Sequence[SensorReading],
    weather: WeatherData,
    advisor: Advisor,
    hardware: HardwareState | None = None,
    nominal_power_w: float = 250.0,
) -> FarmReport:
    """Assemble a complete farm report.

    Args:
        panels: Panels with their current readings.
        history: Stored readings of the last day.
        weather: Current weather.
        advisor: Advisor used for predictions and recommendations.
        hardware: Last polled demo panel values, if any.
        nominal_power_w: Rated output per panel in watts.

    Returns:
        FarmReport: The report model.
    """
    now = utc_now()
    conditions = farm_conditions(panels, weather)
    prediction = advisor.generate_prediction(conditions, weather).build()

    candidates = [
        rec.build()
        for rec in (
            advisor.generate_recommendations(conditions, weather)
            + critical_panel_recommendations(panels)
        )
    ]
    candidates.sort(key=Recommendation.sort_key)

    outlook = [
        OutlookPoint(
            date=now + timedelta(days=day + 1),
            efficiency=prediction.predicted_efficiency - day * 0.5,
            confidence=prediction.confidence_score * (1 - day * 0.05),
        )
        for day in range(OUTLOOK_DAYS)
    ]

    return FarmReport(
        generated_at=now,
        current_reading=farm_reading(panels, weather, hardware),
        recommendations=candidates[:REPORT_RECOMMENDATION_LIMIT],
        predictions=ReportOutlook(
            prediction=prediction,
            forecast=outlook,
            next_cleaning_date=now + CLEANING_LEAD_TIME,
            estimated_recovery=ESTIMATED_RECOVERY_PERCENT,
        ),
        historical_data=hourly_history(history),
        cost_analysis=cost_benefit(panels, nominal_power_w),
        weather_data=weather,
    )
