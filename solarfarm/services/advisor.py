"""
Rule-based efficiency advisor.

Turns current panel (or farm-average) conditions into efficiency
predictions, a 7-day forecast and maintenance recommendations. Every rule
is a fixed heuristic; random jitter is limited to confidence scores and
forecast variance and comes from an injectable random source.

Recommendation rules:

- cleaning when dust > 6 (high urgency above 8);
- temperature when > 35 C (high urgency above 40 C);
- tilt adjustment when more than 10 degrees off the optimal tilt for the
  hour (high urgency above 20 degrees);
- system performance review when efficiency < 60 and nothing else fired;
- peak-hour optimisation between 10:00 and 14:00 when efficiency < 80;
- preventive cleaning when weather dust factor > 2.5 and dust < 4;
- summer optimisation from March to May.

Results are ordered by urgency weight times impact score, highest first.

CHANGELOG:
- 2026-09-25: Add weather-aware single prediction (STORY-013)
- 2026-09-24: Initial creation (STORY-013)

TODO:
- None
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from solarfarm.models import (
    URGENCY_WEIGHT,
    PredictionCreate,
    RecommendationCategory,
    RecommendationCreate,
    RiskLevel,
    SensorReading,
    Urgency,
    utc_now,
)
from solarfarm.sensors.feed import local_now
from solarfarm.services.weather import WeatherData

logger = logging.getLogger(__name__)

FORECAST_DAYS = 7
PREDICTION_HORIZON = timedelta(days=7)
DEFAULT_BASE_EFFICIENCY = 75.0


@dataclass(frozen=True)
class Conditions:
    """Inputs the advisor reasons about.

    Attributes:
        efficiency_percent: Current efficiency, 0-100.
        dust_level: Dust on the 0-10 scale.
        temperature: Panel temperature in Celsius.
        tilt_angle: Tilt in degrees.
        sunlight_intensity: Irradiance in W/m^2.
        energy_output: Output in watts.
    """

    efficiency_percent: float
    dust_level: float
    temperature: float
    tilt_angle: float = 32.0
    sunlight_intensity: float = 0.0
    energy_output: float = 0.0

    @classmethod
    def from_reading(cls, reading: SensorReading) -> "Conditions":
        return cls(
            efficiency_percent=reading.efficiency_percent,
            dust_level=reading.dust_level,
            temperature=reading.temperature,
            tilt_angle=reading.tilt_angle,
            sunlight_intensity=reading.sunlight_intensity,
            energy_output=reading.energy_output,
        )


@dataclass(frozen=True)
class EfficiencyEstimate:
    predicted_efficiency: float
    degradation_risk: RiskLevel
    confidence_score: float
    factors: dict[str, float]


def risk_for_efficiency(efficiency: float) -> RiskLevel:
    """Map a predicted efficiency onto a degradation risk."""
    if efficiency >= 75:
        return RiskLevel.LOW
    if efficiency >= 50:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def optimal_tilt(hour: int) -> float:
    """Return the optimal tilt angle in degrees for a local hour of day."""
    if hour < 9:
        return 45.0
    if hour < 12:
        return 35.0
    if hour < 15:
        return 30.0
    if hour < 18:
        return 35.0
    return 45.0


def _ranked(recommendations: list[RecommendationCreate]) -> list[RecommendationCreate]:
    return sorted(
        recommendations,
        key=lambda rec: URGENCY_WEIGHT[rec.urgency] * rec.impact_score,
        reverse=True,
    )


class Advisor:
    """Prediction and recommendation engine.

    Args:
        rng: Random source for confidence scores and forecast variance.
        clock: Returns the current aware datetime; drives hour and month
            dependent rules.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def predict_efficiency(
        self, *, temperature: float, sunlight_intensity: float, dust_level: float, hour: int
    ) -> EfficiencyEstimate:
        """Estimate efficiency from environmental conditions.

        Args:
            temperature: Panel temperature in Celsius.
            sunlight_intensity: Irradiance in W/m^2.
            dust_level: Dust on the 0-10 scale.
            hour: Local hour of day.

        Returns:
            EfficiencyEstimate: Clamped efficiency, risk and factor breakdown.
        """
        temperature_delta = abs(temperature - 25)
        sunlight_factor = min(sunlight_intensity / 300, 1.0)
        dust_impact = dust_level / 10 * 20
        peak_bonus = 5.0 if 10 <= hour <= 14 else 0.0

        efficiency = 85 - temperature_delta * 0.5
        efficiency *= sunlight_factor
        efficiency -= dust_impact
        if 10 <= hour <= 14:
            efficiency += 5
        elif hour < 8 or hour > 16:
            efficiency -= 5
        efficiency = max(0.0, min(100.0, efficiency))

        return EfficiencyEstimate(
            predicted_efficiency=efficiency,
            degradation_risk=risk_for_efficiency(efficiency),
            confidence_score=0.75 + self._rng.random() * 0.2,
            factors={
                "temperatureImpact": -temperature_delta * 0.5,
                "sunlightFactor": sunlight_factor,
                "dustImpact": -dust_impact,
                "timeOfDayBonus": peak_bonus,
            },
        )

    def generate_recommendations(
        self,
        conditions: Conditions,
        weather: WeatherData | None = None,
        *,
        panel_id: str | None = None,
    ) -> list[RecommendationCreate]:
        """Apply every recommendation rule to ``conditions``.

        Args:
            conditions: Current panel or farm-average conditions.
            weather: Current weather, enabling the preventive cleaning rule.
            panel_id: Panel the recommendations are for, None for farm-wide.

        Returns:
            list[RecommendationCreate]: Ranked by urgency weight times impact.
        """
        now = self._clock()
        dust = conditions.dust_level
        temperature = conditions.temperature
        efficiency = conditions.efficiency_percent
        found: list[RecommendationCreate] = []

        def add(**fields: object) -> None:
            found.append(RecommendationCreate(panel_id=panel_id, **fields))

        if dust > 6:
            add(
                title="Panel Cleaning Required",
                description=(
                    f"Dust accumulation has reached {dust:.1f}/10. Cleaning the panels "
                    "will restore optimal light absorption."
                ),
                type=RecommendationCategory.CLEANING,
                urgency=Urgency.HIGH if dust > 8 else Urgency.MEDIUM,
                impact_score=min(95.0, dust * 10),
                ai_explanation=(
                    f"Dust levels at {dust:.1f}/10 are reducing effective sunlight "
                    f"intensity by approximately {dust / 10 * 100:.0f}%. Cleaning at "
                    "this level typically improves efficiency by 15-25%."
                ),
            )

        if temperature > 35:
            excess = temperature - 25
            add(
                title="Temperature Optimization",
                description=(
                    f"Panel temperature is {temperature:.1f}°C. Consider installing "
                    "cooling systems or improving ventilation."
                ),
                type=RecommendationCategory.MAINTENANCE,
                urgency=Urgency.HIGH if temperature > 40 else Urgency.MEDIUM,
                impact_score=min(85.0, excess * 3),
                ai_explanation=(
                    f"Operating temperature is {excess:.1f}°C above optimal (25°C). "
                    "Each degree above optimal reduces efficiency by approximately "
                    f"0.5%, so cooling could recover {excess * 0.5:.1f}% efficiency."
                ),
            )

        target_tilt = optimal_tilt(now.hour)
        tilt_delta = abs(conditions.tilt_angle - target_tilt)
        if tilt_delta > 10:
            add(
                title="Adjust Panel Tilt Angle",
                description=(
                    f"Current tilt: {conditions.tilt_angle:.1f}°. Optimal for this time: "
                    f"{target_tilt:.1f}°. Adjustment will maximize sunlight capture."
                ),
                type=RecommendationCategory.TILT_ADJUSTMENT,
                urgency=Urgency.HIGH if tilt_delta > 20 else Urgency.LOW,
                impact_score=min(75.0, tilt_delta * 2),
                ai_explanation=(
                    f"Adjusting the tilt angle to {target_tilt:.1f}° will improve "
                    f"direct sunlight capture by {tilt_delta * 1.5:.1f}%. Proper tilt "
                    "alignment can increase daily energy output by 8-12%."
                ),
            )

        if efficiency < 60 and not found:
            add(
                title="System Performance Review",
                description=(
                    f"Overall efficiency is {efficiency:.1f}%. Multiple factors may be "
                    "contributing. Consider a comprehensive system inspection."
                ),
                type=RecommendationCategory.MAINTENANCE,
                urgency=Urgency.HIGH,
                impact_score=90.0,
                ai_explanation=(
                    f"Efficiency of {efficiency:.1f}% cannot be attributed to a single "
                    "factor. Investigate wiring connections, panel degradation, "
                    "inverter performance and environmental obstructions."
                ),
            )

        if 10 <= now.hour <= 14 and efficiency < 80:
            add(
                title="Peak Hour Optimization",
                description=(
                    "System is underperforming during peak sunlight hours. Immediate "
                    "action will maximize energy capture during optimal conditions."
                ),
                type=RecommendationCategory.OPTIMIZATION,
                urgency=Urgency.MEDIUM,
                impact_score=70.0,
                ai_explanation=(
                    f"Current time ({now.hour}:00) falls within peak solar hours "
                    "(10:00-14:00) when about 60% of daily energy is generated. "
                    "Dust removal and tilt adjustment now give the largest return."
                ),
            )

        if weather is not None and weather.dust_factor > 2.5 and dust < 4:
            add(
                title="Preventive Cleaning Scheduled",
                description=(
                    "Weather forecast indicates high dust accumulation risk "
                    f"(factor: {weather.dust_factor:.1f}). Schedule cleaning before "
                    "efficiency drops."
                ),
                type=RecommendationCategory.MAINTENANCE,
                urgency=Urgency.LOW,
                impact_score=15.0,
                ai_explanation=(
                    f"Current weather (wind speed {weather.wind_speed:.1f} m/s) points to "
                    "accelerated dust accumulation over the next 3-5 days. Cleaning "
                    "now can prevent a projected 15% efficiency drop."
                ),
            )

        if 3 <= now.month <= 5:
            add(
                title="Summer Season Optimization",
                description=(
                    "Increase cleaning frequency and monitor temperature closely during "
                    "summer months for optimal performance."
                ),
                type=RecommendationCategory.OPTIMIZATION,
                urgency=Urgency.LOW,
                impact_score=20.0,
                ai_explanation=(
                    "Summer months (March-May) bring markedly higher dust accumulation "
                    "from dry winds, and higher ambient temperatures reduce panel "
                    "efficiency. Clean bi-weekly and keep ventilation clear."
                ),
            )

        return _ranked(found)

    def generate_forecast(self, baseline_efficiency: float) -> list[PredictionCreate]:
        """Return a farm-wide forecast for each of the next seven days."""
        now = utc_now()
        forecast: list[PredictionCreate] = []
        for day in range(1, FORECAST_DAYS + 1):
            variance = (self._rng.random() - 0.5) * 10
            trend = -day * 0.3
            efficiency = max(40.0, min(100.0, baseline_efficiency + variance + trend))
            forecast.append(
                PredictionCreate(
                    predicted_date=now + timedelta(days=day),
                    predicted_efficiency=efficiency,
                    degradation_risk=risk_for_efficiency(efficiency),
                    confidence_score=max(0.6, 0.9 - day * 0.05),
                    factors={
                        "baseline": baseline_efficiency,
                        "variance": variance,
                        "seasonalTrend": trend,
                        "dayOffset": float(day),
                    },
                )
            )
        return forecast

    def generate_prediction(
        self,
        conditions: Conditions,
        weather: WeatherData | None = None,
        *,
        panel_id: str | None = None,
    ) -> PredictionCreate:
        """Predict efficiency one week out from current conditions and weather.

        Args:
            conditions: Current panel or farm-average conditions.
            weather: Current weather; its dust factor adds to the risk.
            panel_id: Panel the prediction is for, None for farm-wide.

        Returns:
            PredictionCreate: Prediction dated seven days from now.
        """
        base = conditions.efficiency_percent or DEFAULT_BASE_EFFICIENCY
        dust_impact = conditions.dust_level * 2
        temperature_impact = max(0.0, (conditions.temperature - 25) * 0.5)
        weather_impact = weather.dust_factor * 1.5 if weather is not None else 0.0
        total_impact = dust_impact + temperature_impact + weather_impact

        risk_score = total_impact / 3
        if risk_score < 5:
            risk = RiskLevel.LOW
        elif risk_score < 10:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.HIGH

        predicted = max(30.0, base - total_impact * 0.5)
        return PredictionCreate(
            panel_id=panel_id,
            predicted_date=utc_now() + PREDICTION_HORIZON,
            predicted_efficiency=round(predicted, 1),
            degradation_risk=risk,
            confidence_score=0.85 + self._rng.random() * 0.1,
            factors={
                "dustImpact": dust_impact,
                "tempImpact": temperature_impact,
                "weatherImpact": weather_impact,
                "baseEfficiency": base,
            },
        )
