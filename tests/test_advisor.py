"""
Tests for the rule-based efficiency advisor.

CHANGELOG:
- 2026-09-25: Weather-aware prediction tests (STORY-013)
- 2026-09-24: Initial creation (STORY-013)

TODO:
- None
"""

import random
from datetime import UTC, datetime

import pytest

from solarfarm.models import RecommendationCategory, RiskLevel, Urgency
from solarfarm.services.advisor import (
    Advisor,
    Conditions,
    optimal_tilt,
    risk_for_efficiency,
)
from solarfarm.services.weather import WeatherData


def _make_advisor(month: int = 1, hour: int = 8) -> Advisor:
    now = datetime(2026, month, 15, hour, 0, tzinfo=UTC)
    return Advisor(rng=random.Random(2), clock=lambda: now)


def _conditions(**overrides: float) -> Conditions:
    # Tilt 45 is optimal at 08:00, so no tilt rule fires by default.
    fields: dict[str, float] = {
        "efficiency_percent": 85.0,
        "dust_level": 2.0,
        "temperature": 25.0,
        "tilt_angle": 45.0,
    }
    fields.update(overrides)
    return Conditions(**fields)


def _weather(dust_factor: float = 1.0) -> WeatherData:
    return WeatherData(temperature=30, humidity=50, dust_factor=dust_factor, wind_speed=8)


def _titles(recommendations) -> list[str]:
    return [rec.title for rec in recommendations]


class TestHelpers:
    @pytest.mark.parametrize(
        "efficiency, risk",
        [(75.0, RiskLevel.LOW), (74.9, RiskLevel.MEDIUM), (50.0, RiskLevel.MEDIUM), (49.9, RiskLevel.HIGH)],
    )
    def test_risk_for_efficiency(self, efficiency: float, risk: RiskLevel) -> None:
        assert risk_for_efficiency(efficiency) is risk

    @pytest.mark.parametrize(
        "hour, angle", [(6, 45.0), (9, 35.0), (12, 30.0), (16, 35.0), (19, 45.0)]
    )
    def test_optimal_tilt(self, hour: int, angle: float) -> None:
        assert optimal_tilt(hour) == angle


class TestRecommendations:
    """Each rule and the final ranking."""

    def test_healthy_conditions_produce_nothing(self) -> None:
        assert _make_advisor().generate_recommendations(_conditions()) == []

    def test_cleaning_urgency_by_dust(self) -> None:
        advisor = _make_advisor()
        (heavy,) = advisor.generate_recommendations(_conditions(dust_level=9.0))
        assert heavy.type is RecommendationCategory.CLEANING
        assert heavy.urgency is Urgency.HIGH
        assert heavy.impact_score == 90.0

        (moderate,) = advisor.generate_recommendations(_conditions(dust_level=7.0))
        assert moderate.urgency is Urgency.MEDIUM
        assert moderate.impact_score == 70.0

    def test_temperature_rule(self) -> None:
        (rec,) = _make_advisor().generate_recommendations(_conditions(temperature=42.0))
        assert rec.title == "Temperature Optimization"
        assert rec.urgency is Urgency.HIGH
        assert rec.impact_score == pytest.approx(51.0)

    def test_tilt_rule(self) -> None:
        (rec,) = _make_advisor().generate_recommendations(_conditions(tilt_angle=10.0))
        assert rec.type is RecommendationCategory.TILT_ADJUSTMENT
        assert rec.urgency is Urgency.HIGH
        assert rec.impact_score == 70.0

    def test_performance_review_only_when_nothing_else_fired(self) -> None:
        advisor = _make_advisor()
        (review,) = advisor.generate_recommendations(_conditions(efficiency_percent=50.0))
        assert review.title == "System Performance Review"
        assert review.impact_score == 90.0

        with_dust = advisor.generate_recommendations(
            _conditions(efficiency_percent=50.0, dust_level=9.0)
        )
        assert "System Performance Review" not in _titles(with_dust)

    def test_peak_hour_rule(self) -> None:
        advisor = _make_advisor(hour=12)
        recs = advisor.generate_recommendations(
            _conditions(efficiency_percent=70.0, tilt_angle=30.0)
        )
        assert _titles(recs) == ["Peak Hour Optimization"]

    def test_preventive_cleaning_needs_dusty_weather(self) -> None:
        advisor = _make_advisor()
        assert advisor.generate_recommendations(_conditions(), _weather(1.0)) == []
        recs = advisor.generate_recommendations(_conditions(), _weather(3.0))
        assert _titles(recs) == ["Preventive Cleaning Scheduled"]

    def test_summer_rule(self) -> None:
        recs = _make_advisor(month=4).generate_recommendations(_conditions())
        assert _titles(recs) == ["Summer Season Optimization"]

    def test_ranked_by_weighted_impact_and_scoped(self) -> None:
        recs = _make_advisor(month=4).generate_recommendations(
            _conditions(dust_level=9.0, temperature=42.0), panel_id="panel-3"
        )
        assert _titles(recs) == [
            "Panel Cleaning Required",
            "Temperature Optimization",
            "Summer Season Optimization",
        ]
        assert {rec.panel_id for rec in recs} == {"panel-3"}


class TestPredictions:
    """Efficiency estimates, forecasts and single predictions."""

    def test_predict_efficiency_peak_hour(self) -> None:
        estimate = _make_advisor().predict_efficiency(
            temperature=25.0, sunlight_intensity=600.0, dust_level=0.0, hour=12
        )
        assert estimate.predicted_efficiency == 90.0
        assert estimate.degradation_risk is RiskLevel.LOW
        assert estimate.factors["timeOfDayBonus"] == 5.0
        assert 0.75 <= estimate.confidence_score <= 0.95

    def test_predict_efficiency_dust_and_evening(self) -> None:
        advisor = _make_advisor()
        dusty = advisor.predict_efficiency(
            temperature=25.0, sunlight_intensity=600.0, dust_level=10.0, hour=9
        )
        assert dusty.predicted_efficiency == 65.0
        assert dusty.degradation_risk is RiskLevel.MEDIUM

        evening = advisor.predict_efficiency(
            temperature=25.0, sunlight_intensity=600.0, dust_level=0.0, hour=20
        )
        assert evening.predicted_efficiency == 80.0

    def test_forecast_covers_seven_days(self) -> None:
        forecast = _make_advisor().generate_forecast(80.0)
        assert len(forecast) == 7
        dates = [p.predicted_date for p in forecast]
        assert dates == sorted(dates)
        assert all(40.0 <= p.predicted_efficiency <= 100.0 for p in forecast)
        assert forecast[0].confidence_score == pytest.approx(0.85)
        assert forecast[-1].confidence_score == pytest.approx(0.6)
        assert all(p.panel_id is None for p in forecast)

    def test_prediction_from_conditions_and_weather(self) -> None:
        prediction = _make_advisor().generate_prediction(
            _conditions(efficiency_percent=80.0, dust_level=3.0, temperature=29.0),
            _weather(2.0),
            panel_id="panel-2",
        )
        assert prediction.panel_id == "panel-2"
        assert prediction.predicted_efficiency == 74.5
        assert prediction.degradation_risk is RiskLevel.LOW
        assert prediction.factors == {
            "dustImpact": 6.0,
            "tempImpact": 2.0,
            "weatherImpact": 3.0,
            "baseEfficiency": 80.0,
        }
        assert 0.85 <= prediction.confidence_score <= 0.95

    def test_prediction_high_risk_and_floor(self) -> None:
        prediction = _make_advisor().generate_prediction(
            _conditions(efficiency_percent=40.0, dust_level=10.0, temperature=45.0),
            _weather(5.0),
        )
        assert prediction.degradation_risk is RiskLevel.HIGH
        assert prediction.predicted_efficiency == 30.0

    def test_prediction_defaults_base_efficiency(self) -> None:
        prediction = _make_advisor().generate_prediction(_conditions(efficiency_percent=0.0))
        assert prediction.factors["baseEfficiency"] == 75.0
        assert prediction.factors["weatherImpact"] == 0.0
