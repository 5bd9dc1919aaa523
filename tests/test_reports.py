"""
Tests for farm report assembly.

CHANGELOG:
- 2026-09-28: Initial creation (STORY-018)

TODO:
- None
"""

import random
from datetime import UTC, datetime

from conftest import at, make_farm_panel, make_reading

from solarfarm.models import Recommendation, Urgency
from solarfarm.services.advisor import Advisor
from solarfarm.services.reports import build_report, critical_panel_recommendations
from solarfarm.services.weather import WeatherData


def _weather() -> WeatherData:
    return WeatherData(temperature=36, humidity=30, dust_factor=4.0, wind_speed=12)


def _advisor() -> Advisor:
    now = datetime(2026, 4, 10, 12, 0, tzinfo=UTC)
    return Advisor(rng=random.Random(8), clock=lambda: now)


class TestCriticalPanels:
    def test_worst_health_first_with_urgency(self) -> None:
        panels = [
            make_farm_panel(1, make_reading("panel-1"), health_score=65.0),
            make_farm_panel(2, make_reading("panel-2"), health_score=40.0),
            make_farm_panel(3, make_reading("panel-3", efficiency_percent=55.0)),
            make_farm_panel(4, make_reading("panel-4")),
        ]

        recs = critical_panel_recommendations(panels)

        assert [r.panel_id for r in recs] == ["panel-2", "panel-1", "panel-3"]
        assert recs[0].urgency is Urgency.HIGH
        assert recs[0].impact_score == 60.0
        assert recs[1].urgency is Urgency.MEDIUM
        assert recs[0].title == "Panel 2 Needs Attention"

    def test_capped_at_ten(self) -> None:
        panels = [make_farm_panel(n, health_score=30.0 + n) for n in range(1, 15)]
        assert len(critical_panel_recommendations(panels)) == 10


class TestBuildReport:
    def test_report_sections(self) -> None:
        panels = [
            make_farm_panel(n, make_reading(f"panel-{n}", dust_level=9.0), health_score=45.0)
            for n in range(1, 13)
        ]
        history = [
            make_reading("panel-1", timestamp=at(8, 15)).build(),
            make_reading("panel-2", timestamp=at(9, 15)).build(),
        ]

        report = build_report(
            panels=panels, history=history, weather=_weather(), advisor=_advisor()
        )

        assert len(report.recommendations) == 10
        ordered = sorted(report.recommendations, key=Recommendation.sort_key)
        assert [r.id for r in report.recommendations] == [r.id for r in ordered]
        assert len(report.predictions.forecast) == 7
        first, last = report.predictions.forecast[0], report.predictions.forecast[-1]
        assert last.efficiency == first.efficiency - 3.0
        assert report.predictions.estimated_recovery == 15.0
        assert report.predictions.next_cleaning_date > report.generated_at
        assert len(report.historical_data) == 2
        assert report.weather_data.dust_factor == 4.0
        assert report.cost_analysis.recommendations.panels_needing_cleaning == 12

    def test_report_serialises_camel_case(self) -> None:
        report = build_report(
            panels=[make_farm_panel(1, make_reading("panel-1"))],
            history=[],
            weather=_weather(),
            advisor=_advisor(),
        )
        data = report.model_dump(by_alias=True)
        assert {"generatedAt", "currentReading", "costAnalysis", "weatherData"} <= set(data)
        assert "nextCleaningDate" in data["predictions"]
