"""
API tests for dashboard, analytics, recommendation, alert, system and
report endpoints.

CHANGELOG:
- 2026-09-30: Auto-tilt merged bounds validation (STORY-020)
- 2026-09-28: Report endpoint tests (STORY-018)
- 2026-09-27: Stored alerts and system health tests (STORY-016)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

from conftest import TEST_PANEL_COUNT
from fastapi.testclient import TestClient


def _ingest(client: TestClient) -> None:
    """Sample the feed once and run one ingestion tick."""
    state = client.app.state
    client.portal.call(state.feed.refresh)
    client.portal.call(state.ingestion.tick)


# ---------------------------------------------------------------------------
# Test: dashboard
# ---------------------------------------------------------------------------


class TestDashboard:
    """Farm overview and history."""

    def test_stats(self, client: TestClient) -> None:
        body = client.get("/api/dashboard/stats").json()
        assert body["totalPanels"] == TEST_PANEL_COUNT
        assert body["activePanels"] == TEST_PANEL_COUNT
        assert body["currentReading"]["id"] == "farm-average"
        assert set(body["todayAverage"]) == {"energyOutput", "efficiency", "sunlightIntensity"}
        assert len(body["topRecommendations"]) <= 3

    def test_history_empty_then_bucketed(self, client: TestClient) -> None:
        assert client.get("/api/dashboard/history").json() == {"readings": []}

        client.post("/api/panels/readings/generate-all")

        farm = client.get("/api/dashboard/history", params={"range": 6}).json()
        assert sum(point["readingCount"] for point in farm["readings"]) == TEST_PANEL_COUNT

        panel = client.get("/api/dashboard/history", params={"panelId": "panel-1"}).json()
        assert [r["panelId"] for r in panel["readings"]] == ["panel-1"]

    def test_history_range_validated(self, client: TestClient) -> None:
        assert client.get("/api/dashboard/history", params={"range": 0}).status_code == 422
        assert client.get("/api/dashboard/history", params={"range": 721}).status_code == 422


# ---------------------------------------------------------------------------
# Test: predictions and analytics
# ---------------------------------------------------------------------------


class TestPredictions:
    """Stored forecasts and the analytics view."""

    def test_panel_forecast_requires_reading(self, client: TestClient) -> None:
        response = client.get("/api/predictions/forecast", params={"panelId": "panel-1"})
        assert response.status_code == 404

    def test_forecasts_are_stored(self, client: TestClient) -> None:
        farm = client.get("/api/predictions/forecast").json()
        assert farm["panelId"] is None
        assert farm["degradationRisk"] in {"low", "medium", "high"}

        client.post("/api/panels/readings/generate-all")
        panel = client.get("/api/predictions/forecast", params={"panelId": "panel-1"}).json()
        assert panel["panelId"] == "panel-1"
        assert set(panel["factors"]) == {
            "dustImpact",
            "tempImpact",
            "weatherImpact",
            "baseEfficiency",
        }

        assert len(client.get("/api/predictions").json()) == 2
        by_panel = client.get("/api/predictions", params={"panelId": "panel-1"}).json()
        assert [p["id"] for p in by_panel] == [panel["id"]]

    def test_prediction_limit_validated(self, client: TestClient) -> None:
        assert client.get("/api/predictions", params={"limit": 0}).status_code == 422

    def test_analytics(self, client: TestClient) -> None:
        body = client.get("/api/analytics").json()
        assert len(body["predictions"]) == 7
        assert len(body["performanceTrend"]) == 7
        assert sum(body["degradationRiskSummary"].values()) == 7
        # Analytics forecasts are not stored.
        assert client.get("/api/predictions").json() == []

    def test_cost_benefit(self, client: TestClient) -> None:
        body = client.get("/api/analytics/cost-benefit").json()
        # 6 panels x 250 W x 240 h = 360 kWh at 8 per kWh.
        assert body["monthlyAnalysis"]["potentialRevenue"] == 2880.0
        assert body["monthlyAnalysis"]["roi"] == "0"
        assert body["recommendations"]["panelsNeedingCleaning"] == 0


# ---------------------------------------------------------------------------
# Test: recommendations
# ---------------------------------------------------------------------------


class TestRecommendations:
    """Persisted recommendations and the implemented flag."""

    def test_first_listing_generates_and_persists(self, client: TestClient) -> None:
        first = client.get("/api/recommendations").json()["recommendations"]
        assert first
        assert all(r["panelId"] is None for r in first)

        second = client.get("/api/recommendations").json()["recommendations"]
        assert [r["id"] for r in second] == [r["id"] for r in first]

    def test_panel_without_readings_has_none(self, client: TestClient) -> None:
        body = client.get("/api/recommendations", params={"panelId": "panel-1"}).json()
        assert body == {"recommendations": []}

    def test_generate_and_implement(self, client: TestClient) -> None:
        generated = client.post("/api/recommendations/generate").json()["recommendations"]
        target = generated[0]["id"]

        response = client.patch(f"/api/recommendations/{target}/implement")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["recommendation"]["implemented"] is True

    def test_implement_unknown_is_404(self, client: TestClient) -> None:
        assert client.patch("/api/recommendations/missing/implement").status_code == 404


# ---------------------------------------------------------------------------
# Test: alerts
# ---------------------------------------------------------------------------


class TestAlerts:
    """Stored farm alerts, live panel alerts and dismissal."""

    def test_no_alerts_before_ingestion(self, client: TestClient) -> None:
        assert client.get("/api/alerts").json() == {"alerts": []}

    def test_ingestion_raises_farm_alerts_once(self, client: TestClient) -> None:
        # Feed samples produce well under 50% of nominal power.
        _ingest(client)
        _ingest(client)

        alerts = client.get("/api/alerts").json()["alerts"]
        titles = [a["title"] for a in alerts]
        assert titles.count("6 Panels with Critical Efficiency") == 1
        assert all(a["panelId"] is None for a in alerts)

    def test_dismiss(self, client: TestClient) -> None:
        _ingest(client)
        alert_id = client.get("/api/alerts").json()["alerts"][0]["id"]

        response = client.post(f"/api/alerts/{alert_id}/dismiss")

        assert response.json() == {"success": True, "message": "Alert dismissed"}
        remaining = [a["id"] for a in client.get("/api/alerts").json()["alerts"]]
        assert alert_id not in remaining

    def test_dismiss_unknown_is_noop(self, client: TestClient) -> None:
        assert client.post("/api/alerts/missing/dismiss").json()["success"] is True

    def test_panel_alerts_are_live(self, client: TestClient) -> None:
        _ingest(client)
        alerts = client.get("/api/alerts", params={"panelId": "panel-1"}).json()["alerts"]
        assert "efficiency" in {a["type"] for a in alerts}
        assert {a["panelId"] for a in alerts} == {"panel-1"}


# ---------------------------------------------------------------------------
# Test: system health and auto-tilt
# ---------------------------------------------------------------------------


class TestSystem:
    """System health snapshots and auto-tilt settings."""

    def test_live_health_before_first_tick(self, client: TestClient) -> None:
        body = client.get("/api/system-health").json()
        assert body["sensors"]["energyMeter"] == "offline"
        assert body["sensors"]["weatherAPI"] == "synthetic"
        assert body["dataQuality"] == 0.0
        assert body["systemUptime"] >= 0

    def test_stored_health_after_tick(self, client: TestClient) -> None:
        _ingest(client)
        body = client.get("/api/system-health").json()
        assert body["dataQuality"] == 100.0
        assert body["diagnosticMessage"] is None

    def test_auto_tilt_defaults_and_update(self, client: TestClient) -> None:
        defaults = client.get("/api/settings/auto-tilt").json()
        assert defaults["enabled"] is False

        response = client.put(
            "/api/settings/auto-tilt", json={"enabled": True, "minTiltAngle": 20}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["enabled"] is True
        assert body["minTiltAngle"] == 20
        assert body["maxTiltAngle"] == defaults["maxTiltAngle"]
        assert body["id"] == defaults["id"]

    def test_auto_tilt_invalid_range_is_422(self, client: TestClient) -> None:
        response = client.put(
            "/api/settings/auto-tilt", json={"minTiltAngle": 50, "maxTiltAngle": 20}
        )
        assert response.status_code == 422

    def test_auto_tilt_partial_update_crossing_stored_max_is_422(
        self, client: TestClient
    ) -> None:
        response = client.put("/api/settings/auto-tilt", json={"minTiltAngle": 75})

        assert response.status_code == 422
        assert "minTiltAngle must not exceed maxTiltAngle" in response.json()["detail"]
        stored = client.get("/api/settings/auto-tilt").json()
        assert stored["minTiltAngle"] <= stored["maxTiltAngle"]


# ---------------------------------------------------------------------------
# Test: reports
# ---------------------------------------------------------------------------


class TestReports:
    def test_generate_report(self, client: TestClient) -> None:
        client.post("/api/panels/readings/generate-all")

        body = client.get("/api/reports/generate").json()

        assert body["currentReading"]["id"] == "farm-average"
        assert len(body["predictions"]["forecast"]) == 7
        assert len(body["recommendations"]) <= 10
        assert body["historicalData"]
        assert "temperature" in body["weatherData"]
