"""
Prediction and analytics endpoints.

- ``GET /api/predictions/forecast``: generate and store one prediction for
  a panel (from its latest reading) or for the farm (from farm averages).
- ``GET /api/predictions``: stored predictions, soonest first.
- ``GET /api/analytics``: seven-day farm forecast with a performance trend
  and a count of days per degradation risk. Not stored.
- ``GET /api/analytics/cost-benefit``: monthly revenue, loss and cleaning
  cost estimate.

CHANGELOG:
- 2026-09-26: Store forecasts, add stored predictions listing (STORY-017)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from solarfarm.api.deps import AdvisorDep, SettingsDep, StorageDep, WeatherDep
from solarfarm.models import CamelModel, Prediction, RiskLevel
from solarfarm.services.advisor import Conditions
from solarfarm.services.dashboard import CostBenefit, cost_benefit, farm_conditions

router = APIRouter(prefix="/api", tags=["analytics"])


class TrendPoint(CamelModel):
    date: datetime
    efficiency: float


class RiskSummary(CamelModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class Analytics(CamelModel):
    predictions: list[Prediction]
    performance_trend: list[TrendPoint]
    degradation_risk_summary: RiskSummary


@router.get("/predictions/forecast", response_model=Prediction)
async def forecast(
    storage: StorageDep,
    advisor: AdvisorDep,
    weather: WeatherDep,
    panel_id: Annotated[str | None, Query(alias="panelId")] = None,
) -> Prediction:
    """Generate, store and return a one-week prediction.

    Raises:
        HTTPException: 404 if ``panelId`` is given and has no readings.
    """
    if panel_id is not None:
        latest = await storage.get_latest_reading_by_panel(panel_id)
        if latest is None:
            raise HTTPException(status_code=404, detail="No readings found for panel")
        conditions = Conditions.from_reading(latest)
    else:
        conditions = farm_conditions(await storage.get_panels_with_current_readings(), weather)
    prediction = advisor.generate_prediction(conditions, weather, panel_id=panel_id)
    return await storage.create_prediction(prediction)


@router.get("/predictions", response_model=list[Prediction])
async def list_predictions(
    storage: StorageDep,
    panel_id: Annotated[str | None, Query(alias="panelId")] = None,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[Prediction]:
    if panel_id is not None:
        if limit is None:
            return await storage.get_predictions_by_panel(panel_id)
        return await storage.get_predictions_by_panel(panel_id, limit)
    if limit is None:
        return await storage.get_predictions()
    return await storage.get_predictions(limit)


@router.get("/analytics", response_model=Analytics)
async def analytics(storage: StorageDep, advisor: AdvisorDep, weather: WeatherDep) -> Analytics:
    panels = await storage.get_panels_with_current_readings()
    conditions = farm_conditions(panels, weather)
    predictions = [p.build() for p in advisor.generate_forecast(conditions.efficiency_percent)]

    summary = RiskSummary()
    for prediction in predictions:
        if prediction.degradation_risk is RiskLevel.HIGH:
            summary.high += 1
        elif prediction.degradation_risk is RiskLevel.MEDIUM:
            summary.medium += 1
        else:
            summary.low += 1

    return Analytics(
        predictions=predictions,
        performance_trend=[
            TrendPoint(date=p.predicted_date, efficiency=p.predicted_efficiency)
            for p in predictions
        ],
        degradation_risk_summary=summary,
    )


@router.get("/analytics/cost-benefit", response_model=CostBenefit)
async def cost_benefit_analysis(storage: StorageDep, settings: SettingsDep) -> CostBenefit:
    panels = await storage.get_panels_with_current_readings()
    return cost_benefit(panels, settings.nominal_panel_power_w)
