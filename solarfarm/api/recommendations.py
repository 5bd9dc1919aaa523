"""
Recommendation endpoints.

Recommendations are stored. The first listing for a scope (farm or one
panel) with nothing stored generates a fresh set from current conditions
and stores it; later listings return what is stored so that implemented
flags stick.

CHANGELOG:
- 2026-09-26: Persist generated recommendations (STORY-017)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from solarfarm.api.deps import AdvisorDep, StorageDep, WeatherDep
from solarfarm.models import CamelModel, Recommendation
from solarfarm.services.advisor import Advisor, Conditions
from solarfarm.services.dashboard import farm_conditions
from solarfarm.services.weather import WeatherData
from solarfarm.storage import FailoverStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])

PanelIdQuery = Annotated[str | None, Query(alias="panelId")]


class RecommendationList(CamelModel):
    recommendations: list[Recommendation]


class ImplementResult(CamelModel):
    success: bool
    message: str
    recommendation: Recommendation


async def _generate(
    storage: FailoverStorage,
    advisor: Advisor,
    weather: WeatherData,
    panel_id: str | None,
) -> list[Recommendation]:
    """Generate recommendations for ``panel_id`` (or the farm) and store them.

    A panel without readings gets no recommendations.
    """
    if panel_id is not None:
        latest = await storage.get_latest_reading_by_panel(panel_id)
        if latest is None:
            return []
        conditions = Conditions.from_reading(latest)
    else:
        conditions = farm_conditions(await storage.get_panels_with_current_readings(), weather)

    stored = [
        await storage.create_recommendation(candidate)
        for candidate in advisor.generate_recommendations(conditions, weather, panel_id=panel_id)
    ]
    logger.info("Stored %d recommendations for %s", len(stored), panel_id or "farm")
    stored.sort(key=Recommendation.sort_key)
    return stored


@router.get("", response_model=RecommendationList)
async def list_recommendations(
    storage: StorageDep,
    advisor: AdvisorDep,
    weather: WeatherDep,
    panel_id: PanelIdQuery = None,
) -> RecommendationList:
    if panel_id is not None:
        existing = await storage.get_recommendations_by_panel(panel_id)
    else:
        existing = [r for r in await storage.get_recommendations() if r.panel_id is None]
    if not existing:
        existing = await _generate(storage, advisor, weather, panel_id)
    return RecommendationList(recommendations=existing)


@router.post("/generate", response_model=RecommendationList)
async def generate_recommendations(
    storage: StorageDep,
    advisor: AdvisorDep,
    weather: WeatherDep,
    panel_id: PanelIdQuery = None,
) -> RecommendationList:
    return RecommendationList(recommendations=await _generate(storage, advisor, weather, panel_id))


@router.patch("/{recommendation_id}/implement", response_model=ImplementResult)
async def implement_recommendation(recommendation_id: str, storage: StorageDep) -> ImplementResult:
    """Mark a recommendation implemented.

    Raises:
        HTTPException: 404 if the recommendation does not exist.
    """
    updated = await storage.update_recommendation_implemented(recommendation_id, True)
    if updated is None:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    return ImplementResult(
        success=True,
        message="Recommendation marked as implemented",
        recommendation=updated,
    )
