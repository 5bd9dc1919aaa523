"""
Dashboard endpoints: farm overview and history.

CHANGELOG:
- 2026-09-27: History from stored readings instead of synthetic points (STORY-017)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

from typing import Annotated

from fastapi import APIRouter, Query

from solarfarm.api.deps import AdvisorDep, HardwareDep, StorageDep, WeatherDep
from solarfarm.models import CamelModel, SensorReading
from solarfarm.services.dashboard import (
    DashboardStats,
    HistoryPoint,
    dashboard_stats,
    hourly_history,
)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

DEFAULT_HISTORY_HOURS = 24
MAX_HISTORY_HOURS = 24 * 30


class PanelHistory(CamelModel):
    readings: list[SensorReading]


class FarmHistory(CamelModel):
    readings: list[HistoryPoint]


@router.get("/stats", response_model=DashboardStats)
async def stats(
    storage: StorageDep, weather: WeatherDep, advisor: AdvisorDep, hardware: HardwareDep
) -> DashboardStats:
    panels = await storage.get_panels_with_current_readings()
    return dashboard_stats(panels, weather, advisor, hardware)


@router.get("/history", response_model=PanelHistory | FarmHistory)
async def history(
    storage: StorageDep,
    hours: Annotated[
        int, Query(alias="range", ge=1, le=MAX_HISTORY_HOURS)
    ] = DEFAULT_HISTORY_HOURS,
    panel_id: Annotated[str | None, Query(alias="panelId")] = None,
) -> PanelHistory | FarmHistory:
    """Return stored history for the last ``range`` hours.

    With ``panelId`` the raw readings of that panel are returned, oldest
    first; without it, farm averages per hour of every stored reading.
    """
    if panel_id is not None:
        return PanelHistory(readings=await storage.get_readings_by_panel(panel_id, hours))
    readings = await storage.get_readings_by_time_range(hours)
    return FarmHistory(readings=hourly_history(readings))
