"""
Farm report endpoint.

``GET /api/reports/generate`` returns the report as JSON; rendering it to a
document is left to the client.

CHANGELOG:
- 2026-09-28: Initial creation (STORY-018)

TODO:
- None
"""

from fastapi import APIRouter

from solarfarm.api.deps import AdvisorDep, HardwareDep, SettingsDep, StorageDep, WeatherDep
from solarfarm.services.reports import FarmReport, build_report

router = APIRouter(prefix="/api/reports", tags=["reports"])

REPORT_HISTORY_HOURS = 24


@router.get("/generate", response_model=FarmReport)
async def generate_report(
    storage: StorageDep,
    advisor: AdvisorDep,
    weather: WeatherDep,
    hardware: HardwareDep,
    settings: SettingsDep,
) -> FarmReport:
    return build_report(
        panels=await storage.get_panels_with_current_readings(),
        history=await storage.get_readings_by_time_range(REPORT_HISTORY_HOURS),
        weather=weather,
        advisor=advisor,
        hardware=hardware,
        nominal_power_w=settings.nominal_panel_power_w,
    )
