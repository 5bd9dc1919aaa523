"""
Sensor endpoints: feed status and latest readings.

CHANGELOG:
- 2026-09-24: Initial creation (STORY-014)

TODO:
- None
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from solarfarm.api.deps import FeedDep, HardwareDep, StorageDep, WeatherDep
from solarfarm.models import CamelModel, SensorReading, utc_now
from solarfarm.services.dashboard import farm_reading

router = APIRouter(prefix="/api/sensors", tags=["sensors"])


class SensorStatus(CamelModel):
    connected: bool
    panels_reporting: int
    timestamp: datetime
    message: str = "Hardware sensor feed status"


@router.get("/status", response_model=SensorStatus)
async def sensor_status(feed: FeedDep) -> SensorStatus:
    return SensorStatus(
        connected=feed.is_connected,
        panels_reporting=len(feed.get_all_sensor_data()),
        timestamp=utc_now(),
    )


@router.get("/latest", response_model=SensorReading)
async def latest_reading(
    storage: StorageDep,
    weather: WeatherDep,
    hardware: HardwareDep,
    panel_id: Annotated[str | None, Query(alias="panelId")] = None,
) -> SensorReading:
    """Return a panel's latest stored reading, or the farm-average reading.

    Raises:
        HTTPException: 404 if ``panelId`` is given and has no readings.
    """
    if panel_id is not None:
        reading = await storage.get_latest_reading_by_panel(panel_id)
        if reading is None:
            raise HTTPException(status_code=404, detail="No readings found for panel")
        return reading
    panels = await storage.get_panels_with_current_readings()
    return farm_reading(panels, weather, hardware)
