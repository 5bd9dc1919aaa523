"""
System health and auto-tilt settings endpoints.

CHANGELOG:
- 2026-09-30: Reject auto-tilt updates whose merged bounds cross (STORY-020)
- 2026-09-27: Serve stored system health snapshots (STORY-016)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

import time

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from solarfarm.api.deps import FeedDep, SettingsDep, StorageDep
from solarfarm.models import (
    AutoTiltSettings,
    AutoTiltSettingsUpdate,
    SystemHealth,
    SystemHealthCreate,
)
from solarfarm.services.ingestion import SENSOR_CHANNELS

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/system-health", response_model=SystemHealth)
async def system_health(
    request: Request, storage: StorageDep, feed: FeedDep, settings: SettingsDep
) -> SystemHealth:
    """Return the latest stored snapshot, or one built from the live feed.

    The ingestion loop stores a snapshot every tick; before the first tick
    the feed's connection state stands in for every sensor channel.
    """
    stored = await storage.get_latest_system_health()
    if stored is not None:
        return stored

    snapshots = feed.get_all_sensor_data()
    status = "online" if feed.is_connected and snapshots else "offline"
    sensors = {channel: status for channel in SENSOR_CHANNELS}
    sensors["weatherAPI"] = "online" if settings.weather_api_key else "synthetic"
    return SystemHealthCreate(
        sensors=sensors,
        system_uptime=(time.monotonic() - request.app.state.started_at) / 3600,
        data_quality=100.0 if snapshots else 0.0,
        diagnostic_message=None if snapshots else "No sensor data received yet",
    ).build()


@router.get("/settings/auto-tilt", response_model=AutoTiltSettings)
async def get_auto_tilt(storage: StorageDep) -> AutoTiltSettings:
    return await storage.get_auto_tilt_settings()


@router.put("/settings/auto-tilt", response_model=AutoTiltSettings)
async def update_auto_tilt(
    update: AutoTiltSettingsUpdate, storage: StorageDep
) -> AutoTiltSettings:
    """Apply a partial update; fields left out of the body keep their value.

    Raises:
        HTTPException: 422 if the update would leave the minimum tilt angle
            above the maximum.
    """
    try:
        return await storage.update_auto_tilt_settings(update)
    except ValidationError as exc:
        detail = "; ".join(error["msg"] for error in exc.errors())
        raise HTTPException(status_code=422, detail=detail) from exc
