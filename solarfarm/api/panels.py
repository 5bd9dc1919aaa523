"""
Panel management endpoints.

- ``POST /api/init/panels``: create any missing panels up to PANEL_COUNT.
- ``GET /api/panels``: grid view, every panel with its current reading and
  a status summary.
- ``GET /api/panels/{panel_id}``: panel detail. When the Blynk poller has
  data, the current reading is overlaid with the demo panel's hardware
  values.
- ``POST /api/panels/{panel_id}/reading``: persist one reading from the
  hardware feed.
- ``POST /api/panels/readings/generate-all``: persist one environment
  simulator reading per panel, pulled towards the current weather.

CHANGELOG:
- 2026-09-27: Hardware overlay on panel detail (STORY-016)
- 2026-09-26: Idempotent panel initialisation (STORY-015)
- 2026-09-24: Initial creation (STORY-014)

TODO:
- None
"""

import logging

from fastapi import APIRouter, HTTPException

from solarfarm.api.deps import (
    FeedDep,
    HardwareDep,
    SettingsDep,
    SimulatorDep,
    StorageDep,
    WeatherDep,
)
from solarfarm.models import CamelModel, PanelDetail, PanelWithCurrentReading, SensorReading
from solarfarm.sensors.blynk import CLEANING_DUST_THRESHOLD, HardwareState
from solarfarm.sensors.simulator import CLEAN_STATUS, CURRENT_LIMIT_MA, DUSTY_STATUS
from solarfarm.services.dashboard import PanelSummary, panel_summary
from solarfarm.services.farm import initialize_panels
from solarfarm.services.ingestion import reading_from_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["panels"])


class CountResponse(CamelModel):
    message: str
    count: int


class PanelsResponse(CamelModel):
    panels: list[PanelWithCurrentReading]
    summary: PanelSummary


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def with_hardware_values(reading: SensorReading, hardware: HardwareState) -> SensorReading:
    """Return ``reading`` with the polled hardware values swapped in."""
    return reading.model_copy(
        update={
            "dust_level": hardware.dust_level,
            "current_level_ma": hardware.current_level_ma,
            "energy_output": hardware.energy_output,
            "sunlight_intensity": hardware.light_intensity,
            "tilt_angle": hardware.tilt_angle,
            "sweep_enable": hardware.cleaning_active,
        }
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/init/panels", response_model=CountResponse)
async def init_panels(storage: StorageDep, settings: SettingsDep) -> CountResponse:
    """Create missing panels. Repeated calls create nothing new."""
    result = await initialize_panels(
        storage,
        panel_count=settings.panel_count,
        grid_columns=settings.grid_columns,
    )
    return CountResponse(message=result.message, count=result.total)


@router.get("/panels", response_model=PanelsResponse)
async def list_panels(storage: StorageDep) -> PanelsResponse:
    panels = await storage.get_panels_with_current_readings()
    return PanelsResponse(panels=panels, summary=panel_summary(panels))


@router.post("/panels/readings/generate-all", response_model=CountResponse)
async def generate_all_readings(
    storage: StorageDep, simulator: SimulatorDep, weather: WeatherDep
) -> CountResponse:
    """Persist one simulated, weather-adjusted reading for every panel.

    Returns:
        CountResponse: Number of readings created.
    """
    panels = await storage.get_all_panels()
    created = 0
    for panel in panels:
        reading = simulator.weather_adjusted(
            simulator.generate_reading(panel.id),
            ambient_temperature=weather.temperature,
            dust_factor=weather.dust_factor,
        )
        await storage.create_reading(reading)
        created += 1
    logger.info("Generated %d simulated readings", created)
    return CountResponse(message=f"Generated {created} readings", count=created)


@router.get("/panels/{panel_id}", response_model=PanelDetail)
async def get_panel(panel_id: str, storage: StorageDep, hardware: HardwareDep) -> PanelDetail:
    """Return the panel detail view.

    Raises:
        HTTPException: 404 if the panel does not exist.
    """
    detail = await storage.get_panel_detail(panel_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Panel not found")
    if detail.current_reading is not None and hardware is not None and hardware.has_data:
        detail = detail.model_copy(
            update={"current_reading": with_hardware_values(detail.current_reading, hardware)}
        )
    return detail


@router.post("/panels/{panel_id}/reading", response_model=SensorReading)
async def create_panel_reading(
    panel_id: str,
    storage: StorageDep,
    feed: FeedDep,
    settings: SettingsDep,
    hardware: HardwareDep,
) -> SensorReading:
    """Persist a reading built from the hardware feed's latest snapshot.

    When the Blynk poller has data, energy, dust and current come from the
    demo panel; sunlight, temperature and tilt always come from the feed.

    Raises:
        HTTPException: 404 if the panel does not exist, 503 if the feed has
            no snapshot for it yet.
    """
    panel = await storage.get_panel_by_id(panel_id)
    if panel is None:
        raise HTTPException(status_code=404, detail="Panel not found")

    snapshot = feed.get_sensor_data(panel_id)
    if snapshot is None:
        raise HTTPException(status_code=503, detail="Sensor feed not ready")

    reading = reading_from_snapshot(snapshot, settings.nominal_panel_power_w)
    if hardware is not None and hardware.has_data:
        reading = reading.model_copy(
            update={
                "energy_output": hardware.energy_output,
                "dust_level": hardware.dust_level,
                "dust_status": (
                    DUSTY_STATUS if hardware.dust_level > CLEANING_DUST_THRESHOLD else CLEAN_STATUS
                ),
                "current_level_ma": hardware.current_level_ma,
                "power_output_mw": hardware.energy_output * 1000,
                "overload": hardware.current_level_ma > CURRENT_LIMIT_MA,
                "sweep_enable": hardware.cleaning_active,
            }
        )
    return await storage.create_reading(reading)
