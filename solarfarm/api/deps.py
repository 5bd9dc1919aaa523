"""
FastAPI dependency injection providers.

Every long-lived component is built once by the application lifespan and
stored on ``app.state``; the providers here hand them to route handlers
through FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-09-27: Add ingestion loop and hardware state providers (STORY-016)
- 2026-09-24: Initial creation (STORY-014)
"""

from typing import Annotated

from fastapi import Depends, Request

from solarfarm.config import FarmSettings
from solarfarm.realtime.hub import ConnectionHub
from solarfarm.sensors.blynk import HardwareState
from solarfarm.sensors.feed import HardwareFeed
from solarfarm.sensors.simulator import SensorSimulator
from solarfarm.services.advisor import Advisor
from solarfarm.services.ingestion import IngestionLoop
from solarfarm.services.weather import WeatherClient, WeatherData
from solarfarm.storage import FailoverStorage


def get_storage(request: Request) -> FailoverStorage:
    return request.app.state.storage


def get_settings(request: Request) -> FarmSettings:
    return request.app.state.settings


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub


def get_feed(request: Request) -> HardwareFeed:
    return request.app.state.feed


def get_simulator(request: Request) -> SensorSimulator:
    return request.app.state.simulator


def get_advisor(request: Request) -> Advisor:
    return request.app.state.advisor


def get_ingestion(request: Request) -> IngestionLoop:
    return request.app.state.ingestion


def get_hardware_state(request: Request) -> HardwareState | None:
    """Return the last polled Blynk values, or None when polling is disabled."""
    poller = request.app.state.blynk
    return poller.state if poller is not None else None


async def get_weather(request: Request) -> WeatherData:
    """Fetch current weather. Never raises; falls back to synthetic data."""
    client: WeatherClient = request.app.state.weather
    return await client.fetch()


# Type aliases for injecting components via FastAPI Depends().
# Usage in route handlers:
#   async def my_route(storage: StorageDep):
#       panels = await storage.get_all_panels()
StorageDep = Annotated[FailoverStorage, Depends(get_storage)]
SettingsDep = Annotated[FarmSettings, Depends(get_settings)]
HubDep = Annotated[ConnectionHub, Depends(get_hub)]
FeedDep = Annotated[HardwareFeed, Depends(get_feed)]
SimulatorDep = Annotated[SensorSimulator, Depends(get_simulator)]
AdvisorDep = Annotated[Advisor, Depends(get_advisor)]
IngestionDep = Annotated[IngestionLoop, Depends(get_ingestion)]
HardwareDep = Annotated[HardwareState | None, Depends(get_hardware_state)]
WeatherDep = Annotated[WeatherData, Depends(get_weather)]
