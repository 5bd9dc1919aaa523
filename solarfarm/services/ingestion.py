"""
Timer-driven ingestion of hardware-feed snapshots.

Every ``interval_s`` seconds the loop spawns a tick that:

1. pulls the latest snapshot of every panel from the feed;
2. derives efficiency as ``energy / nominal power * 100`` clamped to 0-100;
3. persists one reading per panel concurrently (bounded by a semaphore),
   logging and skipping panels whose write fails;
4. broadcasts an ``aggregatedUpdate`` summarising the saved readings and
   hands the aggregate to the optional sink (the Redis cache);
5. raises farm-wide threshold alerts that are not already active;
6. records a system health snapshot.

Ticks never overlap: a tick that fires while the previous one is still in
flight is skipped with a warning. An empty feed produces no writes and no
broadcast.

CHANGELOG:
- 2026-09-27: Raise farm alerts and record system health per tick (STORY-016)
- 2026-09-26: Bounded concurrent writes (STORY-015)
- 2026-09-20: Initial creation (STORY-008)

TODO:
- None
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from solarfarm.models import (
    FarmAggregate,
    ReadingCreate,
    SensorReading,
    SensorSnapshot,
    SystemHealthCreate,
    utc_now,
)
from solarfarm.realtime.hub import ConnectionHub
from solarfarm.realtime.messages import AggregatedUpdateMessage
from solarfarm.services.alerts import farm_alerts, without_active_duplicates
from solarfarm.storage.base import Storage

logger = logging.getLogger(__name__)

AggregateSink = Callable[[FarmAggregate], Awaitable[None]]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PERSIST_INTERVAL_S: float = 30.0
DEFAULT_NOMINAL_POWER_W: float = 250.0
DEFAULT_MAX_CONCURRENT_WRITES: int = 20

LATEST_READINGS_SAMPLE = 10
"""Number of saved readings carried in each aggregate."""

SENSOR_CHANNELS = (
    "energyMeter",
    "irradianceSensor",
    "temperatureSensor",
    "dustSensor",
    "tiltSensor",
)


class SnapshotSource(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def get_all_sensor_data(self) -> list[SensorSnapshot]: ...


def efficiency_from_energy(energy_output: float, nominal_power_w: float) -> float:
    """Return output as a percentage of nominal power, clamped to 0-100."""
    return min(100.0, max(0.0, energy_output / nominal_power_w * 100))


def reading_from_snapshot(snapshot: SensorSnapshot, nominal_power_w: float) -> ReadingCreate:
    """Convert a feed snapshot into a reading (dust stays on the 0-10 scale)."""
    return ReadingCreate(
        panel_id=snapshot.panel_id,
        energy_output=snapshot.energy_output,
        sunlight_intensity=snapshot.sunlight_intensity,
        temperature=snapshot.temperature,
        dust_level=snapshot.dust_level,
        tilt_angle=snapshot.tilt_angle,
        efficiency_percent=efficiency_from_energy(snapshot.energy_output, nominal_power_w),
        current_level_ma=snapshot.current * 1000,
        power_output_mw=snapshot.energy_output * 1000,
    )


class IngestionLoop:
    """Periodically persists feed snapshots and broadcasts the result.

    Args:
        storage: Storage the readings are written to.
        feed: Source of the latest per-panel snapshots.
        hub: Real-time hub used for broadcasts.
        interval_s: Seconds between ticks.
        nominal_power_w: Panel power used as the efficiency denominator.
        max_concurrent_writes: Upper bound on in-flight writes per tick.
        aggregate_sink: Optional coroutine receiving each aggregate.
        weather_live: Whether live weather is configured, reported in the
            system health snapshot.
    """

    def __init__(
        self,
        *,
        storage: Storage,
        feed: SnapshotSource,
        hub: ConnectionHub,
        interval_s: float = DEFAULT_PERSIST_INTERVAL_S,
        nominal_power_w: float = DEFAULT_NOMINAL_POWER_W,
        max_concurrent_writes: int = DEFAULT_MAX_CONCURRENT_WRITES,
        aggregate_sink: AggregateSink | None = None,
        weather_live: bool = False,
    ) -> None:
        self._storage = storage
        self._feed = feed
        self._hub = hub
        self._interval_s = interval_s
        self._nominal_power_w = nominal_power_w
        self._max_concurrent_writes = max_concurrent_writes
        self._aggregate_sink = aggregate_sink
        self._weather_live = weather_live

        self._in_flight = False
        self._last_aggregate: FarmAggregate | None = None
        self._started_at = time.monotonic()
        self._shutdown_event = asyncio.Event()
        self._timer: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[FarmAggregate | None]] = set()

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_aggregate(self) -> FarmAggregate | None:
        """Aggregate broadcast by the most recent tick that saved readings."""
        return self._last_aggregate

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Start the timer. Starting a running loop only logs a warning."""
        if self._timer is not None:
            logger.warning("Ingestion loop already running")
            return
        self._shutdown_event.clear()
        self._started_at = time.monotonic()
        self._timer = asyncio.create_task(self._run(), name="ingestion-timer")
        logger.info("Ingestion loop started (interval=%ss)", self._interval_s)

    async def stop(self) -> None:
        """Stop the timer and wait for any in-flight tick to finish."""
        if self._timer is None:
            return
        self._shutdown_event.set()
        await self._timer
        self._timer = None
        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)
        logger.info("Ingestion loop stopped")

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._interval_s,
                )
            if self._shutdown_event.is_set():
                break
            task = asyncio.create_task(self.tick(), name="ingestion-tick")
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    # -- tick --------------------------------------------------------------

    async def tick(self) -> FarmAggregate | None:
        """Run one ingestion pass unless another one is in flight.

        Returns:
            FarmAggregate | None: The broadcast aggregate, or None when the
            tick was skipped, the feed was empty or nothing was saved.
        """
        if self._in_flight:
            logger.warning("Previous ingestion tick still running, skipping this interval")
            return None
        self._in_flight = True
        try:
            return await self._persist_all()
        except Exception:
            logger.error("Ingestion tick failed", exc_info=True)
            return None
        finally:
            self._in_flight = False

    async def _persist_all(self) -> FarmAggregate | None:
        snapshots = self._feed.get_all_sensor_data()
        if not snapshots:
            logger.debug("Feed has no snapshots yet, nothing to persist")
            return None

        semaphore = asyncio.Semaphore(self._max_concurrent_writes)

        async def save(snapshot: SensorSnapshot) -> SensorReading | None:
            async with semaphore:
                try:
                    return await self._storage.create_reading(self._to_reading(snapshot))
                except Exception:
                    logger.error(
                        "Failed to persist reading for %s", snapshot.panel_id, exc_info=True
                    )
                    return None

        results = await asyncio.gather(*(save(snapshot) for snapshot in snapshots))
        saved = [reading for reading in results if reading is not None]
        logger.info("Persisted %d/%d sensor readings", len(saved), len(snapshots))

        aggregate: FarmAggregate | None = None
        if saved:
            aggregate = FarmAggregate(
                timestamp=utc_now(),
                total_panels=len(saved),
                total_energy_output=sum(r.energy_output for r in saved),
                average_efficiency=sum(r.efficiency_percent for r in saved) / len(saved),
                latest_readings=saved[:LATEST_READINGS_SAMPLE],
            )
            self._last_aggregate = aggregate
            await self._hub.broadcast(AggregatedUpdateMessage(data=aggregate))
            if self._aggregate_sink is not None:
                await self._aggregate_sink(aggregate)
            await self._raise_alerts()

        await self._record_system_health(saved=len(saved), attempted=len(snapshots))
        return aggregate

    def _to_reading(self, snapshot: SensorSnapshot) -> ReadingCreate:
        return reading_from_snapshot(snapshot, self._nominal_power_w)

    async def _raise_alerts(self) -> None:
        try:
            panels = await self._storage.get_panels_with_current_readings()
            active = await self._storage.get_active_alerts()
            for candidate in without_active_duplicates(farm_alerts(panels), active):
                alert = await self._storage.create_alert(candidate)
                await self._hub.broadcast_alert(alert)
                logger.info("Raised alert: %s", alert.title)
        except Exception:
            logger.warning("Failed to evaluate farm alerts", exc_info=True)

    async def _record_system_health(self, *, saved: int, attempted: int) -> None:
        channel_status = "online" if self._feed.is_connected and saved else "offline"
        sensors = {channel: channel_status for channel in SENSOR_CHANNELS}
        sensors["weatherAPI"] = "online" if self._weather_live else "synthetic"
        quality = saved / attempted * 100 if attempted else 0.0
        try:
            await self._storage.create_system_health(
                SystemHealthCreate(
                    sensors=sensors,
                    system_uptime=(time.monotonic() - self._started_at) / 3600,
                    data_quality=quality,
                    diagnostic_message=(
                        None
                        if saved == attempted
                        else f"{attempted - saved} of {attempted} readings failed to persist"
                    ),
                )
            )
        except Exception:
            logger.warning("Failed to record system health", exc_info=True)
