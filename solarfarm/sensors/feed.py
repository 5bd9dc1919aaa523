"""
Simulated ESP32 hardware feed for every panel in the farm.

Each refresh samples a virtual 12-bit ADC (0-4095) per sensor channel and
converts the counts into engineering units the way the panel firmware does:

- sunlight: 2000-4000 counts in daylight (06:00-18:00), 0-200 at night,
  scaled to 0-1000 W/m^2;
- voltage: 2500-4000 counts scaled to 0-20 V;
- current: 1000-1500 counts scaled to 0-5 A;
- temperature: 1800-2200 counts scaled to 0-100 C, clamped to 15-60 C;
- dust: 0-1000 counts scaled to the 0-10 dust scale.

Energy output is ``voltage * current``. The feed keeps only the latest
snapshot per panel; ingestion pulls those through :meth:`get_all_sensor_data`.

CHANGELOG:
- 2026-09-21: Notify async listeners per snapshot (STORY-009)
- 2026-09-21: Initial creation (STORY-009)

TODO:
- None
"""

import asyncio
import contextlib
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime

from solarfarm.models import SensorSnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SensorSnapshot], Awaitable[None]]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ADC_MAX: int = 4095
"""Full-scale reading of the ESP32 12-bit ADC."""

DEFAULT_FEED_INTERVAL_S: float = 10.0
"""Seconds between two refreshes of every panel."""

DEFAULT_TILT_ANGLE: float = 32.0


def local_now() -> datetime:
    """Return the current local time as an aware datetime."""
    return datetime.now().astimezone()


def panel_ids(panel_count: int) -> list[str]:
    """Return the feed panel ids ``panel-1`` .. ``panel-N``."""
    return [f"panel-{n}" for n in range(1, panel_count + 1)]


class HardwareFeed:
    """Periodic per-panel hardware snapshot source.

    Args:
        panel_count: Number of panels to simulate (``panel-1`` .. ``panel-N``).
        interval_s: Seconds between refreshes once connected.
        rng: Random source; injectable for deterministic tests.
        clock: Returns the current aware datetime; its hour drives the
            day/night sunlight range.
    """

    def __init__(
        self,
        *,
        panel_count: int,
        interval_s: float = DEFAULT_FEED_INTERVAL_S,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._panel_ids = panel_ids(panel_count)
        self._interval_s = interval_s
        self._rng = rng or random.Random()
        self._clock = clock
        self._snapshots: dict[str, SensorSnapshot] = {}
        self._listeners: list[SnapshotListener] = []
        self._connected = False
        self._shutdown_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a coroutine called with every new snapshot."""
        self._listeners.append(listener)

    # -- sampling ----------------------------------------------------------

    def sample(self, panel_id: str) -> SensorSnapshot:
        """Sample every ADC channel once for ``panel_id``.

        Args:
            panel_id: Panel the snapshot is produced for.

        Returns:
            SensorSnapshot: Converted, range-limited sensor values.
        """
        rng = self._rng
        now = self._clock()

        if 6 <= now.hour <= 18:
            adc_sunlight = 2000 + rng.random() * 2000
        else:
            adc_sunlight = rng.random() * 200
        adc_voltage = 2500 + rng.random() * 1500
        adc_current = 1000 + rng.random() * 500
        adc_temperature = 1800 + rng.random() * 400
        adc_dust = rng.random() * 1000

        sunlight = adc_sunlight / ADC_MAX * 1000
        voltage = adc_voltage / ADC_MAX * 20
        current = adc_current / ADC_MAX * 5
        temperature = adc_temperature / ADC_MAX * 100
        dust = adc_dust / ADC_MAX * 10

        return SensorSnapshot(
            panel_id=panel_id,
            energy_output=max(0.0, voltage * current),
            sunlight_intensity=max(0.0, sunlight),
            temperature=max(15.0, min(60.0, temperature)),
            dust_level=max(0.0, min(10.0, dust)),
            tilt_angle=DEFAULT_TILT_ANGLE + (rng.random() - 0.5) * 2,
            voltage=max(0.0, voltage),
            current=max(0.0, current),
            timestamp=now,
        )

    async def refresh(self) -> list[SensorSnapshot]:
        """Resample every panel, store the results and notify listeners.

        A failing listener is logged and does not stop the refresh.

        Returns:
            list[SensorSnapshot]: The new snapshots in panel order.
        """
        snapshots = [self.sample(panel_id) for panel_id in self._panel_ids]
        for snapshot in snapshots:
            self._snapshots[snapshot.panel_id] = snapshot
        for snapshot in snapshots:
            for listener in self._listeners:
                try:
                    await listener(snapshot)
                except Exception:
                    logger.warning(
                        "Snapshot listener failed for %s", snapshot.panel_id, exc_info=True
                    )
        return snapshots

    # -- accessors ---------------------------------------------------------

    def get_sensor_data(self, panel_id: str) -> SensorSnapshot | None:
        """Return the latest snapshot for ``panel_id``, or None before the first refresh."""
        return self._snapshots.get(panel_id)

    def get_all_sensor_data(self) -> list[SensorSnapshot]:
        return list(self._snapshots.values())

    # -- lifecycle ---------------------------------------------------------

    async def connect(self) -> None:
        """Take a first sample of every panel and start the refresh loop.

        Calling ``connect`` on a connected feed is a no-op.
        """
        if self._connected:
            return
        self._connected = True
        self._shutdown_event.clear()
        await self.refresh()
        self._task = asyncio.create_task(self._run(), name="hardware-feed")
        logger.info(
            "Hardware feed connected (%d panels, interval=%ss)",
            len(self._panel_ids),
            self._interval_s,
        )

    async def disconnect(self) -> None:
        """Stop the refresh loop. Stored snapshots stay readable."""
        if not self._connected:
            return
        self._connected = False
        self._shutdown_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Hardware feed disconnected")

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._interval_s,
                )
            if self._shutdown_event.is_set():
                break
            try:
                await self.refresh()
            except Exception:
                logger.error("Hardware feed refresh failed", exc_info=True)
