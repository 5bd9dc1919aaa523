"""
Blynk cloud poller for the physical demo panel.

The demo panel's ESP32 publishes its measurements to Blynk virtual pins:

- ``v1``: dust sensor reading;
- ``v2``: panel current in mA;
- ``v3``: energy output in W;
- ``v4``: tilt servo angle in degrees;
- ``v6``: light sensor reading.

Each poll reads every pin concurrently over HTTPS and keeps the last good
value per pin. After a poll the cleaning actuator on ``v0`` is switched on
when the dust reading exceeds 70 and off otherwise. The poller never raises
into its loop: failed pins keep their previous value and a poll in which
every pin failed triggers exponential backoff before the next attempt.

CHANGELOG:
- 2026-09-23: Expose polled values as a frozen HardwareState (STORY-011)
- 2026-09-22: Initial creation (STORY-011)

TODO:
- None
"""

import asyncio
import contextlib
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

from solarfarm.models import utc_now

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "https://blynk.cloud/external/api"

BASE_BACKOFF_S: float = 1.0
"""Initial backoff delay in seconds after the first fully failed poll."""

MAX_BACKOFF_S: float = 60.0
"""Maximum backoff delay in seconds (cap for exponential growth)."""

REQUEST_TIMEOUT_S: float = 10.0
"""Timeout per Blynk HTTP request in seconds."""

CLEANING_DUST_THRESHOLD: float = 70.0
"""Dust reading above which the cleaning actuator is switched on."""

PIN_FIELDS: dict[str, str] = {
    "v1": "dust_level",
    "v2": "current_level_ma",
    "v3": "energy_output",
    "v4": "tilt_angle",
    "v6": "light_intensity",
}
"""Virtual pin to HardwareState field."""

CLEANING_PIN = "v0"


@dataclass(frozen=True)
class HardwareState:
    """Last values polled from the demo panel."""

    dust_level: float = 0.0
    current_level_ma: float = 0.0
    energy_output: float = 0.0
    tilt_angle: float = 90.0
    light_intensity: float = 0.0
    cleaning_active: bool = False
    updated_at: datetime | None = None

    @property
    def has_data(self) -> bool:
        """True once at least one pin has been read successfully."""
        return self.updated_at is not None


class BlynkPoller:
    """Polls Blynk virtual pins and drives the cleaning actuator.

    Args:
        token: Blynk device auth token.
        base_url: Blynk external API base URL.
        interval_s: Seconds between polls when running in the background.
    """

    def __init__(
        self,
        *,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        interval_s: float = 5.0,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._interval_s = interval_s
        self._state = HardwareState()
        self._consecutive_failures = 0
        self._shutdown_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> HardwareState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def backoff_delay(self) -> float:
        """Return the extra delay owed for the current failure streak."""
        if self._consecutive_failures == 0:
            return 0.0
        return min(
            BASE_BACKOFF_S * (2 ** (self._consecutive_failures - 1)),
            MAX_BACKOFF_S,
        )

    # -- polling -----------------------------------------------------------

    async def _read_pin(self, client: httpx.AsyncClient, pin: str) -> float | None:
        try:
            response = await client.get(f"{self._base_url}/get?token={self._token}&{pin}")
        except httpx.HTTPError as exc:
            logger.warning("Blynk read of %s failed (network error): %s", pin, exc)
            return None
        if response.status_code != 200:
            logger.warning("Blynk read of %s failed (HTTP %d)", pin, response.status_code)
            return None
        try:
            return float(response.text.strip())
        except ValueError:
            logger.warning("Blynk pin %s returned a non-numeric value: %.50s", pin, response.text)
            return None

    async def _write_cleaning(self, client: httpx.AsyncClient, active: bool) -> None:
        try:
            response = await client.get(
                f"{self._base_url}/update",
                params={"token": self._token, CLEANING_PIN: "1" if active else "0"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Blynk cleaning update failed (network error): %s", exc)
            return
        if response.status_code != 200:
            logger.warning("Blynk cleaning update failed (HTTP %d)", response.status_code)

    async def poll_once(self) -> bool:
        """Read every pin once, update the state and write the actuator.

        Returns:
            bool: True if at least one pin was read successfully.
        """
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_S) as client:
            pins = list(PIN_FIELDS)
            values = await asyncio.gather(*(self._read_pin(client, pin) for pin in pins))
            changes = {
                PIN_FIELDS[pin]: value
                for pin, value in zip(pins, values, strict=True)
                if value is not None
            }
            if changes:
                changes["updated_at"] = utc_now()
                self._state = dataclasses.replace(self._state, **changes)

            cleaning = self._state.dust_level > CLEANING_DUST_THRESHOLD
            self._state = dataclasses.replace(self._state, cleaning_active=cleaning)
            await self._write_cleaning(client, cleaning)

        if changes:
            self._consecutive_failures = 0
            logger.debug("Blynk poll read %d/%d pins", len(changes) - 1, len(pins))
            return True
        self._consecutive_failures += 1
        logger.warning(
            "Blynk poll failed for every pin (consecutive failures: %d)",
            self._consecutive_failures,
        )
        return False

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None:
            logger.warning("Blynk poller already running")
            return
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run(), name="blynk-poller")
        logger.info("Blynk poller started (interval=%ss)", self._interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._shutdown_event.set()
        await self._task
        self._task = None
        logger.info("Blynk poller stopped")

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.error("Blynk poll cycle error", exc_info=True)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._interval_s + self.backoff_delay(),
                )
