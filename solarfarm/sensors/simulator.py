"""
Environment simulator producing full sensor readings per panel.

Models a clear-sky day: sunlight follows a cosine around solar noon (zero
from 20:00 to 06:00), temperature follows a warm-afternoon curve, and dust
accumulates with occasional wind events. Each panel gets a stable variation
factor in 0.85-1.05 derived from a hash of its id, so the same panel is
consistently a little stronger or weaker than its neighbours.

Readings also carry the panel firmware's control outputs. Dust is reported
in raw ADC counts (0-4095, ``dust_level * 400``); above 2000 counts the
status reads ``DUSTY / NIGHT`` and the sweeper is enabled unless the panel
current exceeds the 800 mA overload limit.

CHANGELOG:
- 2026-09-22: Add historical series generation (STORY-010)
- 2026-09-21: Initial creation (STORY-010)

TODO:
- None
"""

import math
import random
from collections.abc import Callable
from datetime import datetime, timedelta

from solarfarm.models import CamelModel, ReadingCreate
from solarfarm.scoring import safe_value
from solarfarm.sensors.feed import local_now

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASELINE_ENERGY_W: float = 250.0
"""Nominal panel output under baseline sunlight."""

BASELINE_SUNLIGHT_W_M2: float = 800.0

DUST_ADC_THRESHOLD: float = 2000.0
"""ADC counts above which a panel is considered dusty."""

DUST_ADC_FALLBACK: float = 1500.0

CURRENT_LIMIT_MA: float = 800.0
"""Panel current above which the firmware reports an overload."""

SYSTEM_VOLTAGE_V: float = 12.0

HISTORY_STEP = timedelta(minutes=5)

DUSTY_STATUS = "DUSTY / NIGHT"
CLEAN_STATUS = "CLEAN / DAY"


def panel_hash(panel_id: str) -> int:
    """Return a stable non-negative hash of ``panel_id``.

    Uses the classic ``h * 31 + c`` string hash truncated to a signed 32-bit
    integer, so values are identical across processes and platforms.
    """
    h = 0
    for char in panel_id:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def dust_status_for(dust_adc: float) -> str:
    return DUSTY_STATUS if dust_adc > DUST_ADC_THRESHOLD else CLEAN_STATUS


class HistoricalSample(CamelModel):
    """One point of a synthetic history series (dust on the 0-10 scale)."""

    timestamp: datetime
    energy_output: float
    sunlight_intensity: float
    temperature: float
    dust_level: float
    tilt_angle: float
    efficiency_percent: float


class SensorSimulator:
    """Per-panel environment model.

    Args:
        rng: Random source; injectable for deterministic tests.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._variations: dict[str, float] = {}

    def panel_variation(self, panel_id: str | None) -> float:
        """Return the cached 0.85-1.05 variation factor for ``panel_id``."""
        if panel_id is None:
            return 1.0
        variation = self._variations.get(panel_id)
        if variation is None:
            variation = 0.85 + (panel_hash(panel_id) % 200) / 1000
            self._variations[panel_id] = variation
        return variation

    # -- environment model -------------------------------------------------

    def sunlight_intensity(self, hour: int, variation: float = 1.0) -> float:
        if hour < 6 or hour >= 20:
            return 0.0
        elevation = math.cos(abs(hour - 12) / 6 * (math.pi / 2))
        intensity = BASELINE_SUNLIGHT_W_M2 * elevation
        intensity *= 1 + (self._rng.random() - 0.5) * 0.3
        intensity += (self._rng.random() - 0.5) * 50
        intensity *= variation
        return max(0.0, intensity)

    def temperature(self, hour: int, variation: float = 1.0) -> float:
        if 6 <= hour < 12:
            daily = (hour - 6) / 6 * 10
        elif 12 <= hour < 18:
            daily = 10 - (hour - 12) / 6 * 6
        elif 18 <= hour < 22:
            daily = 4 - (hour - 18) / 4 * 4
        else:
            daily = -2.0
        noise = (self._rng.random() - 0.5) * 5
        return 25 + daily + noise + (variation - 1) * 5

    def dust_level(self, panel_id: str | None = None) -> float:
        """Return dust on the 0-10 scale, with a 5% chance of a dust event."""
        multiplier = 1.0
        if panel_id is not None:
            multiplier = 0.7 + (panel_hash(panel_id) % 90) / 100
        dust = 2 + self._rng.random() * 4 * multiplier
        if self._rng.random() < 0.05:
            dust += 3
        return min(10.0, dust)

    def _energy_output(
        self, sunlight: float, dust: float, temperature: float, variation: float
    ) -> float:
        effective = sunlight * (1 - dust / 10)
        energy = BASELINE_ENERGY_W * (effective / BASELINE_SUNLIGHT_W_M2)
        if temperature > 25:
            energy *= 1 - (temperature - 25) * 0.005
        energy *= variation
        energy *= 1 + (self._rng.random() - 0.5) * 0.05
        return energy

    def _tilt_angle(self) -> float:
        return 32 + (self._rng.random() - 0.5) * 2

    # -- readings ----------------------------------------------------------

    def generate_reading(self, panel_id: str) -> ReadingCreate:
        """Produce one reading for ``panel_id`` at the current time.

        Args:
            panel_id: Panel the reading is generated for.

        Returns:
            ReadingCreate: Reading with dust in ADC counts and the firmware
            control flags filled in.
        """
        now = self._clock()
        variation = self.panel_variation(panel_id)
        sunlight = self.sunlight_intensity(now.hour, variation)
        temperature = self.temperature(now.hour, variation)
        dust = self.dust_level(panel_id)
        tilt = self._tilt_angle()
        energy = self._energy_output(sunlight, dust, temperature, variation)
        efficiency = energy / (BASELINE_ENERGY_W * variation) * 100

        dust_adc = safe_value(max(0.0, min(4095.0, dust * 400)), DUST_ADC_FALLBACK)
        current_ma = safe_value(max(0.0, energy / SYSTEM_VOLTAGE_V * 1000), 0.0)
        power_mw = safe_value(energy * 1000, 0.0)
        overload = current_ma > CURRENT_LIMIT_MA
        auto_mode = True

        return ReadingCreate(
            panel_id=panel_id,
            timestamp=now,
            energy_output=safe_value(max(0.0, energy), 0.0),
            sunlight_intensity=safe_value(sunlight, 0.0),
            temperature=safe_value(max(15.0, min(50.0, temperature)), 25.0),
            dust_level=dust_adc,
            dust_status=dust_status_for(dust_adc),
            tilt_angle=safe_value(max(0.0, min(90.0, tilt)), 32.0),
            efficiency_percent=safe_value(max(0.0, min(100.0, efficiency)), 50.0),
            current_level_ma=current_ma,
            power_output_mw=power_mw,
            overload=overload,
            sweep_enable=auto_mode and not overload and dust_adc > DUST_ADC_THRESHOLD,
            auto_mode=auto_mode,
        )

    def generate_readings(self, panel_ids: list[str]) -> dict[str, ReadingCreate]:
        return {panel_id: self.generate_reading(panel_id) for panel_id in panel_ids}

    def weather_adjusted(
        self, reading: ReadingCreate, *, ambient_temperature: float, dust_factor: float
    ) -> ReadingCreate:
        """Pull a generated reading towards the observed weather.

        Temperature is replaced by the ambient temperature +/- 1.5 C and the
        weather dust factor adds ``0.3`` dust-scale units per point, converted
        to ADC counts. The dust status and sweep flag follow the new dust.

        Args:
            reading: A reading produced by :meth:`generate_reading`.
            ambient_temperature: Current outside temperature in Celsius.
            dust_factor: Weather dust factor (0-5).

        Returns:
            ReadingCreate: The adjusted copy.
        """
        temperature = ambient_temperature + (self._rng.random() - 0.5) * 3
        dust_adc = min(4095.0, reading.dust_level + dust_factor * 0.3 * 400)
        return reading.model_copy(
            update={
                "temperature": temperature,
                "dust_level": dust_adc,
                "dust_status": dust_status_for(dust_adc),
                "sweep_enable": (
                    reading.auto_mode and not reading.overload and dust_adc > DUST_ADC_THRESHOLD
                ),
            }
        )

    def generate_historical_data(
        self, hours: int, panel_id: str | None = None
    ) -> list[HistoricalSample]:
        """Produce a 5-minute series covering the last ``hours`` hours.

        Args:
            hours: Length of the series in hours.
            panel_id: Panel whose variation factor to apply, or None for a
                farm-average series.

        Returns:
            list[HistoricalSample]: ``hours * 12 + 1`` samples, oldest first.
        """
        now = self._clock()
        variation = self.panel_variation(panel_id)
        samples: list[HistoricalSample] = []
        for step in range(hours * 12, -1, -1):
            timestamp = now - step * HISTORY_STEP
            sunlight = self.sunlight_intensity(timestamp.hour, variation)
            temperature = self.temperature(timestamp.hour, variation)
            dust = self.dust_level(panel_id)
            tilt = self._tilt_angle()
            energy = self._energy_output(sunlight, dust, temperature, variation)
            efficiency = energy / (BASELINE_ENERGY_W * variation) * 100
            samples.append(
                HistoricalSample(
                    timestamp=timestamp,
                    energy_output=max(0.0, energy),
                    sunlight_intensity=max(0.0, sunlight),
                    temperature=max(15.0, min(50.0, temperature)),
                    dust_level=max(0.0, min(10.0, dust)),
                    tilt_angle=max(0.0, min(90.0, tilt)),
                    efficiency_percent=max(0.0, min(100.0, efficiency)),
                )
            )
        return samples
