"""
Panel health scoring.

Pure functions deriving a bounded 0-100 health score from a reading's
efficiency, dust level and temperature. The score is the sum of three
sub-scores:

- efficiency: efficiency / 100 * 40 (0-40 points)
- dust: (10 - dust) / 10 * 30 (0-30 points, negative above dust 10)
- temperature: max(0, 30 - 1.5 * |temperature - 25|) (0-30 points)

Non-finite inputs fall back to efficiency 50, dust 5 and temperature 25.
Rounding is half-up so a given input triple always yields the same score.

CHANGELOG:
- 2026-09-15: Initial creation (STORY-003)

TODO:
- None
"""

import math

from solarfarm.models import HealthScoreFactors, SensorReading

EFFICIENCY_WEIGHT = 40.0
DUST_WEIGHT = 30.0
TEMPERATURE_WEIGHT = 30.0
OPTIMAL_TEMPERATURE_C = 25.0
TEMPERATURE_PENALTY_PER_DEGREE = 1.5


def safe_value(value: float, default: float) -> float:
    """Return ``value`` unless it is NaN or infinite, else ``default``."""
    if value is None or not math.isfinite(value):
        return default
    return value


def round_half_up(value: float) -> float:
    """Round to the nearest integer with halves rounded towards +inf.

    Python's ``round`` uses banker's rounding (``round(2.5) == 2``); scores
    are expected to round 2.5 up to 3. Non-finite values pass through.
    """
    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))


def calculate_health_score(
    efficiency: float, dust: float, temperature: float
) -> HealthScoreFactors:
    """Compute the health score breakdown for one observation.

    Args:
        efficiency: Efficiency percent (0-100).
        dust: Dust level on the 0-10 scale.
        temperature: Panel temperature in Celsius.

    Returns:
        HealthScoreFactors: Rounded sub-scores and the clamped total.
    """
    efficiency = safe_value(efficiency, 50.0)
    dust = safe_value(dust, 5.0)
    temperature = safe_value(temperature, 25.0)

    efficiency_score = efficiency / 100.0 * EFFICIENCY_WEIGHT
    dust_score = (10.0 - dust) / 10.0 * DUST_WEIGHT
    temp_diff = abs(temperature - OPTIMAL_TEMPERATURE_C)
    temperature_score = max(0.0, TEMPERATURE_WEIGHT - temp_diff * TEMPERATURE_PENALTY_PER_DEGREE)

    total = round_half_up(efficiency_score + dust_score + temperature_score)
    total = min(100.0, max(0.0, safe_value(total, 50.0)))

    return HealthScoreFactors(
        efficiency_score=round_half_up(safe_value(efficiency_score, 20.0)),
        dust_score=round_half_up(safe_value(dust_score, 15.0)),
        temperature_score=round_half_up(safe_value(temperature_score, 15.0)),
        total_score=total,
    )


def score_reading(reading: SensorReading) -> HealthScoreFactors:
    """Compute the health score breakdown for a stored reading."""
    return calculate_health_score(
        reading.efficiency_percent, reading.dust_level, reading.temperature
    )
