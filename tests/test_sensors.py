"""
Tests for the simulated hardware feed and the environment simulator.

CHANGELOG:
- 2026-09-22: Historical series and weather adjustment tests (STORY-010)
- 2026-09-21: Initial creation (STORY-009)

TODO:
- None
"""

import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from solarfarm.sensors.feed import HardwareFeed, panel_ids
from solarfarm.sensors.simulator import (
    CLEAN_STATUS,
    DUSTY_STATUS,
    SensorSimulator,
    dust_status_for,
    panel_hash,
)


def _clock(hour: int):
    return lambda: datetime(2026, 6, 1, hour, 0, tzinfo=timezone.utc)


def _make_feed(panel_count: int = 3, hour: int = 12, **kwargs: object) -> HardwareFeed:
    return HardwareFeed(
        panel_count=panel_count, rng=random.Random(7), clock=_clock(hour), **kwargs
    )


class TestHardwareFeed:
    """ADC sampling and the refresh cycle."""

    def test_panel_ids(self) -> None:
        assert panel_ids(3) == ["panel-1", "panel-2", "panel-3"]

    def test_daytime_sample_ranges(self) -> None:
        feed = _make_feed()
        for _ in range(50):
            snapshot = feed.sample("panel-1")
            assert 488.0 <= snapshot.sunlight_intensity <= 977.0
            assert 12.2 <= snapshot.voltage <= 19.6
            assert 1.22 <= snapshot.current <= 1.84
            assert 15.0 <= snapshot.temperature <= 60.0
            assert 0.0 <= snapshot.dust_level <= 2.45
            assert 31.0 <= snapshot.tilt_angle <= 33.0
            assert snapshot.energy_output == pytest.approx(snapshot.voltage * snapshot.current)

    def test_night_sunlight_is_low(self) -> None:
        feed = _make_feed(hour=23)
        for _ in range(20):
            assert feed.sample("panel-1").sunlight_intensity <= 49.0

    def test_no_data_before_first_refresh(self) -> None:
        feed = _make_feed()
        assert feed.get_sensor_data("panel-1") is None
        assert feed.get_all_sensor_data() == []

    @pytest.mark.asyncio
    async def test_refresh_stores_and_notifies(self) -> None:
        feed = _make_feed()
        listener = AsyncMock()
        feed.add_listener(listener)

        snapshots = await feed.refresh()

        assert [s.panel_id for s in snapshots] == ["panel-1", "panel-2", "panel-3"]
        assert listener.await_count == 3
        assert feed.get_sensor_data("panel-2") == snapshots[1]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_refresh(self) -> None:
        feed = _make_feed()
        failing = AsyncMock(side_effect=RuntimeError("send failed"))
        healthy = AsyncMock()
        feed.add_listener(failing)
        feed.add_listener(healthy)

        await feed.refresh()

        assert healthy.await_count == 3
        assert len(feed.get_all_sensor_data()) == 3

    @pytest.mark.asyncio
    async def test_connect_samples_immediately(self) -> None:
        feed = _make_feed(interval_s=60)
        await feed.connect()
        try:
            assert feed.is_connected
            assert len(feed.get_all_sensor_data()) == 3
        finally:
            await feed.disconnect()
        assert feed.is_connected is False
        assert feed.get_sensor_data("panel-1") is not None


class TestPanelVariation:
    def test_panel_hash_is_stable_string_hash(self) -> None:
        assert panel_hash("a") == 97
        assert panel_hash("ab") == 97 * 31 + 98
        assert panel_hash("panel-7") == panel_hash("panel-7")

    def test_variation_range_and_cache(self) -> None:
        simulator = SensorSimulator(rng=random.Random(1))
        for n in range(1, 50):
            variation = simulator.panel_variation(f"panel-{n}")
            assert 0.85 <= variation < 1.05
        assert simulator.panel_variation(None) == 1.0
        assert simulator.panel_variation("panel-3") == simulator.panel_variation("panel-3")


class TestSensorSimulator:
    """Readings and synthetic history."""

    def test_night_reading_has_no_sunlight(self) -> None:
        simulator = SensorSimulator(rng=random.Random(3), clock=_clock(2))
        reading = simulator.generate_reading("panel-1")
        assert reading.sunlight_intensity == 0.0
        assert reading.efficiency_percent == 0.0
        assert reading.energy_output == 0.0

    def test_firmware_flags_follow_dust_and_current(self) -> None:
        simulator = SensorSimulator(rng=random.Random(5), clock=_clock(12))
        for n in range(1, 30):
            reading = simulator.generate_reading(f"panel-{n}")
            assert 0.0 <= reading.dust_level <= 4095.0
            assert reading.dust_status == dust_status_for(reading.dust_level)
            assert reading.overload == (reading.current_level_ma > 800)
            assert reading.sweep_enable == (
                not reading.overload and reading.dust_level > 2000
            )
            assert 15.0 <= reading.temperature <= 50.0
            assert 0.0 <= reading.efficiency_percent <= 100.0

    def test_dust_status_threshold(self) -> None:
        assert dust_status_for(2000.0) == CLEAN_STATUS
        assert dust_status_for(2000.5) == DUSTY_STATUS

    def test_generate_readings_per_panel(self) -> None:
        simulator = SensorSimulator(rng=random.Random(9), clock=_clock(10))
        readings = simulator.generate_readings(["panel-1", "panel-2"])
        assert set(readings) == {"panel-1", "panel-2"}
        assert readings["panel-2"].panel_id == "panel-2"

    def test_historical_series_length_and_order(self) -> None:
        now = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
        simulator = SensorSimulator(rng=random.Random(11), clock=lambda: now)

        samples = simulator.generate_historical_data(2, "panel-1")

        assert len(samples) == 25
        assert samples[0].timestamp == now - timedelta(hours=2)
        assert samples[-1].timestamp == now
        assert all(0.0 <= s.dust_level <= 10.0 for s in samples)

    def test_weather_adjusted_reading(self) -> None:
        simulator = SensorSimulator(rng=random.Random(13), clock=_clock(12))
        reading = simulator.generate_reading("panel-1").model_copy(
            update={"dust_level": 1500.0, "overload": False}
        )

        calm = simulator.weather_adjusted(reading, ambient_temperature=30.0, dust_factor=1.0)
        assert calm.dust_level == pytest.approx(1620.0)
        assert calm.dust_status == CLEAN_STATUS
        assert 28.5 <= calm.temperature <= 31.5

        stormy = simulator.weather_adjusted(reading, ambient_temperature=30.0, dust_factor=5.0)
        assert stormy.dust_level == pytest.approx(2100.0)
        assert stormy.dust_status == DUSTY_STATUS
        assert stormy.sweep_enable is True
