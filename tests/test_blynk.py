"""
Tests for the Blynk cloud poller.

CHANGELOG:
- 2026-09-23: HardwareState and backoff tests (STORY-011)
- 2026-09-22: Initial creation (STORY-011)

TODO:
- None
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from solarfarm.sensors.blynk import (
    MAX_BACKOFF_S,
    BlynkPoller,
    HardwareState,
)

BASE_URL = "https://blynk.example.com/external/api"


def _response(status_code: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


def _make_client(pin_values: dict[str, str | Exception]) -> AsyncMock:
    """Build a mock AsyncClient answering pin reads from ``pin_values``.

    Pins absent from the mapping answer HTTP 404; exception values are
    raised. Actuator writes (calls with ``params``) always succeed.
    """

    async def fake_get(url: str, params: dict | None = None) -> MagicMock:
        if params is not None:
            return _response(200, "")
        pin = url.rsplit("&", 1)[1]
        value = pin_values.get(pin)
        if value is None:
            return _response(404, "")
        if isinstance(value, Exception):
            raise value
        return _response(200, value)

    mock_client = AsyncMock()
    mock_client.get = AsyncMock(side_effect=fake_get)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _make_poller() -> BlynkPoller:
    return BlynkPoller(token="device-token", base_url=BASE_URL + "/", interval_s=60)


def _actuator_calls(mock_client: AsyncMock) -> list[dict]:
    return [
        call.kwargs["params"]
        for call in mock_client.get.call_args_list
        if call.kwargs.get("params") is not None
    ]


class TestHardwareState:
    def test_defaults_have_no_data(self) -> None:
        state = HardwareState()
        assert state.has_data is False
        assert state.tilt_angle == 90.0


class TestPollOnce:
    """One poll of every pin."""

    @pytest.mark.asyncio
    async def test_reads_every_pin(self) -> None:
        poller = _make_poller()
        mock_client = _make_client(
            {"v1": "42", "v2": "650.5", "v3": "7.8", "v4": "35", "v6": "512\n"}
        )

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=mock_client):
            assert await poller.poll_once() is True

        state = poller.state
        assert state.has_data
        assert state.dust_level == 42.0
        assert state.current_level_ma == 650.5
        assert state.energy_output == 7.8
        assert state.tilt_angle == 35.0
        assert state.light_intensity == 512.0
        assert state.cleaning_active is False

        first_url = mock_client.get.call_args_list[0].args[0]
        assert first_url.startswith(f"{BASE_URL}/get?token=device-token&")

    @pytest.mark.asyncio
    async def test_high_dust_switches_cleaning_on(self) -> None:
        poller = _make_poller()
        mock_client = _make_client({"v1": "85"})

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=mock_client):
            await poller.poll_once()

        assert poller.state.cleaning_active is True
        assert _actuator_calls(mock_client) == [{"token": "device-token", "v0": "1"}]

    @pytest.mark.asyncio
    async def test_failed_pins_keep_previous_value(self) -> None:
        poller = _make_poller()
        first = _make_client({"v1": "10", "v3": "5"})
        second = _make_client({"v1": "not-a-number", "v3": httpx.ConnectError("refused")})
        second_with_tilt = _make_client({"v4": "40"})

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=first):
            await poller.poll_once()
        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=second):
            assert await poller.poll_once() is False
        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=second_with_tilt):
            assert await poller.poll_once() is True

        assert poller.state.dust_level == 10.0
        assert poller.state.energy_output == 5.0
        assert poller.state.tilt_angle == 40.0

    @pytest.mark.asyncio
    async def test_backoff_grows_and_resets(self) -> None:
        poller = _make_poller()
        failing = _make_client({})

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=failing):
            for _ in range(3):
                await poller.poll_once()
        assert poller.consecutive_failures == 3
        assert poller.backoff_delay() == 4.0

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=failing):
            for _ in range(10):
                await poller.poll_once()
        assert poller.backoff_delay() == MAX_BACKOFF_S

        with patch(
            "solarfarm.sensors.blynk.httpx.AsyncClient", return_value=_make_client({"v2": "1"})
        ):
            await poller.poll_once()
        assert poller.consecutive_failures == 0
        assert poller.backoff_delay() == 0.0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_polls_and_stop_is_clean(self) -> None:
        poller = _make_poller()
        mock_client = _make_client({"v1": "3"})

        with patch("solarfarm.sensors.blynk.httpx.AsyncClient", return_value=mock_client):
            await poller.start()
            for _ in range(100):
                if poller.state.has_data:
                    break
                await asyncio.sleep(0.01)
            await poller.stop()

        assert poller.state.dust_level == 3.0
        await poller.stop()
