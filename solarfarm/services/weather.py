"""
Current weather at the farm from OpenWeatherMap.

Weather is advisory input only: when no API key is configured, when the
API answers with an error, or when the network fails, a synthetic hot
and dry reading is returned instead and the failure is logged. Callers
therefore always get a WeatherData.

CHANGELOG:
- 2026-09-24: Initial creation (STORY-012)

TODO:
- None
"""

import logging
import random

import httpx

from solarfarm.models import CamelModel

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"

REQUEST_TIMEOUT_S: float = 10.0

LOW_PRESSURE_HPA: float = 1010.0
"""Below this pressure dusty, unsettled weather is assumed."""


class WeatherData(CamelModel):
    """Weather summary used by the advisor.

    ``dust_factor`` is a 0-5 estimate of airborne dust; live readings map
    low pressure to 3 and everything else to 1.
    """

    temperature: float
    humidity: float
    dust_factor: float
    wind_speed: float
    condition: str = "Clear"


class WeatherClient:
    """Fetches current conditions for one location.

    Args:
        api_key: OpenWeatherMap API key. Empty means synthetic weather only.
        lat: Farm latitude.
        lon: Farm longitude.
        rng: Random source for synthetic weather.
    """

    def __init__(
        self,
        *,
        api_key: str,
        lat: float,
        lon: float,
        rng: random.Random | None = None,
    ) -> None:
        self._api_key = api_key
        self._lat = lat
        self._lon = lon
        self._rng = rng or random.Random()

    def synthetic(self) -> WeatherData:
        """Return plausible weather for a hot, dry site."""
        rng = self._rng
        return WeatherData(
            temperature=30 + rng.random() * 10,
            humidity=40 + rng.random() * 30,
            dust_factor=rng.random() * 5,
            wind_speed=5 + rng.random() * 10,
            condition="Clear",
        )

    async def fetch(self) -> WeatherData:
        """Return live weather, or synthetic weather if it is unavailable."""
        if not self._api_key:
            return self.synthetic()

        params = {
            "lat": self._lat,
            "lon": self._lon,
            "appid": self._api_key,
            "units": "metric",
        }
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_S) as client:
                response = await client.get(OPENWEATHER_URL, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Weather request failed (network error): %s", exc)
            return self.synthetic()

        if response.status_code != 200:
            logger.warning(
                "Weather request failed (HTTP %d), using synthetic weather",
                response.status_code,
            )
            return self.synthetic()

        try:
            payload = response.json()
            main = payload["main"]
            conditions = payload.get("weather") or [{}]
            return WeatherData(
                temperature=main["temp"],
                humidity=main["humidity"],
                dust_factor=3.0 if main["pressure"] < LOW_PRESSURE_HPA else 1.0,
                wind_speed=payload["wind"]["speed"],
                condition=conditions[0].get("main") or "Clear",
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Malformed weather response, using synthetic weather", exc_info=True)
            return self.synthetic()
