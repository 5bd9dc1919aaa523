"""
Tests for the Redis aggregate cache.

CHANGELOG:
- 2026-09-27: Cache farm aggregates (STORY-016)
- 2026-09-14: Initial creation (STORY-002)

TODO:
- None
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_reading

from solarfarm.cache.redis_client import (
    AGGREGATE_KEY,
    cache_latest_aggregate,
    read_latest_aggregate,
)
from solarfarm.models import FarmAggregate, utc_now

REDIS_URL = "redis://localhost:6379/0"


def _aggregate() -> FarmAggregate:
    return FarmAggregate(
        timestamp=utc_now(),
        total_panels=2,
        total_energy_output=410.0,
        average_efficiency=82.0,
        latest_readings=[make_reading("panel-1").build()],
    )


class TestCacheLatestAggregate:
    @pytest.mark.asyncio
    async def test_writes_camel_case_json_with_ttl(self) -> None:
        mock_redis = AsyncMock()
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            return_value=mock_redis,
        ):
            await cache_latest_aggregate(REDIS_URL, _aggregate(), ttl_s=5)

        mock_redis.set.assert_awaited_once()
        call_args = mock_redis.set.call_args
        assert call_args.args[0] == AGGREGATE_KEY
        payload = json.loads(call_args.args[1])
        assert payload["totalPanels"] == 2
        assert payload["latestReadings"][0]["panelId"] == "panel-1"
        assert call_args.kwargs["ex"] == 5
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_failure_is_swallowed(self, caplog: pytest.LogCaptureFixture) -> None:
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            side_effect=ConnectionError("Redis unavailable"),
        ):
            await cache_latest_aggregate(REDIS_URL, _aggregate(), ttl_s=5)
        assert "Redis write failed" in caplog.text


class TestReadLatestAggregate:
    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        aggregate = _aggregate()
        mock_redis = AsyncMock()
        mock_redis.get = AsyncMock(return_value=aggregate.model_dump_json(by_alias=True).encode())
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            return_value=mock_redis,
        ):
            cached = await read_latest_aggregate(REDIS_URL)

        assert cached == aggregate
        mock_redis.get.assert_awaited_once_with(AGGREGATE_KEY)

    @pytest.mark.asyncio
    async def test_miss_returns_none(self) -> None:
        mock_redis = AsyncMock()
        mock_redis.get = AsyncMock(return_value=None)
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            return_value=mock_redis,
        ):
            assert await read_latest_aggregate(REDIS_URL) is None

    @pytest.mark.asyncio
    async def test_failure_and_garbage_return_none(self) -> None:
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            side_effect=ConnectionError("Redis unavailable"),
        ):
            assert await read_latest_aggregate(REDIS_URL) is None

        mock_redis = AsyncMock()
        mock_redis.get = AsyncMock(return_value=b"{not json")
        with patch(
            "solarfarm.cache.redis_client.get_redis",
            new_callable=AsyncMock,
            return_value=mock_redis,
        ):
            assert await read_latest_aggregate(REDIS_URL) is None
