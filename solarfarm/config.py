"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every value has a default so the service can start with no environment at
all: an empty DATABASE_URL selects memory-only storage and an empty
REDIS_URL disables the aggregate cache.

CHANGELOG:
- 2026-09-22: Add Blynk and weather settings (STORY-011)
- 2026-09-14: Initial creation (STORY-001)

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

_ASYNC_DRIVERS = ("+asyncpg", "+aiosqlite")


class FarmSettings(BaseSettings):
    """Solar farm service configuration.

    Attributes:
        database_url: Async SQLAlchemy URL of the durable store. Empty means
            memory-only mode.
        redis_url: Redis URL for the latest-aggregate cache. Empty disables it.
        panel_count: Number of panels in the farm (1-200).
        grid_columns: Panels per row when building location labels.
        persist_interval_s: Seconds between ingestion ticks.
        feed_interval_s: Seconds between hardware feed refreshes.
        failure_threshold: Consecutive connectivity failures before the
            storage layer switches permanently to memory.
        nominal_panel_power_w: Rated panel output used to derive efficiency.
        max_concurrent_writes: Upper bound on parallel reading inserts per tick.
        weather_api_key: OpenWeatherMap API key. Empty means synthetic weather.
        weather_lat: Farm latitude for weather lookups.
        weather_lon: Farm longitude for weather lookups.
        blynk_token: Blynk cloud device token. Empty disables the poller.
        blynk_base_url: Blynk cloud HTTP API base URL.
        blynk_poll_interval_s: Seconds between Blynk polls.
        cache_ttl_s: TTL of cached aggregates in Redis.
        cors_origins: Comma separated list of allowed CORS origins.
        log_level: Root log level.
        background_tasks_enabled: Start feed, poller and ingestion on startup.
        auto_create_schema: Create missing tables on startup.
    """

    database_url: str = ""
    redis_url: str = ""
    panel_count: int = 200
    grid_columns: int = 20
    persist_interval_s: int = 30
    feed_interval_s: int = 10
    failure_threshold: int = 3
    nominal_panel_power_w: float = 250.0
    max_concurrent_writes: int = 20
    weather_api_key: str = ""
    weather_lat: float = 28.6139
    weather_lon: float = 77.2090
    blynk_token: str = ""
    blynk_base_url: str = "https://blynk.cloud/external/api"
    blynk_poll_interval_s: int = 5
    cache_ttl_s: int = 5
    cors_origins: str = "*"
    log_level: str = "INFO"
    background_tasks_enabled: bool = True
    auto_create_schema: bool = True

    @field_validator("database_url")
    @classmethod
    def database_url_must_be_async(cls, v: str) -> str:
        """Reject synchronous drivers; the storage layer is fully async."""
        if v and not any(driver in v.split("://", 1)[0] for driver in _ASYNC_DRIVERS):
            raise ValueError(
                "DATABASE_URL must use an async driver "
                "(postgresql+asyncpg:// or sqlite+aiosqlite://)"
            )
        return v

    @field_validator("panel_count")
    @classmethod
    def panel_count_must_be_valid(cls, v: int) -> int:
        """Validate panel count is between 1 and 200."""
        if v < 1 or v > 200:
            raise ValueError("PANEL_COUNT must be >= 1 and <= 200")
        return v

    @field_validator(
        "grid_columns",
        "persist_interval_s",
        "feed_interval_s",
        "failure_threshold",
        "max_concurrent_writes",
        "blynk_poll_interval_s",
        "cache_ttl_s",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("nominal_panel_power_w")
    @classmethod
    def nominal_power_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("NOMINAL_PANEL_POWER_W must be > 0")
        return v

    @model_validator(mode="after")
    def _normalise_log_level(self) -> "FarmSettings":
        """Upper-case the log level so ``info`` and ``INFO`` are equivalent."""
        self.log_level = self.log_level.upper()
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        """Return the configured CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
