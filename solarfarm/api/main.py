"""
FastAPI application entry point for the solar farm monitoring service.

The lifespan builds every long-lived component once and stores it on
``app.state``:

- storage: FailoverStorage over DbStorage (when DATABASE_URL is set) and a
  seeded MemStorage fallback;
- hub: the real-time WebSocket connection hub;
- feed, simulator, blynk: sensor sources;
- weather, advisor: inputs for predictions and recommendations;
- ingestion: the periodic persist-and-broadcast loop.

Background work (feed refresh, Blynk polling, ingestion) is started only
when BACKGROUND_TASKS_ENABLED is true.

CHANGELOG:
- 2026-09-28: Register reports and realtime routers (STORY-018)
- 2026-09-27: Start ingestion loop and Blynk poller in lifespan (STORY-016)
- 2026-09-26: Map DuplicatePanelError to 409 (STORY-015)
- 2026-09-14: Initial creation (STORY-001)
"""

import functools
import hashlib
import json
import logging
import sys
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from solarfarm import __version__
from solarfarm.api.alerts import router as alerts_router
from solarfarm.api.analytics import router as analytics_router
from solarfarm.api.dashboard import router as dashboard_router
from solarfarm.api.health import router as health_router
from solarfarm.api.panels import router as panels_router
from solarfarm.api.realtime import router as realtime_router
from solarfarm.api.recommendations import router as recommendations_router
from solarfarm.api.reports import router as reports_router
from solarfarm.api.sensors import router as sensors_router
from solarfarm.api.system import router as system_router
from solarfarm.cache.redis_client import cache_latest_aggregate
from solarfarm.config import FarmSettings
from solarfarm.db.session import create_engine, create_session_factory
from solarfarm.realtime.hub import ConnectionHub
from solarfarm.sensors.blynk import BlynkPoller
from solarfarm.sensors.feed import HardwareFeed
from solarfarm.sensors.simulator import SensorSimulator
from solarfarm.services.advisor import Advisor
from solarfarm.services.farm import farm_layout, seed_if_empty
from solarfarm.services.ingestion import IngestionLoop
from solarfarm.services.weather import WeatherClient
from solarfarm.storage import DbStorage, DuplicatePanelError, FailoverStorage, MemStorage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the service.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def _masked_url(url: str) -> str:
    """Return ``url`` with any password replaced by ``***``."""
    if not url or "@" not in url:
        return url or "empty"
    scheme, _, rest = url.partition("://")
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def log_config_summary(settings: FarmSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    Args:
        settings: The loaded FarmSettings.
    """
    logger.info(
        "Solar farm service starting with config: "
        "database_url=%s, redis_url=%s, panel_count=%s, grid_columns=%s, "
        "persist_interval_s=%s, feed_interval_s=%s, failure_threshold=%s, "
        "nominal_panel_power_w=%s, background_tasks_enabled=%s, "
        "weather_key_masked=%s, blynk_token_masked=%s",
        _masked_url(settings.database_url),
        _masked_url(settings.redis_url),
        settings.panel_count,
        settings.grid_columns,
        settings.persist_interval_s,
        settings.feed_interval_s,
        settings.failure_threshold,
        settings.nominal_panel_power_w,
        settings.background_tasks_enabled,
        _masked_token(settings.weather_api_key),
        _masked_token(settings.blynk_token),
    )


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_storage(settings: FarmSettings) -> tuple[FailoverStorage, list]:
    """Build the failover storage stack for ``settings``.

    Returns:
        tuple: The storage and the farm layout both backends are seeded with.
    """
    layout = farm_layout(settings.panel_count, settings.grid_columns)
    fallback = MemStorage(panels=layout)
    durable = None
    if settings.database_url:
        engine = create_engine(settings.database_url)
        durable = DbStorage(
            engine,
            create_session_factory(engine),
            create_tables=settings.auto_create_schema,
        )
    else:
        logger.warning("DATABASE_URL not set, running with in-memory storage only")
    storage = FailoverStorage(durable, fallback, failure_threshold=settings.failure_threshold)
    return storage, layout


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build components, start and stop background work."""
    settings = FarmSettings()
    log_config_summary(settings)
    app.state.settings = settings
    app.state.started_at = time.monotonic()

    storage, layout = build_storage(settings)
    await storage.initialize()
    await seed_if_empty(storage, layout)

    hub = ConnectionHub()
    feed = HardwareFeed(panel_count=settings.panel_count, interval_s=settings.feed_interval_s)
    blynk = (
        BlynkPoller(
            token=settings.blynk_token,
            base_url=settings.blynk_base_url,
            interval_s=settings.blynk_poll_interval_s,
        )
        if settings.blynk_token
        else None
    )
    aggregate_sink = (
        functools.partial(
            _cache_aggregate, url=settings.redis_url, ttl_s=settings.cache_ttl_s
        )
        if settings.redis_url
        else None
    )
    ingestion = IngestionLoop(
        storage=storage,
        feed=feed,
        hub=hub,
        interval_s=settings.persist_interval_s,
        nominal_power_w=settings.nominal_panel_power_w,
        max_concurrent_writes=settings.max_concurrent_writes,
        aggregate_sink=aggregate_sink,
        weather_live=bool(settings.weather_api_key),
    )

    app.state.storage = storage
    app.state.hub = hub
    app.state.feed = feed
    app.state.blynk = blynk
    app.state.simulator = SensorSimulator()
    app.state.advisor = Advisor()
    app.state.weather = WeatherClient(
        api_key=settings.weather_api_key,
        lat=settings.weather_lat,
        lon=settings.weather_lon,
    )
    app.state.ingestion = ingestion

    if settings.background_tasks_enabled:
        feed.add_listener(hub.broadcast_sensor_update)
        await feed.connect()
        if blynk is not None:
            await blynk.start()
        ingestion.start()

    logger.info("Solar farm API ready (storage mode: %s)", storage.mode.value)
    yield
    logger.info("Solar farm API shutting down")

    await ingestion.stop()
    if blynk is not None:
        await blynk.stop()
    await feed.disconnect()
    await storage.close()


async def _cache_aggregate(aggregate, *, url: str, ttl_s: int) -> None:
    await cache_latest_aggregate(url, aggregate, ttl_s)


app = FastAPI(
    title="Solar Farm Monitor API",
    description="Monitoring, health scoring and advice for a solar panel farm.",
    version=__version__,
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=FarmSettings().cors_origin_list,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(panels_router)
app.include_router(sensors_router)
app.include_router(dashboard_router)
app.include_router(analytics_router)
app.include_router(recommendations_router)
app.include_router(alerts_router)
app.include_router(system_router)
app.include_router(reports_router)
app.include_router(realtime_router)


@app.exception_handler(DuplicatePanelError)
async def duplicate_panel_handler(request: Request, exc: DuplicatePanelError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/")
async def root(request: Request) -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status and storage mode.
    """
    return {"status": "ok", "storage": request.app.state.storage.mode.value}


def main() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = FarmSettings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=None)
