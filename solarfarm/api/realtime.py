"""
Real-time endpoints.

- ``GET /api/realtime/latest`` returns the most recent farm aggregate. The
  Redis cache is tried first (best-effort), then the running ingestion
  loop's last aggregate.
- ``WS /api/realtime`` streams ``connected``, ``sensorUpdate``, ``alert``
  and ``aggregatedUpdate`` messages and answers ``subscribe`` requests.

CHANGELOG:
- 2026-09-28: Serve latest aggregate from Redis (STORY-018)
- 2026-09-21: Initial creation (STORY-009)

TODO:
- None
"""

import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from solarfarm.api.deps import IngestionDep, SettingsDep
from solarfarm.cache.redis_client import read_latest_aggregate
from solarfarm.models import FarmAggregate
from solarfarm.realtime.hub import ConnectionHub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/realtime", tags=["realtime"])


@router.get("/latest", response_model=FarmAggregate)
async def latest_aggregate(settings: SettingsDep, ingestion: IngestionDep) -> FarmAggregate:
    """Return the latest farm aggregate.

    Raises:
        HTTPException: 404 if no ingestion tick has produced one yet.
    """
    if settings.redis_url:
        cached = await read_latest_aggregate(settings.redis_url)
        if cached is not None:
            return cached
    aggregate = ingestion.last_aggregate
    if aggregate is None:
        raise HTTPException(status_code=404, detail="No aggregate available yet")
    return aggregate


@router.websocket("")
async def realtime_socket(websocket: WebSocket) -> None:
    hub: ConnectionHub = websocket.app.state.hub
    await hub.register(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await hub.handle_client_message(websocket, raw)
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        hub.unregister(websocket)
