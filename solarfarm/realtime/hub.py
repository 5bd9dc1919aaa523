"""
Registry of open WebSocket subscribers with best-effort broadcast.

Delivery is fire-and-forget: a broadcast serialises the message once and
sends it to every socket that is connected at call time. Sockets that are
not connected are skipped, and sockets whose send fails are dropped from
the registry. There is no queueing, no retry and no cross-client ordering.

CHANGELOG:
- 2026-09-20: Initial creation (STORY-008)

TODO:
- None
"""

import logging

from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from solarfarm.models import Alert, SensorSnapshot
from solarfarm.realtime.messages import (
    AlertMessage,
    ConnectedMessage,
    Envelope,
    SensorUpdateMessage,
    SubscribedMessage,
    SubscribeRequest,
)

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Tracks connected dashboard clients and fans messages out to them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self._connections)

    async def register(self, websocket: WebSocket) -> None:
        """Accept ``websocket``, add it to the registry and greet it.

        Args:
            websocket: The incoming WebSocket connection.
        """
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("Real-time client connected (%d total)", len(self._connections))
        await websocket.send_text(ConnectedMessage().to_json())

    def unregister(self, websocket: WebSocket) -> None:
        """Remove ``websocket`` from the registry. Unknown sockets are ignored."""
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(
                "Real-time client disconnected (%d remaining)", len(self._connections)
            )

    async def handle_client_message(self, websocket: WebSocket, raw: str) -> None:
        """Respond to a message received from a client.

        ``subscribe`` requests are acknowledged with ``subscribed``. Anything
        that does not parse as a known request is logged and ignored.

        Args:
            websocket: The sending connection.
            raw: The raw text frame.
        """
        try:
            request = SubscribeRequest.model_validate_json(raw)
        except ValidationError:
            logger.debug("Ignoring unrecognised real-time client message: %.200s", raw)
            return
        await websocket.send_text(SubscribedMessage(panel_id=request.panel_id).to_json())

    async def broadcast(self, message: Envelope) -> int:
        """Send ``message`` to every connected client.

        Args:
            message: Any server message model.

        Returns:
            int: Number of clients the message was delivered to.
        """
        if not self._connections:
            return 0
        payload = message.to_json()
        delivered = 0
        for websocket in list(self._connections):
            if websocket.client_state is not WebSocketState.CONNECTED:
                continue
            try:
                await websocket.send_text(payload)
            except Exception:
                logger.warning("Dropping real-time client after failed send", exc_info=True)
                self._connections.discard(websocket)
                continue
            delivered += 1
        return delivered

    async def broadcast_sensor_update(self, snapshot: SensorSnapshot) -> int:
        return await self.broadcast(SensorUpdateMessage(data=snapshot))

    async def broadcast_alert(self, alert: Alert) -> int:
        return await self.broadcast(AlertMessage(data=alert))
