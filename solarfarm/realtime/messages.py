"""
Real-time message types exchanged over the ``/api/realtime`` WebSocket.

Every message carries a ``type`` discriminator. Server-to-client messages:

- ``connected``: sent once right after the socket is accepted.
- ``subscribed``: acknowledgement of a client ``subscribe`` request.
- ``sensorUpdate``: one hardware-feed snapshot.
- ``alert``: a newly raised alert.
- ``aggregatedUpdate``: the farm summary produced by an ingestion tick.

Client-to-server messages: ``subscribe`` with an optional ``panelId``.

CHANGELOG:
- 2026-09-30: Require an explicit subscribe type (STORY-020)
- 2026-09-20: Initial creation (STORY-008)

TODO:
- None
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from solarfarm.models import Alert, CamelModel, FarmAggregate, SensorSnapshot, utc_now

CONNECTED_MESSAGE_TEXT = "Real-time connection established"


class Envelope(CamelModel):
    timestamp: datetime = Field(default_factory=utc_now)

    def to_json(self) -> str:
        """Serialise with camelCase keys, as clients expect."""
        return self.model_dump_json(by_alias=True)


class ConnectedMessage(Envelope):
    type: Literal["connected"] = "connected"
    message: str = CONNECTED_MESSAGE_TEXT


class SubscribedMessage(Envelope):
    type: Literal["subscribed"] = "subscribed"
    panel_id: str | None = None


class SensorUpdateMessage(Envelope):
    type: Literal["sensorUpdate"] = "sensorUpdate"
    data: SensorSnapshot


class AlertMessage(Envelope):
    type: Literal["alert"] = "alert"
    data: Alert


class AggregatedUpdateMessage(Envelope):
    type: Literal["aggregatedUpdate"] = "aggregatedUpdate"
    data: FarmAggregate


ServerMessage = Annotated[
    ConnectedMessage
    | SubscribedMessage
    | SensorUpdateMessage
    | AlertMessage
    | AggregatedUpdateMessage,
    Field(discriminator="type"),
]


class SubscribeRequest(CamelModel):
    type: Literal["subscribe"]
    panel_id: str | None = None


server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)
