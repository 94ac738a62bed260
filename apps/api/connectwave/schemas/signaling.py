"""Wire contracts for the signaling WebSocket.

Every frame, in either direction, is a JSON object ``{"event": ..., "data": ...}``.
Inbound frames are parsed into a closed union keyed on ``event``; anything that
fails validation is dropped by the relay.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for payloads that use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    sender_id: str
    sender_name: str
    text: str
    timestamp: str


class JoinRoomData(WireModel):
    room_id: str
    name: str
    id: str | None = Field(default=None, description="Must match the sender's connection id when given")


class LeaveRoomData(WireModel):
    room_id: str


class SendMessageData(WireModel):
    room_id: str
    message: ChatMessage


class SharingData(WireModel):
    room_id: str
    id: str | None = None


class OfferData(WireModel):
    to: str
    offer: Any


class AnswerData(WireModel):
    to: str
    answer: Any


class IceCandidateData(WireModel):
    to: str
    candidate: Any


class JoinRoomEvent(BaseModel):
    event: Literal["join-room"]
    data: JoinRoomData


class LeaveRoomEvent(BaseModel):
    event: Literal["leave-room"]
    data: LeaveRoomData


class SendMessageEvent(BaseModel):
    event: Literal["send-message"]
    data: SendMessageData


class StartSharingEvent(BaseModel):
    event: Literal["start-sharing"]
    data: SharingData


class StopSharingEvent(BaseModel):
    event: Literal["stop-sharing"]
    data: SharingData


class OfferEvent(BaseModel):
    event: Literal["webrtc-offer"]
    data: OfferData


class AnswerEvent(BaseModel):
    event: Literal["webrtc-answer"]
    data: AnswerData


class IceCandidateEvent(BaseModel):
    event: Literal["webrtc-ice-candidate"]
    data: IceCandidateData


InboundEvent = Annotated[
    Union[
        JoinRoomEvent,
        LeaveRoomEvent,
        SendMessageEvent,
        StartSharingEvent,
        StopSharingEvent,
        OfferEvent,
        AnswerEvent,
        IceCandidateEvent,
    ],
    Field(discriminator="event"),
]

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


def parse_event(raw: str | bytes) -> InboundEvent:
    """Parse one inbound frame; raises ``pydantic.ValidationError`` on anything malformed."""

    return _inbound_adapter.validate_json(raw)


class ParticipantView(WireModel):
    """Roster entry as broadcast in ``update-participants``."""

    id: str
    name: str
    is_sharing_screen: bool = False
    join_time: str
    # The server never tracks these; clients own the real values.
    is_muted: bool = False
    is_camera_off: bool = False


def frame(event: str, data: Any) -> dict[str, Any]:
    """Build an outbound frame."""

    return {"event": event, "data": data}
