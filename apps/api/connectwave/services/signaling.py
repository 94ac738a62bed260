"""In-memory signaling relay: room membership, chat fan-out and WebRTC routing."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, assert_never

from pydantic import ValidationError

from ..schemas.signaling import (
    AnswerEvent,
    IceCandidateEvent,
    InboundEvent,
    JoinRoomData,
    JoinRoomEvent,
    LeaveRoomEvent,
    OfferEvent,
    SendMessageData,
    SendMessageEvent,
    SharingData,
    StartSharingEvent,
    StopSharingEvent,
    frame,
    parse_event,
)
from .lifecycle import Connection, ConnectionLifecycle
from .rooms import Participant, RoomRegistry

logger = logging.getLogger(__name__)


class SignalingRelay:
    """Route inbound client events to registry updates and outbound frames.

    Every mutation and the sends it triggers run under one lock, so each
    broadcast sees the registry as it was right after its own mutation and a
    peer receives frames in the order the relay handled the events.
    """

    def __init__(self, registry: RoomRegistry, *, emit_sharing_hints: bool = True) -> None:
        self.registry = registry
        self.lifecycle = ConnectionLifecycle(registry, notify=self._broadcast_roster)
        self._emit_sharing_hints = emit_sharing_hints
        self._lock = asyncio.Lock()

    async def connect(self, connection: Connection) -> None:
        """Register a connection and tell the client its id."""

        async with self._lock:
            self.lifecycle.open(connection)
            await self._deliver([connection], frame("connected", {"id": connection.connection_id}))

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            await self.lifecycle.disconnect(connection)

    async def receive(self, connection: Connection, raw: str | bytes) -> None:
        """Parse one raw frame and dispatch it; malformed frames are dropped."""

        try:
            event = parse_event(raw)
        except ValidationError as exc:
            logger.debug("Dropping malformed frame from %s: %d error(s)", connection.connection_id, exc.error_count())
            return
        await self.dispatch(connection, event)

    async def dispatch(self, connection: Connection, event: InboundEvent) -> None:
        async with self._lock:
            if not connection.is_live:
                return

            if isinstance(event, JoinRoomEvent):
                await self._join_room(connection, event.data)
            elif isinstance(event, LeaveRoomEvent):
                if not await self.lifecycle.leave(connection, event.data.room_id):
                    self._drop(connection, event.event, "not a member of the room")
            elif isinstance(event, SendMessageEvent):
                await self._send_message(connection, event.data)
            elif isinstance(event, StartSharingEvent):
                await self._set_sharing(connection, event.event, event.data, True)
            elif isinstance(event, StopSharingEvent):
                await self._set_sharing(connection, event.event, event.data, False)
            elif isinstance(event, OfferEvent):
                await self._forward(connection, event.event, event.data.to, "offer", event.data.offer)
            elif isinstance(event, AnswerEvent):
                await self._forward(connection, event.event, event.data.to, "answer", event.data.answer)
            elif isinstance(event, IceCandidateEvent):
                await self._forward(connection, event.event, event.data.to, "candidate", event.data.candidate)
            else:
                assert_never(event)

    async def _join_room(self, connection: Connection, data: JoinRoomData) -> None:
        if data.id is not None and data.id != connection.connection_id:
            self._drop(connection, "join-room", "id does not match connection")
            return

        room_id = data.room_id
        if self.registry.get_participant(room_id, connection.connection_id) is None:
            participant = Participant(id=connection.connection_id, name=data.name, join_time=self.registry.clock())
            self.registry.add_participant(room_id, participant)
            logger.info("User %s (%s) joined room %s", data.name, connection.connection_id, room_id)
        else:
            self.registry.ensure_room(room_id)
        self.lifecycle.joined(connection, room_id)

        await self._broadcast_roster(room_id)
        history = [message.model_dump(by_alias=True) for message in self.registry.list_messages(room_id)]
        await self._deliver([connection], frame("update-messages", history))

    async def _send_message(self, connection: Connection, data: SendMessageData) -> None:
        if not self.registry.append_message(data.room_id, data.message):
            self._drop(connection, "send-message", "unknown room")
            return
        await self._broadcast(
            data.room_id,
            frame("receive-message", data.message.model_dump(by_alias=True)),
            exclude=connection.connection_id,
        )

    async def _set_sharing(self, connection: Connection, event_name: str, data: SharingData, sharing: bool) -> None:
        if data.id is not None and data.id != connection.connection_id:
            self._drop(connection, event_name, "id does not match connection")
            return
        if not self.registry.set_sharing(data.room_id, connection.connection_id, sharing):
            self._drop(connection, event_name, "not a member of the room")
            return

        await self._broadcast_roster(data.room_id)
        if self._emit_sharing_hints:
            await self._broadcast(
                data.room_id,
                frame(event_name, {"id": connection.connection_id}),
                exclude=connection.connection_id,
            )

    async def _forward(self, connection: Connection, event_name: str, to: str, key: str, payload: Any) -> None:
        if to == connection.connection_id:
            self._drop(connection, event_name, "addressed to sender")
            return
        target = self.lifecycle.get(to)
        if target is None:
            self._drop(connection, event_name, "unknown target")
            return
        await self._deliver([target], frame(event_name, {"from": connection.connection_id, key: payload}))

    async def _broadcast_roster(self, room_id: str) -> None:
        await self._broadcast(room_id, frame("update-participants", self.registry.roster(room_id)))

    async def _broadcast(self, room_id: str, message: dict, *, exclude: str | None = None) -> None:
        recipients = []
        for participant in self.registry.list_participants(room_id):
            if participant.id == exclude:
                continue
            connection = self.lifecycle.get(participant.id)
            if connection is not None:
                recipients.append(connection)
        await self._deliver(recipients, message)

    async def _deliver(self, connections: Iterable[Connection], message: dict) -> None:
        targets = list(connections)
        if not targets:
            return

        results = await asyncio.gather(*(connection.send(message) for connection in targets), return_exceptions=True)
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Failed to deliver %s to %s: %s", message.get("event"), connection.connection_id, result
                )

    @staticmethod
    def _drop(connection: Connection, event_name: str, reason: str) -> None:
        logger.debug("Dropping %s from %s: %s", event_name, connection.connection_id, reason)
