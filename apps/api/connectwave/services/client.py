"""Async client for the signaling WebSocket.

Used by bots and integration tooling that take part in a room the same way a
browser does: it tracks its own connection id and the latest roster, and uses
the offer tie-break to decide which peers it must call.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable

import websockets
from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..schemas.signaling import ChatMessage, ParticipantView, frame
from .policy import offer_targets
from .rooms import Participant

EventHandler = Callable[[str, Any], Awaitable[None]]

logger = logging.getLogger(__name__)


def _as_participant(view: ParticipantView) -> Participant:
    return Participant(
        id=view.id,
        name=view.name,
        join_time=datetime.fromisoformat(view.join_time),
        is_sharing_screen=view.is_sharing_screen,
    )


class SignalingClient:
    """Handle lifespan of one signaling connection."""

    def __init__(self, ws: ClientConnection, on_event: EventHandler | None = None) -> None:
        self._ws = ws
        self._on_event = on_event
        self._receive_task: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self.connection_id: str | None = None
        self.roster: list[ParticipantView] = []
        self.messages: list[ChatMessage] = []

    async def __aenter__(self) -> "SignalingClient":
        self._receive_task = asyncio.create_task(self._receive_loop())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._receive_task:
            self._receive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._receive_task
        await self._ws.close()

    async def wait_connected(self, timeout: float = 5.0) -> str:
        """Wait for the server to announce this connection's id."""

        await asyncio.wait_for(self._connected.wait(), timeout)
        if self.connection_id is None:
            raise RuntimeError("Server did not announce a connection id")
        return self.connection_id

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        await self._ws.send(json.dumps(frame(event, data)))

    async def join_room(self, room_id: str, name: str) -> None:
        payload: dict[str, Any] = {"roomId": room_id, "name": name}
        if self.connection_id is not None:
            payload["id"] = self.connection_id
        await self.emit("join-room", payload)

    async def leave_room(self, room_id: str) -> None:
        await self.emit("leave-room", {"roomId": room_id})

    async def send_message(self, room_id: str, message: ChatMessage) -> None:
        await self.emit("send-message", {"roomId": room_id, "message": message.model_dump(by_alias=True)})

    async def set_sharing(self, room_id: str, sharing: bool) -> None:
        await self.emit("start-sharing" if sharing else "stop-sharing", {"roomId": room_id, "id": self.connection_id})

    async def send_offer(self, to: str, offer: Any) -> None:
        await self.emit("webrtc-offer", {"to": to, "offer": offer})

    async def send_answer(self, to: str, answer: Any) -> None:
        await self.emit("webrtc-answer", {"to": to, "answer": answer})

    async def send_candidate(self, to: str, candidate: Any) -> None:
        await self.emit("webrtc-ice-candidate", {"to": to, "candidate": candidate})

    def offer_targets(self, known_peers: Iterable[str] = ()) -> list[str]:
        """Peers in the current roster that this client must send the first offer to."""

        if self.connection_id is None:
            return []
        return offer_targets([_as_participant(view) for view in self.roster], self.connection_id, known_peers)

    def _apply(self, event: str, data: Any) -> None:
        if event == "connected":
            self.connection_id = data["id"]
            self._connected.set()
        elif event == "update-participants":
            self.roster = [ParticipantView.model_validate(item) for item in data]
        elif event == "update-messages":
            self.messages = [ChatMessage.model_validate(item) for item in data]
        elif event == "receive-message":
            self.messages.append(ChatMessage.model_validate(data))

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    payload = json.loads(raw)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON frame from server")
                    continue
                if not isinstance(payload, dict):
                    continue
                event = payload.get("event")
                data = payload.get("data")
                try:
                    self._apply(event, data)
                except (KeyError, TypeError, ValidationError) as exc:
                    logger.debug("Ignoring malformed %s frame from server: %s", event, exc)
                    continue
                if self._on_event:
                    await self._on_event(event, data)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            logger.info("Signaling connection closed: %s", exc)


@asynccontextmanager
async def connect(url: str, on_event: EventHandler | None = None) -> AsyncIterator[SignalingClient]:
    """Open a signaling connection, e.g. ``connect("ws://localhost:9002/ws")``."""

    async with websockets.connect(url) as ws:
        client = SignalingClient(ws, on_event=on_event)
        async with client:
            yield client
