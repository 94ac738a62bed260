"""Signaling WebSocket endpoint."""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.lifecycle import Connection
from ..services.signaling import SignalingRelay

logger = logging.getLogger(__name__)


def get_relay(websocket: WebSocket) -> SignalingRelay:
    return websocket.app.state.relay


async def _drain_outbox(websocket: WebSocket, outbox: asyncio.Queue[dict], connection_id: str) -> None:
    """Write queued frames to the socket in order until it fails."""

    while True:
        message = await outbox.get()
        try:
            await websocket.send_json(message)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Stopped writing to %s: %s", connection_id, exc)
            return


async def signaling_endpoint(websocket: WebSocket) -> None:
    """One client connection: JSON frames in, routed JSON frames out."""

    relay = get_relay(websocket)
    await websocket.accept()

    outbox: asyncio.Queue[dict] = asyncio.Queue()
    connection = Connection(connection_id=str(uuid4()), send=outbox.put)
    writer = asyncio.create_task(_drain_outbox(websocket, outbox, connection.connection_id))
    try:
        await relay.connect(connection)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await relay.receive(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await relay.disconnect(connection)
        writer.cancel()
        with suppress(asyncio.CancelledError):
            await writer
        logger.info("Connection %s closed", connection.connection_id)


def build_router(path: str) -> APIRouter:
    """Mount the signaling endpoint at ``path``."""

    router = APIRouter()
    router.add_api_websocket_route(path, signaling_endpoint)
    return router
