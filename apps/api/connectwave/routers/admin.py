"""Read-only admin endpoints for live rooms."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..schemas import admin as admin_schema
from ..services.signaling import SignalingRelay

router = APIRouter()


def get_relay(request: Request) -> SignalingRelay:
    return request.app.state.relay


@router.get("/rooms", response_model=admin_schema.RoomListResponse)
async def list_rooms(relay: SignalingRelay = Depends(get_relay)) -> admin_schema.RoomListResponse:
    """Return a summary of every room that currently has participants."""

    registry = relay.registry
    items = [
        admin_schema.RoomSummary(
            room_id=room_id,
            participant_count=len(registry.list_participants(room_id)),
            message_count=len(registry.list_messages(room_id)),
        )
        for room_id in registry.room_ids()
    ]
    return admin_schema.RoomListResponse(items=items, connection_count=len(relay.lifecycle))


@router.get("/rooms/{room_id}", response_model=admin_schema.RoomDetailResponse)
async def get_room(room_id: str, relay: SignalingRelay = Depends(get_relay)) -> admin_schema.RoomDetailResponse:
    """Return the roster of one room."""

    registry = relay.registry
    if room_id not in registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    return admin_schema.RoomDetailResponse(
        room_id=room_id,
        participants=[participant.to_view() for participant in registry.list_participants(room_id)],
        message_count=len(registry.list_messages(room_id)),
    )
