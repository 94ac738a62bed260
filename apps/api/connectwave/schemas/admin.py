"""Schemas for the read-only room inspection API."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .signaling import ParticipantView


class RoomSummary(BaseModel):
    room_id: str
    participant_count: int = Field(..., ge=1)
    message_count: int = Field(..., ge=0)


class RoomListResponse(BaseModel):
    items: list[RoomSummary]
    connection_count: int = Field(..., ge=0, description="Live signaling connections, joined or not")


class RoomDetailResponse(BaseModel):
    room_id: str
    participants: list[ParticipantView]
    message_count: int = Field(..., ge=0)
