"""In-memory room registry: participants and chat history per room."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional

from ..schemas.signaling import ChatMessage, ParticipantView

Clock = Callable[[], datetime]

_ONE_MS = timedelta(milliseconds=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_join_time(value: datetime) -> str:
    """Render a join time as ISO-8601 UTC with millisecond precision, e.g. ``2025-01-01T09:30:00.125Z``."""

    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JoinClock:
    """Issue strictly increasing, millisecond-resolution join times."""

    def __init__(self, now: Clock = _utc_now) -> None:
        self._now = now
        self._last: Optional[datetime] = None

    def __call__(self) -> datetime:
        current = self._now().astimezone(timezone.utc)
        current = current.replace(microsecond=current.microsecond // 1000 * 1000)
        if self._last is not None and current <= self._last:
            current = self._last + _ONE_MS
        self._last = current
        return current


@dataclass(slots=True)
class Participant:
    """A connection listed in a room's roster."""

    id: str
    name: str
    join_time: datetime
    is_sharing_screen: bool = False

    def to_view(self) -> ParticipantView:
        return ParticipantView(
            id=self.id,
            name=self.name,
            is_sharing_screen=self.is_sharing_screen,
            join_time=format_join_time(self.join_time),
        )


@dataclass(slots=True)
class Room:
    room_id: str
    participants: Dict[str, Participant] = field(default_factory=dict)
    messages: List[ChatMessage] = field(default_factory=list)


class RoomRegistry:
    """Process-wide mapping of room id to roster and chat log.

    A room exists only while it has at least one participant. Rosters keep
    insertion order (dicts preserve it) and are unique by connection id.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._rooms: Dict[str, Room] = {}
        self.clock: Clock = clock or JoinClock()

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def room_ids(self) -> Iterator[str]:
        return iter(list(self._rooms))

    def ensure_room(self, room_id: str) -> Room:
        """Return the room, creating an empty one if needed."""

        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self._rooms[room_id] = room
        return room

    def add_participant(self, room_id: str, participant: Participant) -> bool:
        """Append a participant unless one with the same id is already listed."""

        room = self.ensure_room(room_id)
        if participant.id in room.participants:
            return False
        room.participants[participant.id] = participant
        return True

    def remove_participant(self, room_id: str, participant_id: str) -> bool:
        """Remove a participant; drop the room and its history once it is empty.

        Returns ``True`` if a participant was removed.
        """

        room = self._rooms.get(room_id)
        if room is None:
            return False
        removed = room.participants.pop(participant_id, None) is not None
        if not room.participants:
            del self._rooms[room_id]
        return removed

    def append_message(self, room_id: str, message: ChatMessage) -> bool:
        room = self._rooms.get(room_id)
        if room is None:
            return False
        room.messages.append(message)
        return True

    def get_participant(self, room_id: str, participant_id: str) -> Optional[Participant]:
        room = self._rooms.get(room_id)
        if room is None:
            return None
        return room.participants.get(participant_id)

    def set_sharing(self, room_id: str, participant_id: str, sharing: bool) -> bool:
        participant = self.get_participant(room_id, participant_id)
        if participant is None:
            return False
        participant.is_sharing_screen = sharing
        return True

    def list_participants(self, room_id: str) -> list[Participant]:
        room = self._rooms.get(room_id)
        if room is None:
            return []
        return list(room.participants.values())

    def list_messages(self, room_id: str) -> list[ChatMessage]:
        room = self._rooms.get(room_id)
        if room is None:
            return []
        return list(room.messages)

    def roster(self, room_id: str) -> list[dict]:
        """Serialise the room's roster in join order for ``update-participants``."""

        return [participant.to_view().model_dump(by_alias=True) for participant in self.list_participants(room_id)]
