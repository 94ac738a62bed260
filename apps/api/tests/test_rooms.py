from datetime import datetime, timezone

from connectwave.schemas.signaling import ChatMessage
from connectwave.services.rooms import JoinClock, Participant, RoomRegistry, format_join_time

T0 = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


def make_participant(participant_id: str, second: int = 0) -> Participant:
    return Participant(id=participant_id, name=participant_id.title(), join_time=T0.replace(second=second))


def make_message(message_id: str) -> ChatMessage:
    return ChatMessage(id=message_id, sender_id="a", sender_name="A", text="hi", timestamp="2025-03-01T09:31:00Z")


def test_ensure_room_is_idempotent() -> None:
    registry = RoomRegistry()

    first = registry.ensure_room("r1")
    second = registry.ensure_room("r1")

    assert first is second
    assert len(registry) == 1


def test_add_participant_keeps_order_and_ignores_duplicates() -> None:
    registry = RoomRegistry()

    assert registry.add_participant("r1", make_participant("a")) is True
    assert registry.add_participant("r1", make_participant("b", 1)) is True
    assert registry.add_participant("r1", make_participant("a", 5)) is False

    participants = registry.list_participants("r1")
    assert [participant.id for participant in participants] == ["a", "b"]
    assert participants[0].join_time == T0


def test_removing_last_participant_discards_room_and_history() -> None:
    registry = RoomRegistry()
    registry.add_participant("r1", make_participant("a"))
    registry.add_participant("r1", make_participant("b", 1))
    registry.append_message("r1", make_message("m1"))

    assert registry.remove_participant("r1", "a") is True
    assert "r1" in registry
    assert registry.list_messages("r1") == [make_message("m1")]

    assert registry.remove_participant("r1", "b") is True
    assert "r1" not in registry
    assert registry.list_messages("r1") == []

    registry.add_participant("r1", make_participant("c", 2))
    assert registry.list_messages("r1") == []
    assert [participant.id for participant in registry.list_participants("r1")] == ["c"]


def test_remove_from_unknown_room_is_noop() -> None:
    registry = RoomRegistry()

    assert registry.remove_participant("nowhere", "a") is False
    assert len(registry) == 0


def test_append_message_to_unknown_room_is_dropped() -> None:
    registry = RoomRegistry()

    assert registry.append_message("r1", make_message("m1")) is False
    assert "r1" not in registry


def test_snapshots_are_detached_from_registry() -> None:
    registry = RoomRegistry()
    registry.add_participant("r1", make_participant("a"))
    registry.append_message("r1", make_message("m1"))

    registry.list_participants("r1").clear()
    registry.list_messages("r1").append(make_message("m2"))

    assert len(registry.list_participants("r1")) == 1
    assert len(registry.list_messages("r1")) == 1


def test_set_sharing_and_roster_serialisation() -> None:
    registry = RoomRegistry()
    registry.add_participant("r1", make_participant("a"))

    assert registry.set_sharing("r1", "a", True) is True
    assert registry.set_sharing("r1", "ghost", True) is False

    assert registry.roster("r1") == [
        {
            "id": "a",
            "name": "A",
            "isSharingScreen": True,
            "joinTime": "2025-03-01T09:30:00.000Z",
            "isMuted": False,
            "isCameraOff": False,
        }
    ]


def test_format_join_time_uses_utc_milliseconds() -> None:
    value = datetime(2025, 3, 1, 9, 30, 0, 123456, tzinfo=timezone.utc)

    assert format_join_time(value) == "2025-03-01T09:30:00.123Z"


def test_join_clock_is_strictly_increasing_on_collisions() -> None:
    frozen = datetime(2025, 3, 1, 9, 30, 0, 500400, tzinfo=timezone.utc)
    clock = JoinClock(now=lambda: frozen)

    first, second, third = clock(), clock(), clock()

    assert first == datetime(2025, 3, 1, 9, 30, 0, 500000, tzinfo=timezone.utc)
    assert first < second < third
    assert format_join_time(second) == "2025-03-01T09:30:00.501Z"
    assert format_join_time(third) == "2025-03-01T09:30:00.502Z"
