"""Tests for connection state transitions and disconnect cleanup."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from connectwave.services.lifecycle import Connection, ConnectionLifecycle, ConnectionState
from connectwave.services.rooms import Participant, RoomRegistry

T0 = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


async def _noop_send(message: dict) -> None:
    return None


class Recorder:
    def __init__(self) -> None:
        self.rooms: list[str] = []

    async def __call__(self, room_id: str) -> None:
        self.rooms.append(room_id)


def _seat(registry: RoomRegistry, lifecycle: ConnectionLifecycle, connection: Connection, room_id: str) -> None:
    registry.add_participant(room_id, Participant(id=connection.connection_id, name="x", join_time=T0))
    lifecycle.joined(connection, room_id)


@pytest.mark.asyncio
async def test_state_machine_runs_disconnect_once():
    registry = RoomRegistry()
    notify = Recorder()
    lifecycle = ConnectionLifecycle(registry, notify)
    alice = Connection("alice", _noop_send)
    bob = Connection("bob", _noop_send)
    lifecycle.open(alice)
    lifecycle.open(bob)
    assert alice.state is ConnectionState.CONNECTED

    _seat(registry, lifecycle, alice, "shared")
    _seat(registry, lifecycle, alice, "solo")
    _seat(registry, lifecycle, bob, "shared")
    assert alice.state is ConnectionState.JOINED

    assert await lifecycle.disconnect(alice) is True
    assert await lifecycle.disconnect(alice) is False

    assert alice.state is ConnectionState.CLOSED
    assert alice.rooms == []
    assert notify.rooms == ["shared"]
    assert "solo" not in registry
    assert [participant.id for participant in registry.list_participants("shared")] == ["bob"]
    assert lifecycle.get("alice") is None
    assert lifecycle.get("bob") is bob
    assert len(lifecycle) == 1


@pytest.mark.asyncio
async def test_leave_returns_to_connected_when_no_rooms_remain():
    registry = RoomRegistry()
    notify = Recorder()
    lifecycle = ConnectionLifecycle(registry, notify)
    alice = Connection("alice", _noop_send)
    lifecycle.open(alice)
    _seat(registry, lifecycle, alice, "r1")

    assert await lifecycle.leave(alice, "r1") is True
    assert await lifecycle.leave(alice, "r1") is False

    assert alice.state is ConnectionState.CONNECTED
    assert "r1" not in registry
    assert notify.rooms == []


def test_open_rejects_duplicate_ids():
    lifecycle = ConnectionLifecycle(RoomRegistry(), Recorder())
    lifecycle.open(Connection("dup", _noop_send))

    with pytest.raises(ValueError):
        lifecycle.open(Connection("dup", _noop_send))
