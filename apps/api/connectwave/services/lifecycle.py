"""Per-connection state and disconnect cleanup."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from .rooms import RoomRegistry

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]
RosterNotifier = Callable[[str], Awaitable[None]]


class ConnectionState(str, enum.Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTING = "disconnecting"
    CLOSED = "closed"


@dataclass(slots=True)
class Connection:
    """One client transport session."""

    connection_id: str
    send: SendCallable
    state: ConnectionState = ConnectionState.CONNECTED
    rooms: list[str] = field(default_factory=list)

    @property
    def is_live(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.JOINED)


class ConnectionLifecycle:
    """Track live connections and run the leave path for each of their rooms.

    ``notify`` is awaited with a room id whenever a departure leaves that room
    populated, so the remaining members get a fresh roster.
    """

    def __init__(self, registry: RoomRegistry, notify: RosterNotifier) -> None:
        self._registry = registry
        self._notify = notify
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def open(self, connection: Connection) -> None:
        if connection.connection_id in self._connections:
            raise ValueError(f"Connection id already in use: {connection.connection_id}")
        self._connections[connection.connection_id] = connection
        logger.info("Connection %s opened", connection.connection_id)

    def get(self, connection_id: str) -> Optional[Connection]:
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_live:
            return None
        return connection

    def joined(self, connection: Connection, room_id: str) -> None:
        if room_id not in connection.rooms:
            connection.rooms.append(room_id)
        connection.state = ConnectionState.JOINED

    async def leave(self, connection: Connection, room_id: str) -> bool:
        """Remove the connection from one room and notify whoever is left."""

        if room_id not in connection.rooms:
            return False
        connection.rooms.remove(room_id)
        if not connection.rooms and connection.state is ConnectionState.JOINED:
            connection.state = ConnectionState.CONNECTED

        await self._depart(connection, room_id)
        return True

    async def disconnect(self, connection: Connection) -> bool:
        """Run the disconnect path once; later calls are no-ops.

        Returns ``True`` only for the call that performed the cleanup.
        """

        if not connection.is_live:
            return False
        connection.state = ConnectionState.DISCONNECTING
        logger.info("Connection %s disconnecting from %d room(s)", connection.connection_id, len(connection.rooms))

        for room_id in list(connection.rooms):
            connection.rooms.remove(room_id)
            await self._depart(connection, room_id)

        self._connections.pop(connection.connection_id, None)
        connection.state = ConnectionState.CLOSED
        return True

    async def _depart(self, connection: Connection, room_id: str) -> None:
        self._registry.remove_participant(room_id, connection.connection_id)
        if room_id in self._registry:
            await self._notify(room_id)
        else:
            logger.info("Room %s emptied and discarded", room_id)
