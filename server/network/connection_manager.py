"""
Connection manager for WebSocket clients.

Tracks connected clients and which room slot each one occupies.
Outbound messages go through a per-connection queue drained by a writer
task, so queuing a message never waits on the network and each peer
receives messages in the order they were queued.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from websockets.asyncio.server import ServerConnection

from shared.protocol import Message


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class PlayerConnection:
    """Tracks one socket and the room slot it is bound to."""
    connection_id: str
    websocket: ServerConnection
    player_name: str | None = None
    room_code: str | None = None
    player_number: int | None = None
    connected_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    last_seen: float = field(default_factory=time.monotonic)
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)
    closed: bool = False

    @property
    def in_room(self) -> bool:
        return self.room_code is not None

    def update_activity(self) -> None:
        """Record that the peer sent something."""
        self.last_activity = utcnow()
        self.last_seen = time.monotonic()

    def silent_for(self) -> float:
        """Seconds since the peer last sent a frame."""
        return time.monotonic() - self.last_seen


class ConnectionManager:
    """
    Manages WebSocket connections and connection-to-slot mappings.

    Provides methods for:
    - Tracking connections
    - Binding a connection to one room slot at a time
    - Queuing messages for a connection
    - Running the per-connection writer
    """

    def __init__(self):
        # websocket -> PlayerConnection
        self._connections: dict[ServerConnection, PlayerConnection] = {}

        # room_code -> {player_number: PlayerConnection}
        self._rooms: dict[str, dict[int, PlayerConnection]] = {}

        # Never held across an await
        self._lock = asyncio.Lock()

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self, websocket: ServerConnection) -> PlayerConnection:
        """Register a new connection."""
        async with self._lock:
            connection = PlayerConnection(
                connection_id=str(uuid.uuid4()),
                websocket=websocket,
            )
            self._connections[websocket] = connection

        logger.info(f"Connection {connection.connection_id} opened")

        return connection

    async def disconnect(self, websocket: ServerConnection) -> PlayerConnection | None:
        """
        Forget a connection and stop its writer. Its room binding is
        dropped too; the caller decides what happens to the match.
        """
        async with self._lock:
            connection = self._connections.pop(websocket, None)
            if connection:
                self._unbind_internal(connection)
                connection.closed = True
                connection.outbox.put_nowait(None)

        if connection:
            logger.info(f"Connection {connection.connection_id} closed")

        return connection

    # =========================================================================
    # Room Binding
    # =========================================================================

    async def bind(self, connection: PlayerConnection, room_code: str, player_number: int) -> None:
        """Bind a connection to a room slot, replacing any previous binding."""
        async with self._lock:
            self._unbind_internal(connection)
            connection.room_code = room_code
            connection.player_number = player_number
            self._rooms.setdefault(room_code, {})[player_number] = connection

        logger.debug(
            f"Connection {connection.connection_id} bound to {room_code} as player {player_number}"
        )

    async def unbind_room(self, room_code: str) -> list[PlayerConnection]:
        """
        Detach every connection from a room.

        Returns:
            The connections that were bound to it
        """
        async with self._lock:
            members = list(self._rooms.pop(room_code, {}).values())
            for connection in members:
                connection.room_code = None
                connection.player_number = None
            return members

    def _unbind_internal(self, connection: PlayerConnection) -> None:
        """Remove a binding (lock held)."""
        if connection.room_code is None:
            return

        members = self._rooms.get(connection.room_code)
        if members and members.get(connection.player_number) is connection:
            del members[connection.player_number]
            if not members:
                del self._rooms[connection.room_code]

        connection.room_code = None
        connection.player_number = None

    # =========================================================================
    # Queries
    # =========================================================================

    def get_player_connection(self, room_code: str, player_number: int) -> PlayerConnection | None:
        """Get the connection bound to a room slot."""
        return self._rooms.get(room_code, {}).get(player_number)

    # =========================================================================
    # Messaging
    # =========================================================================

    def send_to_connection(
        self,
        connection: PlayerConnection,
        message: Message | dict | str
    ) -> bool:
        """
        Queue a message for one connection.

        Returns:
            True if queued, False if the connection is already closed
        """
        if connection.closed:
            return False

        if isinstance(message, Message):
            data = message.to_json()
        elif isinstance(message, dict):
            data = json.dumps(message)
        else:
            data = message

        connection.outbox.put_nowait(data)
        return True

    async def run_writer(self, connection: PlayerConnection) -> None:
        """
        Drain a connection's queue onto its socket until it is closed.

        A failed send is not an error for the game: nothing is rolled back,
        the socket is closed and its reader runs the disconnect path.
        """
        while True:
            data = await connection.outbox.get()
            if data is None:
                return

            try:
                await connection.websocket.send(data)
            except Exception as e:
                logger.error(f"Failed to send to {connection.connection_id}: {e}")
                connection.closed = True
                await connection.websocket.close()
                return

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "connections_in_rooms": sum(len(members) for members in self._rooms.values()),
            "rooms_with_connections": len(self._rooms),
        }
