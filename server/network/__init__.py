"""
Network layer for the Four Rows server.

Provides the WebSocket server, room registry, connection management and
message handling.
"""

from server.network.connection_manager import ConnectionManager, PlayerConnection
from server.network.room_registry import RoomRegistry, RoomOutcome
from server.network.message_handler import MessageHandler, HandleResult, Delivery, BotTurn
from server.network.server import FourRowsServer, run_server


__all__ = [
    "ConnectionManager",
    "PlayerConnection",
    "RoomRegistry",
    "RoomOutcome",
    "MessageHandler",
    "HandleResult",
    "Delivery",
    "BotTurn",
    "FourRowsServer",
    "run_server",
]
