"""
Message protocol for client-server communication.

Inbound messages are flat JSON objects: {"type": ..., <fields>}.
Outbound messages wrap their fields: {"type": ..., "payload": {...}}.
"""

from dataclasses import dataclass, field
from typing import Any
import json

from shared.enums import MessageType


class MalformedMessageError(ValueError):
    """Raised when an inbound frame is not a valid protocol message."""


@dataclass
class Message:
    """Base message structure for all client-server communication."""
    type: MessageType
    data: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps(self.to_dict())

    def to_dict(self) -> dict:
        """Convert to the outbound wire shape."""
        return {
            "type": self.type.value,
            "payload": self.data,
        }

    @classmethod
    def from_json(cls, json_str: str | bytes) -> "Message":
        """Deserialize an inbound message from a JSON string."""
        try:
            raw = json.loads(json_str)
        except (ValueError, RecursionError) as e:
            raise MalformedMessageError(f"Invalid JSON: {e}") from e
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Any) -> "Message":
        """Create message from an inbound dictionary."""
        if not isinstance(raw, dict):
            raise MalformedMessageError("Message must be a JSON object")

        type_value = raw.get("type")
        if not isinstance(type_value, str):
            raise MalformedMessageError("Message type is required")

        try:
            message_type = MessageType(type_value)
        except ValueError:
            raise MalformedMessageError(f"Unknown message type: {type_value}") from None

        return cls(
            type=message_type,
            data={key: value for key, value in raw.items() if key != "type"},
        )


@dataclass
class ErrorMessage(Message):
    """Error response message."""
    type: MessageType = MessageType.ERROR

    @classmethod
    def create(cls, message: str, code: str = "INTERNAL_FAULT") -> "ErrorMessage":
        """Create an error message."""
        return cls(data={"message": message, "code": code})


# =============================================================================
# Lobby Messages (Server -> Client)
# =============================================================================

@dataclass
class RoomCreatedMessage(Message):
    """Sent to the creator of a room."""
    type: MessageType = MessageType.ROOM_CREATED

    @classmethod
    def create(cls, room_code: str) -> "RoomCreatedMessage":
        return cls(data={"room_code": room_code})


@dataclass
class RoomJoinedMessage(Message):
    """Sent to the player who joined a room."""
    type: MessageType = MessageType.ROOM_JOINED

    @classmethod
    def create(cls, room_code: str, player_number: int, message: str) -> "RoomJoinedMessage":
        return cls(data={
            "room_code": room_code,
            "player_number": player_number,
            "message": message,
        })


# =============================================================================
# Game Messages (Server -> Client)
# =============================================================================

@dataclass
class GameStartMessage(Message):
    """Sent to each side when a match (or a rematch generation) starts."""
    type: MessageType = MessageType.GAME_START

    @classmethod
    def create(
        cls,
        room_code: str,
        player_number: int,
        current_player: int,
        board: list[list[int]],
        player1_name: str | None,
        player2_name: str | None,
        is_bot_game: bool
    ) -> "GameStartMessage":
        return cls(data={
            "room_code": room_code,
            "player_number": player_number,
            "current_player": current_player,
            "board": board,
            "player1_name": player1_name,
            "player2_name": player2_name,
            "is_bot_game": is_bot_game,
        })


@dataclass
class MoveResultMessage(Message):
    """Broadcast after every accepted move."""
    type: MessageType = MessageType.MOVE_RESULT

    @classmethod
    def create(
        cls,
        column: int,
        row: int,
        player_number: int,
        next_player: int
    ) -> "MoveResultMessage":
        return cls(data={
            "column": column,
            "row": row,
            "player_number": player_number,
            "next_player": next_player,
            "valid": True,
        })


@dataclass
class GameOverMessage(Message):
    """Broadcast when a game ends in a win or a draw."""
    type: MessageType = MessageType.GAME_OVER

    @classmethod
    def create(
        cls,
        winner: int,
        winning_cells: list[dict],
        is_draw: bool
    ) -> "GameOverMessage":
        return cls(data={
            "winner": winner,
            "winning_cells": winning_cells,
            "is_draw": is_draw,
        })


@dataclass
class RematchWaitingMessage(Message):
    """Sent to both sides while only one has asked for a rematch."""
    type: MessageType = MessageType.REMATCH_WAITING

    @classmethod
    def create(cls, message: str, is_initiator: bool) -> "RematchWaitingMessage":
        return cls(data={
            "message": message,
            "is_initiator": is_initiator,
        })


@dataclass
class RematchAcceptedMessage(Message):
    """Broadcast once the rematch is agreed and the board is reset."""
    type: MessageType = MessageType.REMATCH_ACCEPTED

    @classmethod
    def create(cls, message: str) -> "RematchAcceptedMessage":
        return cls(data={"message": message})


# =============================================================================
# Connection Messages (Server -> Client)
# =============================================================================

@dataclass
class OpponentLeftMessage(Message):
    """Sent to the remaining side when the opponent leaves or drops."""
    type: MessageType = MessageType.OPPONENT_LEFT

    @classmethod
    def create(cls) -> "OpponentLeftMessage":
        return cls()


@dataclass
class PingMessage(Message):
    """Server-initiated keepalive."""
    type: MessageType = MessageType.PING

    @classmethod
    def create(cls) -> "PingMessage":
        return cls()


@dataclass
class PongMessage(Message):
    """Answer to a client-initiated keepalive."""
    type: MessageType = MessageType.PONG

    @classmethod
    def create(cls) -> "PongMessage":
        return cls()


# =============================================================================
# Helper function for parsing incoming messages
# =============================================================================

def parse_message(json_str: str | bytes) -> Message:
    """
    Parse a JSON text frame into a Message.

    Returns the base Message class. The message handler uses the
    type field to decide how to process it.

    Raises:
        MalformedMessageError: if the frame is not a known message
    """
    return Message.from_json(json_str)
