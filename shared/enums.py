"""
Enumerations used throughout the game.
"""
from enum import Enum, IntEnum, auto


class Cell(IntEnum):
    """Contents of a single board cell."""
    EMPTY = 0
    PLAYER_ONE = 1
    PLAYER_TWO = 2


class MatchStatus(str, Enum):
    """Lifecycle state of a match."""
    WAITING_FOR_OPPONENT = "waiting_for_opponent"
    PLAYING = "playing"
    WON = "won"
    DRAW = "draw"
    ABANDONED = "abandoned"


class GameMode(str, Enum):
    """Who occupies the second slot."""
    PVP = "pvp"
    BOT = "bot"


class RematchState(str, Enum):
    """Which side has asked for a rematch after a finished game."""
    NONE = "none"
    PLAYER_ONE_REQUESTED = "player_one_requested"
    PLAYER_TWO_REQUESTED = "player_two_requested"


class ActionResult(Enum):
    """Result of attempting an action."""
    SUCCESS = auto()
    ROOM_NOT_FOUND = auto()
    ROOM_FULL = auto()
    NOT_YOUR_TURN = auto()
    GAME_NOT_IN_PROGRESS = auto()
    GAME_STILL_IN_PROGRESS = auto()
    COLUMN_FULL = auto()
    NOT_IN_ROOM = auto()
    MALFORMED_MESSAGE = auto()
    INTERNAL_FAULT = auto()


class MessageType(str, Enum):
    """Types of messages between client and server."""
    # Lobby
    CREATE_ROOM = "create_room"
    ROOM_CREATED = "room_created"
    CREATE_BOT_GAME = "create_bot_game"
    JOIN_ROOM = "join_room"
    ROOM_JOINED = "room_joined"
    LEAVE_ROOM = "leave_room"

    # Game flow
    GAME_START = "game_start"
    MOVE = "move"
    MOVE_RESULT = "move_result"
    GAME_OVER = "game_over"

    # Rematch
    REMATCH_REQUEST = "rematch_request"
    REMATCH_WAITING = "rematch_waiting"
    REMATCH_ACCEPTED = "rematch_accepted"

    # Connection
    OPPONENT_LEFT = "opponent_left"
    PING = "ping"
    PONG = "pong"

    # Errors
    ERROR = "error"
