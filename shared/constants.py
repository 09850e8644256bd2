"""
Game constants for Four in a Row.
Rows are numbered top (0) to bottom (5), columns left (0) to right (6).
"""

# Board
ROWS = 6
COLS = 7
CONNECT = 4

# Players
PLAYER_ONE = 1
PLAYER_TWO = 2
PLAYER_NUMBERS = (PLAYER_ONE, PLAYER_TWO)
BOT_PLAYER = PLAYER_TWO
BOT_NAME = "bot"
MAX_PLAYER_NAME_LENGTH = 32

# Win scan directions as (row step, column step), checked in this order.
WIN_DIRECTIONS = (
    (0, 1),    # horizontal
    (1, 0),    # vertical
    (1, 1),    # diagonal, top-left to bottom-right
    (1, -1),   # diagonal, top-right to bottom-left
)

# Bot positional preference, centre outwards
BOT_COLUMN_PREFERENCE = (3, 2, 4, 1, 5, 0, 6)

# Room codes (no I, O, 0 or 1 to avoid look-alikes)
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
BOT_MATCH_PREFIX = "BOT-"

# Player-facing texts
TEXT_ROOM_JOINED = "Joined room, game is starting"
TEXT_REMATCH_WAITING = "Waiting for opponent to accept rematch..."
TEXT_REMATCH_OFFERED = "Opponent requested a rematch!"
TEXT_REMATCH_ACCEPTED = "Both players agreed! Starting new game..."
TEXT_REMATCH_ACCEPTED_BOT = "Starting new game..."
TEXT_ROOM_EXPIRED = "room closed after inactivity"
