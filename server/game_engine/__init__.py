"""
Game engine package.
"""
from .board import Board, CellPosition, WinResult
from .bot import choose_column, opponent_of, would_win
from .outcomes import Outcome, JoinOutcome, MoveOutcome, RematchOutcome, LeaveOutcome
from .match import Match, PlayerSlot

__all__ = [
    "Board",
    "CellPosition",
    "WinResult",
    "choose_column",
    "opponent_of",
    "would_win",
    "Outcome",
    "JoinOutcome",
    "MoveOutcome",
    "RematchOutcome",
    "LeaveOutcome",
    "Match",
    "PlayerSlot",
]
