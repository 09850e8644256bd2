"""
Computer opponent.

Simple heuristic, re-evaluated from scratch every turn:
1) win now, 2) block the opponent's immediate win, 3) centre preference.
"""
import random

from shared.constants import BOT_COLUMN_PREFERENCE, PLAYER_ONE, PLAYER_TWO

from .board import Board


def opponent_of(player: int) -> int:
    """Get the other player number."""
    return PLAYER_TWO if player == PLAYER_ONE else PLAYER_ONE


def would_win(board: Board, column: int, player: int) -> bool:
    """
    Simulate dropping a piece and check if it completes a line.

    Works on a copy; the given board is never modified.
    """
    row = board.lowest_empty_row(column)
    if row is None:
        return False

    trial = board.copy()
    trial.drop(column, player)
    return trial.check_win(row, column, player) is not None


def choose_column(board: Board, bot_player: int, rng: random.Random | None = None) -> int | None:
    """
    Pick the bot's column.

    Args:
        board: Current board (not modified)
        bot_player: Player number the bot plays as
        rng: Random source for the last-resort fallback

    Returns:
        A column index, or None if every column is full
    """
    candidates = board.available_columns()
    if not candidates:
        return None

    # Priority 1: winning move
    for column in candidates:
        if would_win(board, column, bot_player):
            return column

    # Priority 2: block the opponent
    opponent = opponent_of(bot_player)
    for column in candidates:
        if would_win(board, column, opponent):
            return column

    # Priority 3: centre preference
    for column in BOT_COLUMN_PREFERENCE:
        if column in candidates:
            return column

    return (rng or random).choice(candidates)
