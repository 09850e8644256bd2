"""
A single match: one board, two player slots, turn and rematch state.

Every public operation takes the match lock for its whole duration, so
two sockets (or a socket and a scheduled bot turn) submitting at the
same moment are applied one after the other and can never both see
"my turn".
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from shared.constants import BOT_NAME, BOT_PLAYER, PLAYER_NUMBERS, PLAYER_ONE, PLAYER_TWO
from shared.enums import ActionResult, GameMode, MatchStatus, RematchState

from .board import Board, CellPosition
from .bot import choose_column, opponent_of
from .outcomes import JoinOutcome, LeaveOutcome, MoveOutcome, RematchOutcome


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_REQUESTED_BY = {
    PLAYER_ONE: RematchState.PLAYER_ONE_REQUESTED,
    PLAYER_TWO: RematchState.PLAYER_TWO_REQUESTED,
}


@dataclass
class PlayerSlot:
    """Binds a player number to a connection (or to the bot)."""
    player_number: int
    connection_id: str | None
    name: str | None = None
    is_bot: bool = False

    def to_dict(self) -> dict:
        return {
            "player_number": self.player_number,
            "name": self.name,
            "is_bot": self.is_bot,
        }


@dataclass
class Match:
    """
    One game instance identified by its room code (or bot match id).

    Lifecycle: waiting_for_opponent -> playing -> won | draw, then back
    to playing on an agreed rematch, or abandoned when a side leaves.
    """

    match_id: str
    mode: GameMode = GameMode.PVP
    board: Board = field(default_factory=Board)
    current_player: int = PLAYER_ONE
    status: MatchStatus = MatchStatus.WAITING_FOR_OPPONENT
    winner: int | None = None
    winning_cells: list[CellPosition] = field(default_factory=list)
    rematch_state: RematchState = RematchState.NONE
    slots: dict[int, PlayerSlot] = field(default_factory=dict)
    generation: int = 0
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    last_activity: datetime = field(default_factory=utcnow)

    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_pvp(cls, match_id: str, connection_id: str, player_name: str | None = None) -> "Match":
        """New room with the creator as player 1, waiting for an opponent."""
        match = cls(match_id=match_id, mode=GameMode.PVP)
        match.slots[PLAYER_ONE] = PlayerSlot(PLAYER_ONE, connection_id, player_name)
        return match

    @classmethod
    def create_bot(cls, match_id: str, connection_id: str, player_name: str | None = None) -> "Match":
        """New match against the bot, already playing; the human moves first."""
        match = cls(match_id=match_id, mode=GameMode.BOT)
        match.slots[PLAYER_ONE] = PlayerSlot(PLAYER_ONE, connection_id, player_name)
        match.slots[BOT_PLAYER] = PlayerSlot(BOT_PLAYER, None, BOT_NAME, is_bot=True)
        match.status = MatchStatus.PLAYING
        match.started_at = utcnow()
        return match

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_bot_game(self) -> bool:
        return self.mode == GameMode.BOT

    @property
    def is_finished(self) -> bool:
        return self.status in (MatchStatus.WON, MatchStatus.DRAW)

    @property
    def is_abandoned(self) -> bool:
        return self.status == MatchStatus.ABANDONED

    def player_name(self, player_number: int) -> str | None:
        slot = self.slots.get(player_number)
        return slot.name if slot else None

    def human_player_numbers(self) -> list[int]:
        return [
            number for number, slot in sorted(self.slots.items())
            if not slot.is_bot
        ]

    @property
    def move_count(self) -> int:
        return self.board.piece_count()

    def duration_seconds(self, now: datetime | None = None) -> int:
        """Seconds since the current generation started."""
        if self.started_at is None:
            return 0
        return int(((now or utcnow()) - self.started_at).total_seconds())

    def idle_seconds(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.last_activity).total_seconds()

    # =========================================================================
    # Operations
    # =========================================================================

    def join(self, connection_id: str, player_name: str | None = None) -> JoinOutcome:
        """Fill slot 2 and start the game."""
        with self._lock:
            if self.status == MatchStatus.ABANDONED:
                return JoinOutcome.failure(ActionResult.GAME_NOT_IN_PROGRESS, "Room is closed")

            if self.is_bot_game or PLAYER_TWO in self.slots:
                return JoinOutcome.failure(ActionResult.ROOM_FULL, "Room is full")

            if self.slots[PLAYER_ONE].connection_id == connection_id:
                return JoinOutcome.failure(ActionResult.ROOM_FULL, "You are already in this room")

            self.slots[PLAYER_TWO] = PlayerSlot(PLAYER_TWO, connection_id, player_name)
            self.status = MatchStatus.PLAYING
            self.started_at = utcnow()
            self._touch()

            return JoinOutcome(player_number=PLAYER_TWO, message="Joined room")

    def submit_move(self, player_number: int, column: int) -> MoveOutcome:
        """Drop a piece for a player; validate first, then apply."""
        with self._lock:
            return self._apply_move(player_number, column)

    def play_bot_move(self, generation: int) -> MoveOutcome | None:
        """
        Let the bot take its turn.

        Returns None without touching anything when the turn this call was
        scheduled for is gone: the match ended, was abandoned or restarted,
        or it is not the bot's turn.
        """
        with self._lock:
            if (
                not self.is_bot_game
                or self.status != MatchStatus.PLAYING
                or self.current_player != BOT_PLAYER
                or self.generation != generation
            ):
                return None

            column = choose_column(self.board, BOT_PLAYER)
            if column is None:
                return None

            return self._apply_move(BOT_PLAYER, column)

    def request_rematch(self, player_number: int) -> RematchOutcome:
        """
        Record a rematch request.

        Against the bot one request is enough. In a pvp room the board is
        reset once both sides have asked.
        """
        with self._lock:
            if player_number not in self.slots or self.slots[player_number].is_bot:
                return RematchOutcome.failure(
                    ActionResult.MALFORMED_MESSAGE, "Unknown player"
                )

            if self.status == MatchStatus.ABANDONED:
                return RematchOutcome.failure(
                    ActionResult.GAME_NOT_IN_PROGRESS, "Room is closed"
                )

            if not self.is_finished:
                return RematchOutcome.failure(
                    ActionResult.GAME_STILL_IN_PROGRESS, "Game is still in progress"
                )

            self._touch()

            if self.is_bot_game:
                self._reset()
                return RematchOutcome(
                    accepted=True, requested_by=player_number, generation=self.generation
                )

            requested = _REQUESTED_BY[player_number]
            if self.rematch_state in (RematchState.NONE, requested):
                self.rematch_state = requested
                return RematchOutcome(
                    requested_by=player_number,
                    waiting_for=opponent_of(player_number),
                    generation=self.generation,
                )

            self._reset()
            return RematchOutcome(
                accepted=True, requested_by=player_number, generation=self.generation
            )

    def leave(self, player_number: int) -> LeaveOutcome:
        """
        A side leaves or drops. The match is terminal afterwards and the
        vacated slot can never be joined again.
        """
        with self._lock:
            if self.status == MatchStatus.ABANDONED:
                return LeaveOutcome.failure(
                    ActionResult.GAME_NOT_IN_PROGRESS, "Room is already closed"
                )

            if player_number not in self.slots:
                return LeaveOutcome.failure(ActionResult.MALFORMED_MESSAGE, "Unknown player")

            self.status = MatchStatus.ABANDONED
            self.rematch_state = RematchState.NONE
            self._touch()

            remaining = opponent_of(player_number)
            slot = self.slots.get(remaining)
            if slot is None or slot.is_bot:
                return LeaveOutcome(message="Room closed")

            return LeaveOutcome(notify_player=remaining, message="Opponent left")

    def abandon(self) -> list[int]:
        """
        Close the match from the outside (idle expiry).

        Returns:
            Human player numbers that were still attached
        """
        with self._lock:
            if self.status == MatchStatus.ABANDONED:
                return []
            self.status = MatchStatus.ABANDONED
            self.rematch_state = RematchState.NONE
            return self.human_player_numbers()

    def snapshot(self) -> dict:
        """Consistent copy of the match state."""
        with self._lock:
            return self.to_dict()

    # =========================================================================
    # Internals (lock held)
    # =========================================================================

    def _apply_move(self, player_number: int, column: int) -> MoveOutcome:
        if player_number not in PLAYER_NUMBERS:
            return MoveOutcome.failure(ActionResult.MALFORMED_MESSAGE, "Unknown player")

        if self.status != MatchStatus.PLAYING:
            return MoveOutcome.failure(
                ActionResult.GAME_NOT_IN_PROGRESS, "Game is not in progress"
            )

        if player_number != self.current_player:
            return MoveOutcome.failure(ActionResult.NOT_YOUR_TURN, "Not your turn")

        if not Board.is_valid_column(column):
            return MoveOutcome.failure(
                ActionResult.MALFORMED_MESSAGE, f"Column {column} is off the board"
            )

        row = self.board.drop(column, player_number)
        if row is None:
            return MoveOutcome.failure(ActionResult.COLUMN_FULL, f"Column {column} is full")

        self._touch()

        win = self.board.check_win(row, column, player_number)
        if win:
            self.status = MatchStatus.WON
            self.winner = player_number
            self.winning_cells = list(win.cells)
        elif self.board.check_draw():
            self.status = MatchStatus.DRAW
        else:
            self.current_player = opponent_of(player_number)

        return MoveOutcome(
            row=row,
            column=column,
            player_number=player_number,
            next_player=self.current_player,
            status=self.status,
            winner=self.winner or 0,
            winning_cells=list(self.winning_cells),
            generation=self.generation,
            bot_to_move=(
                self.is_bot_game
                and self.status == MatchStatus.PLAYING
                and self.current_player == BOT_PLAYER
            ),
        )

    def _reset(self) -> None:
        """Start a fresh generation in the same room with the same players."""
        self.board.reset()
        self.current_player = PLAYER_ONE
        self.status = MatchStatus.PLAYING
        self.winner = None
        self.winning_cells = []
        self.rematch_state = RematchState.NONE
        self.generation += 1
        self.started_at = utcnow()

    def _touch(self) -> None:
        self.last_activity = utcnow()

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "board": self.board.to_list(),
            "current_player": self.current_player,
            "winner": self.winner,
            "winning_cells": [cell.to_dict() for cell in self.winning_cells],
            "rematch_state": self.rematch_state.value,
            "generation": self.generation,
            "move_count": self.move_count,
            "players": [slot.to_dict() for _, slot in sorted(self.slots.items())],
        }
