"""
Outcome objects returned by match and registry operations.

Operations never raise for rule violations; they return an outcome
carrying an ActionResult code and a player-facing message.
"""
from dataclasses import dataclass, field

from shared.enums import ActionResult, MatchStatus

from .board import CellPosition


@dataclass
class Outcome:
    """Result of attempting an action."""
    result: ActionResult = ActionResult.SUCCESS
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.result == ActionResult.SUCCESS

    @property
    def code(self) -> str:
        """Wire name of the result code."""
        return self.result.name

    @classmethod
    def failure(cls, result: ActionResult, message: str) -> "Outcome":
        return cls(result=result, message=message)


@dataclass
class JoinOutcome(Outcome):
    """Result of taking the second slot of a match."""
    player_number: int | None = None


@dataclass
class MoveOutcome(Outcome):
    """
    Result of a drop.

    On success carries everything needed for a move_result broadcast
    and, when status is WON or DRAW, a game_over broadcast.
    """
    row: int | None = None
    column: int | None = None
    player_number: int | None = None
    next_player: int | None = None
    status: MatchStatus | None = None
    winner: int = 0
    winning_cells: list[CellPosition] = field(default_factory=list)
    generation: int = 0
    bot_to_move: bool = False

    @property
    def game_over(self) -> bool:
        return self.status in (MatchStatus.WON, MatchStatus.DRAW)

    @property
    def is_draw(self) -> bool:
        return self.status == MatchStatus.DRAW


@dataclass
class RematchOutcome(Outcome):
    """Result of asking for a rematch."""
    accepted: bool = False
    requested_by: int | None = None
    waiting_for: int | None = None
    generation: int = 0


@dataclass
class LeaveOutcome(Outcome):
    """Result of a side leaving; notify_player is the remaining human, if any."""
    notify_player: int | None = None
