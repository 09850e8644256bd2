"""
Data models for database operations.

These are simple dataclasses that map to database rows,
separate from the game engine models.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any


@dataclass
class GameResultRecord:
    """Database representation of one finished game."""
    room_code: str
    player1_name: str | None
    player2_name: str | None
    winner: int  # 1, 2, or 0 for a draw
    is_bot_game: bool = False
    duration_seconds: int = 0
    moves: int = 0
    id: int | None = None
    created_at: datetime | None = None

    @property
    def is_draw(self) -> bool:
        return self.winner == 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "GameResultRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            room_code=row["room_code"],
            player1_name=row["player1_name"],
            player2_name=row["player2_name"],
            winner=row["winner"],
            is_bot_game=bool(row["is_bot_game"]),
            duration_seconds=row["duration_seconds"],
            moves=row["moves"],
            created_at=row["created_at"],
        )


@dataclass
class LeaderboardEntry:
    """Aggregate record of one named player."""
    name: str
    wins: int
    games: int

    @property
    def win_rate(self) -> float:
        return round(self.wins / self.games, 3) if self.games else 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "wins": self.wins,
            "games": self.games,
            "win_rate": self.win_rate,
        }


@dataclass
class PlayerStats:
    """Wins, losses and draws of one named player."""
    name: str
    games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyStats:
    """Per-day aggregates."""
    date: str
    total_games: int
    bot_games: int
    pvp_games: int
    player1_wins: int
    player2_wins: int
    draws: int
    avg_duration_seconds: float

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DailyStats":
        """Create from database row."""
        return cls(
            date=row["date"],
            total_games=row["total_games"],
            bot_games=row["bot_games"],
            pvp_games=row["pvp_games"],
            player1_wins=row["player1_wins"],
            player2_wins=row["player2_wins"],
            draws=row["draws"],
            avg_duration_seconds=row["avg_duration_seconds"],
        )

    def to_dict(self) -> dict:
        return asdict(self)
