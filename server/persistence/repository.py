"""
Repository layer for game statistics.

Records finished games and answers the leaderboard queries.
"""

from datetime import datetime, timezone

from server.persistence.database import Database, get_database
from server.persistence.models import (
    GameResultRecord,
    LeaderboardEntry,
    PlayerStats,
    DailyStats,
)


def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class StatsRepository:
    """
    Repository for win/loss aggregates.

    Only finished games are recorded; nothing about live matches is
    ever stored.
    """

    def __init__(self, database: Database | None = None):
        self.db = database or get_database()

    # =========================================================================
    # Recording
    # =========================================================================

    def record_result(self, record: GameResultRecord, date: str | None = None) -> GameResultRecord:
        """Store a finished game and fold it into the daily aggregates."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO game_results (
                    room_code, player1_name, player2_name, winner,
                    is_bot_game, duration_seconds, moves
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.room_code,
                    record.player1_name,
                    record.player2_name,
                    record.winner,
                    int(record.is_bot_game),
                    record.duration_seconds,
                    record.moves,
                )
            )
            record.id = cursor.lastrowid

            conn.execute(
                """
                INSERT INTO daily_stats (
                    date, total_games, bot_games, pvp_games,
                    player1_wins, player2_wins, draws, avg_duration_seconds
                )
                VALUES (?, 1, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    avg_duration_seconds = (avg_duration_seconds * total_games
                        + excluded.avg_duration_seconds) / (total_games + 1),
                    total_games = total_games + 1,
                    bot_games = bot_games + excluded.bot_games,
                    pvp_games = pvp_games + excluded.pvp_games,
                    player1_wins = player1_wins + excluded.player1_wins,
                    player2_wins = player2_wins + excluded.player2_wins,
                    draws = draws + excluded.draws
                """,
                (
                    date or today(),
                    int(record.is_bot_game),
                    int(not record.is_bot_game),
                    int(record.winner == 1),
                    int(record.winner == 2),
                    int(record.winner == 0),
                    float(record.duration_seconds),
                )
            )

        return record

    # =========================================================================
    # Queries
    # =========================================================================

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Top named players by wins, then by games played. The bot's seat is not ranked."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT name, SUM(wins) AS wins, SUM(games) AS games
                FROM (
                    SELECT player1_name AS name,
                           CASE WHEN winner = 1 THEN 1 ELSE 0 END AS wins,
                           1 AS games
                    FROM game_results
                    WHERE player1_name IS NOT NULL AND player1_name != ''

                    UNION ALL

                    SELECT player2_name AS name,
                           CASE WHEN winner = 2 THEN 1 ELSE 0 END AS wins,
                           1 AS games
                    FROM game_results
                    WHERE player2_name IS NOT NULL AND player2_name != ''
                      AND is_bot_game = 0
                )
                GROUP BY name
                ORDER BY wins DESC, games DESC, name ASC
                LIMIT ?
                """,
                (limit,)
            )

            return [
                LeaderboardEntry(name=row["name"], wins=row["wins"], games=row["games"])
                for row in cursor.fetchall()
            ]

    def get_player_stats(self, name: str) -> PlayerStats:
        """Aggregate record of one player across both seats."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT
                    COUNT(*) AS games,
                    SUM(CASE WHEN (player1_name = :name AND winner = 1)
                              OR (player2_name = :name AND winner = 2) THEN 1 ELSE 0 END) AS wins,
                    SUM(CASE WHEN winner = 0 THEN 1 ELSE 0 END) AS draws
                FROM game_results
                WHERE player1_name = :name
                   OR (player2_name = :name AND is_bot_game = 0)
                """,
                {"name": name}
            )
            row = cursor.fetchone()

        games = row["games"] or 0
        wins = row["wins"] or 0
        draws = row["draws"] or 0

        return PlayerStats(
            name=name,
            games=games,
            wins=wins,
            losses=games - wins - draws,
            draws=draws,
        )

    def get_recent_results(self, limit: int = 20) -> list[GameResultRecord]:
        """Most recently finished games, newest first."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM game_results ORDER BY id DESC LIMIT ?",
                (limit,)
            )
            return [GameResultRecord.from_row(dict(row)) for row in cursor.fetchall()]

    def get_daily_stats(self, date: str | None = None) -> DailyStats | None:
        """Aggregates for one day (default: today, UTC)."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM daily_stats WHERE date = ?",
                (date or today(),)
            )
            row = cursor.fetchone()

            if row:
                return DailyStats.from_row(dict(row))
            return None
