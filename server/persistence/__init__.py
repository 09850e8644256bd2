"""
Persistence layer for the game server.

Provides SQLite-based storage for finished-game statistics.
"""

from server.persistence.database import (
    Database,
    get_database,
    init_database
)
from server.persistence.models import (
    GameResultRecord,
    LeaderboardEntry,
    PlayerStats,
    DailyStats
)
from server.persistence.repository import StatsRepository


__all__ = [
    # Database
    "Database",
    "get_database",
    "init_database",

    # Models
    "GameResultRecord",
    "LeaderboardEntry",
    "PlayerStats",
    "DailyStats",

    # Repository
    "StatsRepository"
]
