"""
SQLite access for the stats store.

Finished games are written from the event loop thread and, in tests,
from worker threads, so every thread gets its own connection.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from server.config import settings


STATS_TABLES = ("game_results", "daily_stats")

SCHEMA_SQL = """
-- One row per finished game generation (win or draw)
CREATE TABLE IF NOT EXISTS game_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    room_code TEXT NOT NULL,
    player1_name TEXT,
    player2_name TEXT,
    winner INTEGER NOT NULL DEFAULT 0,
    is_bot_game INTEGER NOT NULL DEFAULT 0,
    duration_seconds INTEGER NOT NULL DEFAULT 0,
    moves INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Per-day aggregates, upserted with every result
CREATE TABLE IF NOT EXISTS daily_stats (
    date TEXT PRIMARY KEY,
    total_games INTEGER NOT NULL DEFAULT 0,
    bot_games INTEGER NOT NULL DEFAULT 0,
    pvp_games INTEGER NOT NULL DEFAULT 0,
    player1_wins INTEGER NOT NULL DEFAULT 0,
    player2_wins INTEGER NOT NULL DEFAULT 0,
    draws INTEGER NOT NULL DEFAULT 0,
    avg_duration_seconds REAL NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_results_created ON game_results(created_at);
CREATE INDEX IF NOT EXISTS idx_results_p1 ON game_results(player1_name);
CREATE INDEX IF NOT EXISTS idx_results_p2 ON game_results(player2_name);
"""


class Database:
    """
    Owns the stats database file.

    The schema is created when the instance is built; connections are
    opened lazily, one per thread.
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = str(db_path or settings.DATABASE_PATH)
        self._local = threading.local()
        self._schema_lock = threading.Lock()
        self._schema_ready = False

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._create_schema()

    def _create_schema(self) -> None:
        with self._schema_lock:
            if self._schema_ready:
                return
            with self.get_connection() as conn:
                conn.executescript(SCHEMA_SQL)
            self._schema_ready = True

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Yield this thread's connection inside a transaction.

        Commits when the block exits normally, rolls back and re-raises
        otherwise.
        """
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._open()
            self._local.connection = conn

        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def close_connection(self) -> None:
        """Close the calling thread's connection, if it has one."""
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None

    def reset_database(self) -> None:
        """Drop all stats and start from an empty schema."""
        with self.get_connection() as conn:
            for table in STATS_TABLES:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.executescript(SCHEMA_SQL)


_default: Database | None = None


def get_database() -> Database:
    """Process-wide database at the configured path."""
    global _default
    if _default is None:
        _default = Database()
    return _default


def init_database(db_path: str | Path | None = None) -> Database:
    """Open the database at db_path and make it the process-wide one."""
    global _default
    _default = Database(db_path)
    return _default
