"""
Server configuration loaded from environment variables.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Server configuration."""

    # Server settings
    HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("SERVER_PORT", "8080"))

    # Stats database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/four_rows.db"))
    LEADERBOARD_SIZE: int = int(os.getenv("LEADERBOARD_SIZE", "10"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Keepalive
    PING_INTERVAL: float = float(os.getenv("PING_INTERVAL", "30"))
    PING_TIMEOUT: float = float(os.getenv("PING_TIMEOUT", "10"))

    # Game settings
    BOT_MOVE_DELAY: float = float(os.getenv("BOT_MOVE_DELAY", "0.6"))
    ROOM_CODE_ATTEMPTS: int = int(os.getenv("ROOM_CODE_ATTEMPTS", "32"))
    IDLE_ROOM_TIMEOUT: float = float(os.getenv("IDLE_ROOM_TIMEOUT", "7200"))  # 2 hours
    CLEANUP_INTERVAL: float = float(os.getenv("CLEANUP_INTERVAL", "300"))  # 5 minutes

    # Game events (publishing is off while KAFKA_BROKERS is empty)
    KAFKA_BROKERS: str = os.getenv("KAFKA_BROKERS", "")
    KAFKA_TOPIC: str = os.getenv("KAFKA_TOPIC", "game-events")
    KAFKA_USERNAME: str = os.getenv("KAFKA_USERNAME", "")
    KAFKA_PASSWORD: str = os.getenv("KAFKA_PASSWORD", "")

    @classmethod
    def ensure_directories(cls) -> None:
        """Create necessary directories if they don't exist."""
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)


config = Config()
settings = config
