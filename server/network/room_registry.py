"""
Room registry: the process-wide table of live matches.

Creates and removes matches, hands out room codes and pairs a joining
player into a waiting room. One instance is created at server start and
passed to the handlers that need it.
"""

import logging
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from server.config import settings
from server.game_engine import Match, Outcome
from shared.constants import BOT_MATCH_PREFIX, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from shared.enums import ActionResult, MatchStatus


logger = logging.getLogger(__name__)


def generate_room_code() -> str:
    """Random human-typeable room code."""
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def generate_bot_match_id() -> str:
    return f"{BOT_MATCH_PREFIX}{uuid.uuid4().hex[:12].upper()}"


def normalize_room_code(code: str) -> str:
    """Codes are typed by people: ignore case and surrounding spaces."""
    return code.strip().upper()


@dataclass
class RoomOutcome(Outcome):
    """Result of a registry operation."""
    match: Match | None = None
    player_number: int | None = None


class RoomRegistry:
    """
    Owns every live Match, keyed by room code or bot match id.

    Mutating operations are serialised by the registry lock. A match's
    own lock is only ever taken inside the registry lock, never the
    other way round.
    """

    def __init__(
        self,
        code_factory: Callable[[], str] | None = None,
        max_code_attempts: int | None = None
    ):
        # match_id -> Match
        self._matches: dict[str, Match] = {}

        self._code_factory = code_factory or generate_room_code
        self._max_code_attempts = max_code_attempts or settings.ROOM_CODE_ATTEMPTS

        self._lock = threading.Lock()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_room(self, connection_id: str, player_name: str | None = None) -> RoomOutcome:
        """
        Create a pvp room with the caller as player 1.

        Returns:
            RoomOutcome with the new match, or INTERNAL_FAULT if no free
            code was found within the retry bound
        """
        with self._lock:
            code = self._allocate_id(self._code_factory)
            if code is None:
                logger.error(
                    f"Could not allocate a room code after {self._max_code_attempts} attempts"
                )
                return RoomOutcome.failure(
                    ActionResult.INTERNAL_FAULT, "Could not allocate a room code"
                )

            match = Match.create_pvp(code, connection_id, player_name)
            self._matches[code] = match

        logger.info(f"Room {code} created by {connection_id}")

        return RoomOutcome(match=match, player_number=1, message="Room created")

    def create_bot_game(self, connection_id: str, player_name: str | None = None) -> RoomOutcome:
        """Create a match against the bot, already playing."""
        with self._lock:
            match_id = self._allocate_id(generate_bot_match_id)
            if match_id is None:
                return RoomOutcome.failure(
                    ActionResult.INTERNAL_FAULT, "Could not allocate a match id"
                )

            match = Match.create_bot(match_id, connection_id, player_name)
            self._matches[match_id] = match

        logger.info(f"Bot match {match_id} created by {connection_id}")

        return RoomOutcome(match=match, player_number=1, message="Bot game created")

    def _allocate_id(self, factory: Callable[[], str]) -> str | None:
        """Draw ids until one is free (registry lock held)."""
        for _ in range(self._max_code_attempts):
            candidate = factory()
            if candidate not in self._matches:
                return candidate
        return None

    # =========================================================================
    # Joining and Removal
    # =========================================================================

    def join_room(
        self,
        code: str,
        connection_id: str,
        player_name: str | None = None
    ) -> RoomOutcome:
        """Take the second slot of a waiting room."""
        code = normalize_room_code(code)

        with self._lock:
            match = self._matches.get(code)
            if match is None:
                return RoomOutcome.failure(ActionResult.ROOM_NOT_FOUND, "Room not found")

            joined = match.join(connection_id, player_name)

        if not joined.ok:
            return RoomOutcome.failure(joined.result, joined.message)

        logger.info(f"{connection_id} joined room {code}")

        return RoomOutcome(match=match, player_number=joined.player_number, message=joined.message)

    def find(self, match_id: str) -> Match | None:
        """Get a live match by room code or bot match id."""
        with self._lock:
            return self._matches.get(match_id) or self._matches.get(normalize_room_code(match_id))

    def remove(self, match: Match | str) -> bool:
        """
        Delete a match, freeing its code for reuse.

        Returns:
            True if the match was registered
        """
        match_id = match.match_id if isinstance(match, Match) else match

        with self._lock:
            removed = self._matches.pop(match_id, None)

        if removed:
            logger.info(f"Room {match_id} removed")
        return removed is not None

    def expire_idle(
        self,
        max_idle_seconds: float,
        now: datetime | None = None
    ) -> list[tuple[Match, list[int]]]:
        """
        Abandon and remove matches with no activity for max_idle_seconds.

        Returns:
            (match, attached human player numbers) for every expired match
        """
        expired = []

        with self._lock:
            for match_id, match in list(self._matches.items()):
                if match.idle_seconds(now) < max_idle_seconds:
                    continue
                players = match.abandon()
                del self._matches[match_id]
                expired.append((match, players))

        for match, _ in expired:
            logger.info(f"Room {match.match_id} expired after inactivity")

        return expired

    # =========================================================================
    # Statistics
    # =========================================================================

    def __len__(self) -> int:
        return len(self._matches)

    def __contains__(self, match_id: str) -> bool:
        return match_id in self._matches

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        with self._lock:
            matches = list(self._matches.values())

        return {
            "total_matches": len(matches),
            "waiting_rooms": sum(1 for m in matches if m.status == MatchStatus.WAITING_FOR_OPPONENT),
            "active_matches": sum(1 for m in matches if m.status == MatchStatus.PLAYING),
            "finished_matches": sum(1 for m in matches if m.is_finished),
            "bot_matches": sum(1 for m in matches if m.is_bot_game),
        }
