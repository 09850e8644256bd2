"""
Message handler for routing client messages to match operations.

Parses incoming messages, validates them, runs the matching registry or
match operation, and describes the outbound messages that result.
Handlers never wait on the network: they return a HandleResult and the
server queues its messages right away.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from server.game_engine import Match, MoveOutcome, Outcome
from server.network.connection_manager import ConnectionManager, PlayerConnection
from server.network.room_registry import RoomRegistry, normalize_room_code
from server.persistence import GameResultRecord
from shared.constants import (
    COLS,
    MAX_PLAYER_NAME_LENGTH,
    TEXT_REMATCH_ACCEPTED,
    TEXT_REMATCH_ACCEPTED_BOT,
    TEXT_REMATCH_OFFERED,
    TEXT_REMATCH_WAITING,
    TEXT_ROOM_EXPIRED,
    TEXT_ROOM_JOINED,
)
from shared.enums import ActionResult, MessageType
from shared.protocol import (
    Message,
    MalformedMessageError,
    ErrorMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    GameStartMessage,
    MoveResultMessage,
    GameOverMessage,
    RematchWaitingMessage,
    RematchAcceptedMessage,
    OpponentLeftMessage,
    PongMessage,
    parse_message,
)


logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """A message addressed to one connection."""
    connection: PlayerConnection
    message: Message


@dataclass
class BotTurn:
    """A bot move to play after the think delay."""
    match_id: str
    generation: int


@dataclass
class HandleResult:
    """Result of handling a message."""
    # Response to send back to the requesting connection (None if no response needed)
    response: Message | None = None
    # Messages for room members, sent in order after the response
    deliveries: list[Delivery] = field(default_factory=list)
    # Bot move to schedule, if the bot is now to move
    bot_turn: BotTurn | None = None
    # Finished game to hand to the stats store
    game_result: GameResultRecord | None = None


def error_result(outcome: Outcome) -> HandleResult:
    """Turn a failed outcome into an error response."""
    return HandleResult(response=ErrorMessage.create(outcome.message, outcome.code))


def error(result: ActionResult, message: str) -> HandleResult:
    return HandleResult(response=ErrorMessage.create(message, result.name))


class MessageHandler:
    """
    Routes incoming messages to registry and match operations.

    Each handler method returns a HandleResult containing:
    - A response for the requesting connection
    - Deliveries for the members of the room
    - A bot turn to schedule and a finished game to record, if any
    """

    def __init__(self, registry: RoomRegistry, connection_manager: ConnectionManager):
        self._registry = registry
        self._connections = connection_manager

    async def handle_message(
        self,
        connection: PlayerConnection,
        message: Message | str | bytes | dict
    ) -> HandleResult:
        """
        Handle an incoming message from a connection.

        Args:
            connection: The sending connection
            message: The message (Message object, JSON text, or dict)

        Returns:
            HandleResult with response and deliveries
        """
        try:
            if isinstance(message, (str, bytes)):
                message = parse_message(message)
            elif isinstance(message, dict):
                message = Message.from_dict(message)
        except MalformedMessageError as e:
            logger.warning(f"Malformed message from {connection.connection_id}: {e}")
            return error(ActionResult.MALFORMED_MESSAGE, str(e))

        handler = self._get_handler(message.type)
        if not handler:
            return error(
                ActionResult.MALFORMED_MESSAGE,
                f"Unsupported message type: {message.type.value}"
            )

        try:
            return await handler(connection, message)

        except MalformedMessageError as e:
            return error(ActionResult.MALFORMED_MESSAGE, str(e))

        except Exception as e:
            logger.exception(f"Error handling message {message.type.value}: {e}")
            return error(ActionResult.INTERNAL_FAULT, "Internal error")

    def _get_handler(self, message_type: MessageType):
        """Get the handler method for a message type."""
        handlers = {
            # Lobby
            MessageType.CREATE_ROOM: self._handle_create_room,
            MessageType.CREATE_BOT_GAME: self._handle_create_bot_game,
            MessageType.JOIN_ROOM: self._handle_join_room,
            MessageType.LEAVE_ROOM: self._handle_leave_room,

            # Game actions
            MessageType.MOVE: self._handle_move,
            MessageType.REMATCH_REQUEST: self._handle_rematch_request,

            # Keepalive
            MessageType.PING: self._handle_ping,
            MessageType.PONG: self._handle_pong,
        }
        return handlers.get(message_type)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _read_player_name(self, message: Message) -> str | None:
        """Optional display name; used as the stats identity."""
        name = message.data.get("player_name")
        if name is None:
            return None
        if not isinstance(name, str):
            raise MalformedMessageError("player_name must be a string")
        name = name.strip()[:MAX_PLAYER_NAME_LENGTH]
        return name or None

    def _get_bound_match(self, connection: PlayerConnection) -> tuple[Match | None, HandleResult | None]:
        """Get the match a connection is playing in, or an error result."""
        if not connection.in_room:
            return None, error(ActionResult.NOT_IN_ROOM, "You are not in a room")

        match = self._registry.find(connection.room_code)
        if match is None:
            return None, error(ActionResult.ROOM_NOT_FOUND, "Room no longer exists")

        return match, None

    def _to_players(self, match: Match, message_for: Any) -> list[Delivery]:
        """
        Address a message to every connected human in a match.

        message_for is either a Message or a callable taking the player
        number and returning that player's Message.
        """
        deliveries = []
        for player_number in match.human_player_numbers():
            connection = self._connections.get_player_connection(match.match_id, player_number)
            if connection is None:
                continue
            message = message_for(player_number) if callable(message_for) else message_for
            deliveries.append(Delivery(connection, message))
        return deliveries

    def _game_start_for(self, match: Match):
        """Per-player game_start messages built from one consistent snapshot."""
        state = match.snapshot()
        names = {player["player_number"]: player["name"] for player in state["players"]}

        def build(player_number: int) -> GameStartMessage:
            return GameStartMessage.create(
                room_code=match.match_id,
                player_number=player_number,
                current_player=state["current_player"],
                board=state["board"],
                player1_name=names.get(1),
                player2_name=names.get(2),
                is_bot_game=match.is_bot_game,
            )

        return build

    def _move_result(self, match: Match, outcome: MoveOutcome) -> HandleResult:
        """Broadcasts for an accepted move, plus game over when terminal."""
        result = HandleResult()

        result.deliveries.extend(self._to_players(match, MoveResultMessage.create(
            column=outcome.column,
            row=outcome.row,
            player_number=outcome.player_number,
            next_player=outcome.next_player,
        )))

        if outcome.game_over:
            result.deliveries.extend(self._to_players(match, GameOverMessage.create(
                winner=outcome.winner,
                winning_cells=[cell.to_dict() for cell in outcome.winning_cells],
                is_draw=outcome.is_draw,
            )))
            result.game_result = GameResultRecord(
                room_code=match.match_id,
                player1_name=match.player_name(1),
                player2_name=match.player_name(2),
                winner=outcome.winner,
                is_bot_game=match.is_bot_game,
                duration_seconds=match.duration_seconds(),
                moves=match.move_count,
            )
            logger.info(
                f"Room {match.match_id}: game over, "
                f"{'draw' if outcome.is_draw else f'player {outcome.winner} wins'}"
            )

        if outcome.bot_to_move:
            result.bot_turn = BotTurn(match.match_id, outcome.generation)

        return result

    async def _leave_current_room(self, connection: PlayerConnection) -> HandleResult:
        """
        Abandon the connection's current match, if any, and tell the
        remaining side. The room is removed and every member unbound.
        """
        result = HandleResult()
        if not connection.in_room:
            return result

        room_code = connection.room_code
        player_number = connection.player_number

        opponent = None
        match = self._registry.find(room_code)
        if match is not None:
            outcome = match.leave(player_number)
            self._registry.remove(match)
            if outcome.ok and outcome.notify_player is not None:
                opponent = self._connections.get_player_connection(room_code, outcome.notify_player)

        await self._connections.unbind_room(room_code)

        if opponent is not None and opponent is not connection:
            result.deliveries.append(Delivery(opponent, OpponentLeftMessage.create()))

        logger.info(f"Player {player_number} left room {room_code}")

        return result

    # =========================================================================
    # Lobby Handlers
    # =========================================================================

    async def _handle_create_room(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle create_room request."""
        player_name = self._read_player_name(message)

        result = await self._leave_current_room(connection)

        outcome = self._registry.create_room(connection.connection_id, player_name)
        if not outcome.ok:
            failed = error_result(outcome)
            failed.deliveries = result.deliveries
            return failed

        connection.player_name = player_name
        await self._connections.bind(connection, outcome.match.match_id, 1)

        result.response = RoomCreatedMessage.create(outcome.match.match_id)
        return result

    async def _handle_create_bot_game(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle create_bot_game request."""
        player_name = self._read_player_name(message)

        result = await self._leave_current_room(connection)

        outcome = self._registry.create_bot_game(connection.connection_id, player_name)
        if not outcome.ok:
            failed = error_result(outcome)
            failed.deliveries = result.deliveries
            return failed

        connection.player_name = player_name
        await self._connections.bind(connection, outcome.match.match_id, 1)

        result.response = self._game_start_for(outcome.match)(1)
        return result

    async def _handle_join_room(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle join_room request."""
        room_code = message.data.get("room_code")
        if not isinstance(room_code, str) or not room_code.strip():
            return error(ActionResult.MALFORMED_MESSAGE, "room_code is required")

        player_name = self._read_player_name(message)

        if connection.room_code == normalize_room_code(room_code):
            return error(ActionResult.ROOM_FULL, "You are already in this room")

        result = await self._leave_current_room(connection)

        outcome = self._registry.join_room(room_code, connection.connection_id, player_name)
        if not outcome.ok:
            failed = error_result(outcome)
            failed.deliveries = result.deliveries
            return failed

        match = outcome.match
        connection.player_name = player_name
        await self._connections.bind(connection, match.match_id, outcome.player_number)

        result.response = RoomJoinedMessage.create(
            match.match_id, outcome.player_number, TEXT_ROOM_JOINED
        )
        result.deliveries.extend(self._to_players(match, self._game_start_for(match)))

        return result

    async def _handle_leave_room(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle leave_room request."""
        if not connection.in_room:
            return error(ActionResult.NOT_IN_ROOM, "You are not in a room")

        return await self._leave_current_room(connection)

    # =========================================================================
    # Game Handlers
    # =========================================================================

    async def _handle_move(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle move request."""
        column = message.data.get("column")
        if isinstance(column, bool) or not isinstance(column, int):
            return error(ActionResult.MALFORMED_MESSAGE, "column must be an integer")
        if not 0 <= column < COLS:
            return error(ActionResult.MALFORMED_MESSAGE, f"column must be between 0 and {COLS - 1}")

        match, failed = self._get_bound_match(connection)
        if failed:
            return failed

        outcome = match.submit_move(connection.player_number, column)
        if not outcome.ok:
            return error_result(outcome)

        return self._move_result(match, outcome)

    async def _handle_rematch_request(self, connection: PlayerConnection, message: Message) -> HandleResult:
        """Handle rematch_request."""
        match, failed = self._get_bound_match(connection)
        if failed:
            return failed

        outcome = match.request_rematch(connection.player_number)
        if not outcome.ok:
            return error_result(outcome)

        result = HandleResult()

        if outcome.accepted:
            text = TEXT_REMATCH_ACCEPTED_BOT if match.is_bot_game else TEXT_REMATCH_ACCEPTED
            result.deliveries.extend(self._to_players(match, RematchAcceptedMessage.create(text)))
            result.deliveries.extend(self._to_players(match, self._game_start_for(match)))
            logger.info(f"Room {match.match_id}: rematch started (generation {outcome.generation})")
            return result

        result.response = RematchWaitingMessage.create(TEXT_REMATCH_WAITING, is_initiator=True)
        opponent = self._connections.get_player_connection(match.match_id, outcome.waiting_for)
        if opponent:
            result.deliveries.append(Delivery(
                opponent, RematchWaitingMessage.create(TEXT_REMATCH_OFFERED, is_initiator=False)
            ))

        logger.info(
            f"Room {match.match_id}: player {outcome.requested_by} requested rematch, waiting for opponent"
        )
        return result

    # =========================================================================
    # Keepalive Handlers
    # =========================================================================

    async def _handle_ping(self, connection: PlayerConnection, message: Message) -> HandleResult:
        return HandleResult(response=PongMessage.create())

    async def _handle_pong(self, connection: PlayerConnection, message: Message) -> HandleResult:
        # Activity was already recorded when the frame arrived
        return HandleResult()

    # =========================================================================
    # Server-initiated Events
    # =========================================================================

    async def handle_disconnect(self, connection: PlayerConnection) -> HandleResult:
        """A socket went away: abandon its match and tell the opponent."""
        return await self._leave_current_room(connection)

    async def handle_bot_turn(self, bot_turn: BotTurn) -> HandleResult:
        """Play a scheduled bot move if that turn still exists."""
        match = self._registry.find(bot_turn.match_id)
        if match is None:
            return HandleResult()

        outcome = match.play_bot_move(bot_turn.generation)
        if outcome is None:
            return HandleResult()

        if not outcome.ok:
            logger.warning(f"Bot move rejected in {bot_turn.match_id}: {outcome.message}")
            return HandleResult()

        return self._move_result(match, outcome)

    async def expire_idle_rooms(self, max_idle_seconds: float) -> HandleResult:
        """Close rooms nobody has touched for max_idle_seconds."""
        result = HandleResult()

        for match, _ in self._registry.expire_idle(max_idle_seconds):
            for member in await self._connections.unbind_room(match.match_id):
                result.deliveries.append(Delivery(
                    member,
                    ErrorMessage.create(TEXT_ROOM_EXPIRED, ActionResult.GAME_NOT_IN_PROGRESS.name),
                ))

        return result
