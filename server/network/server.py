"""
WebSocket server for Four Rows.

Main entry point that ties together connection management, the room
registry, message handling and the stats store.
"""

import asyncio
import json
import logging
import signal
from http import HTTPStatus
from typing import Any

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from server.events import GameEventPublisher
from server.network.connection_manager import ConnectionManager, PlayerConnection
from server.network.message_handler import BotTurn, HandleResult, MessageHandler
from server.network.room_registry import RoomRegistry
from server.persistence import GameResultRecord, StatsRepository, init_database
from server.config import settings
from shared.protocol import PingMessage


logger = logging.getLogger(__name__)


class FourRowsServer:
    """
    WebSocket server for Four Rows matches.

    Handles client connections, routes messages, queues the resulting
    messages, schedules bot turns and sweeps idle rooms.
    """

    def __init__(
        self,
        host: str = None,
        port: int = None,
        db_path: str = None,
        bot_move_delay: float = None,
        ping_interval: float = None,
        ping_timeout: float = None,
        idle_timeout: float = None,
        cleanup_interval: float = None,
        events: GameEventPublisher = None,
    ):
        self.host = host or settings.HOST
        self.port = settings.PORT if port is None else port

        self.bot_move_delay = settings.BOT_MOVE_DELAY if bot_move_delay is None else bot_move_delay
        self.ping_interval = ping_interval or settings.PING_INTERVAL
        self.ping_timeout = ping_timeout or settings.PING_TIMEOUT
        self.idle_timeout = idle_timeout or settings.IDLE_ROOM_TIMEOUT
        self.cleanup_interval = cleanup_interval or settings.CLEANUP_INTERVAL

        # Initialize database
        db = init_database(db_path)
        self._repository = StatsRepository(db)
        self._events = events or GameEventPublisher()

        # Initialize managers
        self._connections = ConnectionManager()
        self._registry = RoomRegistry()
        self._handler = MessageHandler(self._registry, self._connections)

        # Server state
        self._server = None
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def repository(self) -> StatsRepository:
        return self._repository

    async def listen(self) -> None:
        """Bind the listening socket and start background tasks."""
        self._running = True
        self._shutdown_event.clear()

        self._server = await serve(
            self._handle_client,
            self.host,
            self.port,
            process_request=self._process_http_request,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
        )

        # Port 0 asks the OS for a free port
        for sock in self._server.sockets:
            self.port = sock.getsockname()[1]
            break

        await self._events.start()

        self._spawn(self._cleanup_loop())

        logger.info(f"Four Rows server started on ws://{self.host}:{self.port}")

    async def start(self) -> None:
        """Start the WebSocket server and serve until shutdown."""
        await self.listen()

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        logger.info("Shutting down server...")
        self._running = False

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._server:
            self._server.close()
            await self._server.wait_closed()

        await self._events.stop()

        self._shutdown_event.set()
        logger.info("Server stopped")

    def request_shutdown(self) -> None:
        """Request server shutdown (can be called from signal handler)."""
        self._spawn(self.stop(), track=False)

    def _spawn(self, coro, track: bool = True) -> asyncio.Task:
        task = asyncio.create_task(coro)
        if track:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return task

    # =========================================================================
    # Connections
    # =========================================================================

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """
        Handle a client connection.

        Every frame is handed to the message handler and the resulting
        messages are queued before the next frame is read.
        """
        connection = await self._connections.connect(websocket)
        writer = asyncio.create_task(self._connections.run_writer(connection))
        keepalive = asyncio.create_task(self._keepalive(connection))

        try:
            async for raw_message in websocket:
                if not self._running:
                    break

                connection.update_activity()
                result = await self._handler.handle_message(connection, raw_message)
                self._dispatch(connection, result)

        except ConnectionClosed:
            logger.debug(f"Connection closed for {connection.connection_id}")
        except Exception as e:
            logger.exception(f"Error handling client {connection.connection_id}: {e}")
        finally:
            keepalive.cancel()
            await self._handle_disconnect(connection)
            await writer

    async def _handle_disconnect(self, connection: PlayerConnection) -> None:
        """Abandon the connection's match and forget the connection."""
        result = await self._handler.handle_disconnect(connection)
        await self._connections.disconnect(connection.websocket)
        self._dispatch(None, result)

    async def _keepalive(self, connection: PlayerConnection) -> None:
        """Send application pings; close the socket when the peer goes quiet."""
        while True:
            await asyncio.sleep(self.ping_interval)

            if connection.silent_for() > self.ping_interval + self.ping_timeout:
                logger.info(f"Connection {connection.connection_id} timed out")
                await connection.websocket.close()
                return

            self._connections.send_to_connection(connection, PingMessage.create())

    # =========================================================================
    # Outbound
    # =========================================================================

    def _dispatch(self, connection: PlayerConnection | None, result: HandleResult) -> None:
        """
        Queue everything a HandleResult asks for.

        Runs without awaiting, so messages land in each outbox in the same
        order as the state changes that produced them.
        """
        if result.response and connection:
            self._connections.send_to_connection(connection, result.response)

        for delivery in result.deliveries:
            self._connections.send_to_connection(delivery.connection, delivery.message)

        if result.game_result:
            self._record_result(result.game_result)

        if result.bot_turn and self._running:
            self._spawn(self._play_bot_turn(result.bot_turn))

    def _record_result(self, record: GameResultRecord) -> None:
        """Store and publish a finished game. Failures are logged, never fatal."""
        try:
            self._repository.record_result(record)
        except Exception as e:
            logger.error(f"Failed to record result of {record.room_code}: {e}")

        if self._events.enabled:
            self._spawn(self._events.publish_game_completed(record))

    async def _play_bot_turn(self, bot_turn: BotTurn) -> None:
        await asyncio.sleep(self.bot_move_delay)
        result = await self._handler.handle_bot_turn(bot_turn)
        self._dispatch(None, result)

    async def _cleanup_loop(self) -> None:
        """Close rooms that have been idle for too long."""
        while self._running:
            await asyncio.sleep(self.cleanup_interval)
            try:
                result = await self._handler.expire_idle_rooms(self.idle_timeout)
                self._dispatch(None, result)
            except Exception as e:
                logger.exception(f"Error during idle room cleanup: {e}")

    # =========================================================================
    # HTTP
    # =========================================================================

    def _process_http_request(self, connection: ServerConnection, request: Request) -> Response | None:
        """Answer the plain HTTP endpoints; let everything else upgrade."""
        path = request.path.split("?", 1)[0]

        if path == "/api/leaderboard":
            try:
                entries = self._repository.get_leaderboard(settings.LEADERBOARD_SIZE)
            except Exception as e:
                logger.error(f"Failed to load leaderboard: {e}")
                return self._json_response(
                    connection, HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "leaderboard unavailable"}
                )
            return self._json_response(
                connection, HTTPStatus.OK, {"leaderboard": [entry.to_dict() for entry in entries]}
            )

        if path == "/api/health":
            return self._json_response(connection, HTTPStatus.OK, {"status": "ok", **self.get_stats()})

        return None

    @staticmethod
    def _json_response(connection: ServerConnection, status: HTTPStatus, body: dict) -> Response:
        response = connection.respond(status, json.dumps(body))
        del response.headers["Content-Type"]
        response.headers["Content-Type"] = "application/json"
        return response

    def get_stats(self) -> dict[str, Any]:
        """Get server statistics."""
        return {
            "running": self._running,
            "connections": self._connections.get_stats(),
            "rooms": self._registry.get_stats(),
        }


async def run_server(host: str = None, port: int = None, db_path: str = None) -> None:
    """
    Run the Four Rows server.

    Sets up signal handlers for graceful shutdown.
    """
    server = FourRowsServer(host, port, db_path)

    # Set up signal handlers
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, server.request_shutdown)

    try:
        await server.start()
    finally:
        # Clean up signal handlers
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def main():
    """Entry point for running the server."""
    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    settings.ensure_directories()

    print(f"Starting Four Rows server on ws://{settings.HOST}:{settings.PORT}")
    print("Press Ctrl+C to stop")

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped")


if __name__ == "__main__":
    main()
