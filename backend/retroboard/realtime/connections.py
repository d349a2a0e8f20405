"""Websocket fan-out of board channels and the server-side publish relay."""

from typing import Any, Callable

import structlog
from fastapi import WebSocket

from retroboard.exceptions import MessageValidationError
from retroboard.realtime.broker import Broker, Publisher, broker
from retroboard.realtime.events import MessageHeaders, RealtimeMessage, board_channel
from retroboard.realtime.schemas import VoteEvent
from retroboard.realtime.validator import MessageValidator

logger = structlog.get_logger()

_validator = MessageValidator()


async def relay_message(
    publisher: Publisher,
    board_id: str,
    user_id: str,
    kind: str,
    payload: Any,
) -> RealtimeMessage:
    """Validate a client frame and publish it on the board channel.

    ``headers.user`` is always the authenticated user, whatever the client
    sent, and a vote may only be cast in the sender's own name.

    Raises:
        UnknownMessageKindError: ``kind`` is not a board event.
        MessageValidationError: the payload does not match its kind.
    """
    validated = _validator.validate(kind, payload)
    if isinstance(validated, VoteEvent) and validated.user_id != user_id:
        raise MessageValidationError(
            kind,
            [{"field": "userId", "message": "must match the sending user", "type": "value_error"}],
        )

    message = RealtimeMessage(
        kind=kind,
        headers=MessageHeaders(user=user_id),
        payload=validated.to_wire(),
    )
    await publisher.publish(board_channel(board_id), message)
    logger.debug("message_relayed", board_id=board_id, user_id=user_id, kind=kind)
    return message


class ConnectionManager:
    """Tracks websocket connections per board and forwards channel traffic."""

    def __init__(self, bus: Broker | None = None):
        self.bus = bus or broker
        # Map of board_id -> set of websocket connections
        self.board_connections: dict[str, set[WebSocket]] = {}
        # Map of websocket -> connected user_id
        self.connection_users: dict[WebSocket, str] = {}
        self._unsubscribers: dict[WebSocket, Callable[[], None]] = {}

    async def connect(self, websocket: WebSocket, board_id: str, user_id: str) -> None:
        """Accept the socket and subscribe it to the board channel."""
        await websocket.accept()

        self.board_connections.setdefault(board_id, set()).add(websocket)
        self.connection_users[websocket] = user_id

        async def forward(message: RealtimeMessage) -> None:
            await websocket.send_json(message.to_wire())

        self._unsubscribers[websocket] = self.bus.subscribe(board_channel(board_id), forward)
        logger.info("websocket_connected", board_id=board_id, user_id=user_id)

    def disconnect(self, websocket: WebSocket, board_id: str) -> None:
        unsubscribe = self._unsubscribers.pop(websocket, None)
        if unsubscribe is not None:
            unsubscribe()

        user_id = self.connection_users.pop(websocket, None)
        connections = self.board_connections.get(board_id)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.board_connections[board_id]
        logger.info("websocket_disconnected", board_id=board_id, user_id=user_id)

    def get_board_users(self, board_id: str) -> list[str]:
        """Users currently connected to a board, without duplicates."""
        users = {
            self.connection_users[conn]
            for conn in self.board_connections.get(board_id, set())
            if conn in self.connection_users
        }
        return sorted(users)


# Global connection manager instance
manager = ConnectionManager()
