from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from arena.messaging.types import (
    ChoiceMessage,
    ErrorMessage,
    JoinMessage,
    LeaveMessage,
    PingMessage,
    ReconnectMessage,
    RematchMessage,
    SessionErrorCode,
    parse_client_message,
)

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes incoming messages to appropriate handlers.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            await self._dispatch(connection, message)
        except Exception:
            logger.exception("fatal error handling %s for %s", raw_message.get("type"), connection.connection_id)
            await self._session_manager.close_session_on_error(connection)
            await connection.close(code=1011, reason="internal_error")

    async def _dispatch(self, connection: ConnectionProtocol, message: Any) -> None:  # noqa: ANN401
        manager = self._session_manager
        if isinstance(message, JoinMessage):
            await manager.join(
                connection,
                identity=message.identity,
                display_name=message.display_name,
                match_id=message.match_id,
            )
        elif isinstance(message, LeaveMessage):
            await manager.leave(connection, consented=True)
        elif isinstance(message, ChoiceMessage):
            await manager.submit_choice(connection, message.move)
        elif isinstance(message, RematchMessage):
            await manager.request_rematch(connection)
        elif isinstance(message, ReconnectMessage):
            await manager.reconnect(connection, message.identity)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        # a dropped socket is an involuntary leave
        await self._session_manager.leave(connection, consented=False)
        self._session_manager.unregister_connection(connection)
