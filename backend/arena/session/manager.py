from __future__ import annotations

import contextlib
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from arena.logic.rng import MoveChooser, RandomMoveChooser
from arena.logic.settings import MatchSettings
from arena.messaging.types import (
    ErrorMessage,
    MatchStateMessage,
    PongMessage,
    SessionErrorCode,
)
from arena.session.broadcast import broadcast_to_players
from arena.session.controller import SessionController
from arena.session.exceptions import JoinRejectedError
from arena.session.scheduler import AsyncioTimerScheduler, TimerScheduler

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.result_reporter import ResultSink

logger = structlog.get_logger()

# application close code sent after a rejected join
JOIN_REJECTED_CLOSE_CODE = 4003


class SessionManager:
    """
    Registry of match sessions keyed by session id.

    Sessions are created on the first join for an unknown id (while capacity
    allows) and disposed as soon as their last slot is removed. All match
    logic lives in SessionController; this class only maps connections to
    sessions and reports protocol-level errors back to clients.
    """

    def __init__(
        self,
        settings: MatchSettings | None = None,
        *,
        scheduler: TimerScheduler | None = None,
        reporter: ResultSink | None = None,
        move_chooser_factory: Callable[[], MoveChooser] = RandomMoveChooser,
        max_capacity: int = 100,
    ) -> None:
        self._settings = settings or MatchSettings()
        self._scheduler = scheduler or AsyncioTimerScheduler()
        self._reporter = reporter
        self._move_chooser_factory = move_chooser_factory
        self._max_capacity = max_capacity
        self._connections: dict[str, ConnectionProtocol] = {}
        self._bindings: dict[str, str] = {}  # connection_id -> session_id
        self._sessions: dict[str, SessionController] = {}  # session_id -> controller

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)
        self._bindings.pop(connection.connection_id, None)

    def get_session(self, session_id: str) -> SessionController | None:
        return self._sessions.get(session_id)

    def is_joined(self, connection_id: str) -> bool:
        return connection_id in self._bindings

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def max_capacity(self) -> int:
        return self._max_capacity

    async def _send_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        await connection.send_message(ErrorMessage(code=code, message=message).model_dump())

    def _get_or_create_session(self, session_id: str) -> SessionController | None:
        controller = self._sessions.get(session_id)
        if controller is not None:
            return controller
        if len(self._sessions) >= self._max_capacity:
            return None
        chooser = self._move_chooser_factory()
        controller = SessionController(
            session_id,
            settings=self._settings,
            scheduler=self._scheduler,
            move_chooser=chooser,
            reporter=self._reporter,
            on_change=self._handle_session_change,
        )
        self._sessions[session_id] = controller
        logger.info("session created", session_id=session_id, seed=getattr(chooser, "seed", None))
        return controller

    def _discard_session(self, controller: SessionController) -> None:
        controller.dispose()
        if self._sessions.get(controller.session_id) is controller:
            del self._sessions[controller.session_id]
            logger.info("session discarded", session_id=controller.session_id)

    def _get_bound_session(self, connection_id: str) -> SessionController | None:
        session_id = self._bindings.get(connection_id)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    async def _handle_session_change(self, controller: SessionController) -> None:
        """Push the full match state to connected players; drop sessions with no slots left."""
        if controller.is_empty:
            self._discard_session(controller)
            return
        state = MatchStateMessage.model_validate(controller.snapshot().model_dump())
        await broadcast_to_players(controller.connected_players(), state.model_dump())

    # --- Client operations ---

    async def join(
        self,
        connection: ConnectionProtocol,
        identity: str,
        display_name: str = "",
        match_id: str | None = None,
    ) -> None:
        if self.is_joined(connection.connection_id):
            await self._send_error(
                connection,
                SessionErrorCode.ALREADY_JOINED,
                "connection has already joined a match",
            )
            return

        session_id = connection.session_id
        controller = self._get_or_create_session(session_id)
        if controller is None:
            await self._send_error(connection, SessionErrorCode.SERVER_AT_CAPACITY, "server is at capacity")
            await connection.close(code=JOIN_REJECTED_CLOSE_CODE, reason=SessionErrorCode.SERVER_AT_CAPACITY.value)
            return

        structlog.contextvars.bind_contextvars(session_id=session_id, identity=identity)
        try:
            await controller.join(connection, identity, display_name, match_id)
        except JoinRejectedError as e:
            if controller.is_empty:
                self._discard_session(controller)
            await self._send_error(connection, e.code, e.message)
            await connection.close(code=JOIN_REJECTED_CLOSE_CODE, reason=e.code.value)
            return

        self._bindings[connection.connection_id] = session_id

    async def reconnect(self, connection: ConnectionProtocol, identity: str) -> None:
        """Reclaim a disconnected slot from a connection that holds no slot yet."""
        if self.is_joined(connection.connection_id):
            await self._send_error(
                connection,
                SessionErrorCode.ALREADY_JOINED,
                "connection already holds a slot in a match",
            )
            return
        controller = self._sessions.get(connection.session_id)
        if controller is None or not await controller.reconnect(connection, identity):
            await self._send_error(
                connection,
                SessionErrorCode.RECONNECT_NO_SESSION,
                "no disconnected slot to reclaim for this identity",
            )
            return
        structlog.contextvars.bind_contextvars(session_id=connection.session_id, identity=identity)
        self._bindings[connection.connection_id] = connection.session_id

    async def leave(self, connection: ConnectionProtocol, *, consented: bool = True) -> None:
        """Release the connection's slot; a dropped socket passes consented=False."""
        controller = self._get_bound_session(connection.connection_id)
        self._bindings.pop(connection.connection_id, None)
        if controller is None:
            return
        await controller.leave(connection.connection_id, consented=consented)

    async def submit_choice(self, connection: ConnectionProtocol, move: Any) -> None:  # noqa: ANN401
        """Forward a move to the connection's session."""
        controller = await self._require_session(connection)
        if controller is not None:
            await controller.submit_choice(connection.connection_id, move)

    async def request_rematch(self, connection: ConnectionProtocol) -> None:
        """Ask the connection's session to start a new match."""
        controller = await self._require_session(connection)
        if controller is not None:
            await controller.request_rematch(connection.connection_id)

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage().model_dump())

    async def _require_session(self, connection: ConnectionProtocol) -> SessionController | None:
        controller = self._get_bound_session(connection.connection_id)
        if controller is None:
            await self._send_error(connection, SessionErrorCode.NOT_IN_MATCH, "join a match first")
        return controller

    async def close_session_on_error(self, connection: ConnectionProtocol) -> None:
        """
        Close all player connections of the session after an unrecoverable error.

        The WebSocket disconnect handlers will clean up session state when the
        connections close.
        """
        controller = self._get_bound_session(connection.connection_id)
        if controller is None:
            return
        for player in controller.connected_players():
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await player.connection.close(code=1011, reason="internal_error")

    async def shutdown(self) -> None:
        """Dispose every session and wait for in-flight result deliveries."""
        for controller in list(self._sessions.values()):
            controller.dispose()
        self._sessions.clear()
        self._bindings.clear()
        if self._reporter is not None:
            await self._reporter.aclose()
