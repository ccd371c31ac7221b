from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from arena.logic.settings import MatchSettings
from arena.messaging.router import MessageRouter
from arena.server.settings import ArenaServerSettings
from arena.server.websocket import websocket_endpoint
from arena.session.manager import SessionManager
from arena.session.result_reporter import ResultReporter
from arena.session.scheduler import AsyncioTimerScheduler
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "active_sessions": session_manager.session_count,
            "connections": session_manager.connection_count,
            "max_capacity": session_manager.max_capacity,
        },
    )


def build_session_manager(settings: ArenaServerSettings) -> SessionManager:
    """Wire a SessionManager from server settings: real clock, webhook reporter."""
    reporter = ResultReporter(
        settings.result_webhook_url,
        settings.result_webhook_secret,
        header_name=settings.result_webhook_header,
        timeout_seconds=settings.result_webhook_timeout_seconds,
    )
    if not reporter.enabled:
        logger.warning("RPS_RESULT_WEBHOOK_URL is not set, match results will not be reported")
    return SessionManager(
        MatchSettings.from_server_settings(settings),
        scheduler=AsyncioTimerScheduler(settings.tick_seconds),
        reporter=reporter,
        max_capacity=settings.max_capacity,
    )


def create_app(
    settings: ArenaServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ArenaServerSettings()

    if session_manager is None:
        session_manager = build_session_manager(settings)

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws/{session_id}", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        await session_manager.shutdown()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("arena server ready", max_capacity=settings.max_capacity, tick_seconds=settings.tick_seconds)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = ArenaServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
