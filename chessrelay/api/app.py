"""
FastAPI application factory for the chess relay server.

create_app() wires one registry, one channel manager and one set of services per application instance; nothing is
kept in module-level state, so tests can build as many isolated apps as they like.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chessrelay.api.routes import MOVE_BUCKET, SESSION_BUCKET, AppServices, router
from chessrelay.core.config import Settings
from chessrelay.core.exceptions import (
    GameError,
    GameStateError,
    IllegalMoveError,
    InvalidRequestError,
    RateLimitedError,
    RepositoryError,
    SessionFullError,
    SessionNotFoundError,
    UnauthorizedError,
)
from chessrelay.db.database import build_engine, open_session
from chessrelay.db.memory_repository import InMemorySessionRepository
from chessrelay.db.repository import SessionRepository
from chessrelay.db.sql_repository import SQLSessionRepository
from chessrelay.game.fairplay import FairplayTracker
from chessrelay.game.rules import PythonChessRules
from chessrelay.services.channels import ChannelManager
from chessrelay.services.multiplayer_service import MultiplayerService
from chessrelay.services.rate_limit import RateLimiter
from chessrelay.services.registry import SessionRegistry, TimeSource, wall_clock_ms
from chessrelay.services.single_player_service import SinglePlayerService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Most specific class wins (looked up along the exception's MRO).
ERROR_STATUS_CODES: dict[type[GameError], int] = {
    InvalidRequestError: 400,
    SessionNotFoundError: 404,
    RepositoryError: 500,
    UnauthorizedError: 403,
    SessionFullError: 409,
    GameStateError: 400,
    IllegalMoveError: 422,
    RateLimitedError: 429,
    GameError: 400,
}


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_repository(settings: Settings) -> SessionRepository:
    if settings.session_store == "sql":
        engine = build_engine(settings.database_url)
        return SQLSessionRepository(open_session(engine))
    return InMemorySessionRepository()


def build_services(settings: Settings, now: TimeSource = wall_clock_ms) -> AppServices:
    rules = PythonChessRules()
    registry = SessionRegistry(build_repository(settings), rules, now=now)
    return AppServices(
        settings=settings,
        registry=registry,
        multiplayer=MultiplayerService(
            registry,
            rules,
            FairplayTracker(settings.fast_move_threshold_ms),
            default_minutes=settings.default_minutes,
            default_increment=settings.default_increment,
        ),
        channels=ChannelManager(registry, settings.allowed_origins),
        single_player=SinglePlayerService(
            rules, search_budget=settings.bot_search_budget, now=now
        ),
        limiter=RateLimiter(
            {
                SESSION_BUCKET: settings.session_rate_limit,
                MOVE_BUCKET: settings.move_rate_limit,
            }
        ),
    )


async def sweep_once(services: AppServices) -> None:
    """
    One pass of housekeeping.
    ----
    1. end games whose player to move ran out of time and tell the subscribers
    2. drop sessions that saw no activity within the idle timeout and have nobody connected
    3. drop idle single-player games and stale rate-limit entries
    """
    flagged = services.multiplayer.flag_expired_sessions()
    messages = [(gid, services.multiplayer.state_message(gid)) for gid in flagged]
    for game_id, message in messages:
        services.channels.broadcast(game_id, message)

    timeout_ms = services.settings.idle_timeout_seconds * 1000
    for game_id in services.registry.idle_session_ids(timeout_ms):
        if not services.channels.has_subscribers(game_id):
            services.registry.delete_session(game_id)
    evicted = services.single_player.evict_idle(timeout_ms)
    if evicted:
        logger.info("Evicted %d idle single-player games", evicted)
    services.limiter.prune()


async def sweep_forever(services: AppServices) -> None:
    while True:
        await asyncio.sleep(services.settings.sweep_interval_seconds)
        try:
            await sweep_once(services)
        except Exception:
            logger.exception("Sweep failed")


def create_app(
    settings: Optional[Settings] = None,
    now: TimeSource = wall_clock_ms,
    run_sweeper: bool = True,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    services = build_services(settings, now=now)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(sweep_forever(services)) if run_sweeper else None
        logger.info(
            "Chess relay started (store: %s, allowed origins: %s)",
            settings.session_store,
            ",".join(settings.allowed_origins),
        )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            logger.info("Chess relay stopped")

    app = FastAPI(title="Chess Relay", version="1.0.0", lifespan=lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
        allow_credentials=True,
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GameError)
    async def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
        status_code = next(
            ERROR_STATUS_CODES[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS_CODES
        )
        if status_code >= 500:
            logger.error("Request to %s failed: %s", request.url.path, exc)
            return JSONResponse(status_code=status_code, content={"error": "Internal server error"})
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"] if part != "body")
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400, content={"error": f"Invalid request fields: {fields}"}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)
