"""
Runtime configuration, read from CHESSRELAY_* environment variables.

Settings are passed explicitly to create_app(); nothing below reads the environment at import time.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Self

from chessrelay.core.exceptions import InvalidRequestError

ENV_PREFIX = "CHESSRELAY_"


@dataclass(frozen=True)
class RateLimit:
    """At most `max_requests` per `window_seconds` for one caller."""

    max_requests: int
    window_seconds: float

    @classmethod
    def parse(cls, value: str) -> Self:
        """Parse the '<requests>/<seconds>' notation, e.g. '20/60'."""
        try:
            requests, seconds = value.split("/")
            return cls(max_requests=int(requests), window_seconds=float(seconds))
        except ValueError as exc:
            raise InvalidRequestError(
                f"Cannot interpret rate limit {value!r}. Expected '<requests>/<seconds>'."
            ) from exc


@dataclass(frozen=True)
class Settings:
    allowed_origins: tuple[str, ...] = (
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    )
    session_store: str = "memory"
    database_url: str = "sqlite:///:memory:"
    idle_timeout_seconds: float = 3600.0
    sweep_interval_seconds: float = 30.0
    fast_move_threshold_ms: float = 1000.0
    default_minutes: int = 10
    default_increment: int = 0
    session_rate_limit: RateLimit = field(default_factory=lambda: RateLimit(20, 60.0))
    move_rate_limit: RateLimit = field(default_factory=lambda: RateLimit(10, 1.0))
    bot_search_budget: int = 64
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Build settings from the environment, falling back to the defaults above for anything unset."""
        env = os.environ if environ is None else environ

        def read(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        def number(name: str, cast: Callable[[str], Any], default: Any) -> Any:
            value = read(name)
            if value is None:
                return default
            try:
                return cast(value)
            except ValueError as exc:
                raise InvalidRequestError(
                    f"Cannot interpret {ENV_PREFIX}{name}={value!r} as a number."
                ) from exc

        defaults = cls()
        origins = read("ALLOWED_ORIGINS")
        session_store = read("SESSION_STORE") or defaults.session_store
        if session_store not in ("memory", "sql"):
            raise InvalidRequestError(
                f"Unknown session store {session_store!r}. Pick one from memory,sql"
            )
        session_rate = read("SESSION_RATE_LIMIT")
        move_rate = read("MOVE_RATE_LIMIT")

        return cls(
            allowed_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip())
                if origins
                else defaults.allowed_origins
            ),
            session_store=session_store,
            database_url=read("DATABASE_URL") or defaults.database_url,
            idle_timeout_seconds=number("IDLE_TIMEOUT_SECONDS", float, defaults.idle_timeout_seconds),
            sweep_interval_seconds=number("SWEEP_INTERVAL_SECONDS", float, defaults.sweep_interval_seconds),
            fast_move_threshold_ms=number("FAST_MOVE_THRESHOLD_MS", float, defaults.fast_move_threshold_ms),
            default_minutes=number("DEFAULT_MINUTES", int, defaults.default_minutes),
            default_increment=number("DEFAULT_INCREMENT", int, defaults.default_increment),
            session_rate_limit=(
                RateLimit.parse(session_rate)
                if session_rate
                else defaults.session_rate_limit
            ),
            move_rate_limit=(
                RateLimit.parse(move_rate) if move_rate else defaults.move_rate_limit
            ),
            bot_search_budget=number("BOT_SEARCH_BUDGET", int, defaults.bot_search_budget),
            log_level=(read("LOG_LEVEL") or defaults.log_level).upper(),
        )
