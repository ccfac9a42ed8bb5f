"""Session registry: creation, lookup and removal of live multiplayer sessions."""

import logging
import secrets
import time
from typing import Callable

from chessrelay.core.exceptions import SessionNotFoundError
from chessrelay.db.repository import SessionRepository
from chessrelay.game.rules import RulesEngine
from chessrelay.game.session import Player, Session

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 3
MAX_ID_ATTEMPTS = 32

TimeSource = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000


def new_session_id() -> str:
    """6 uppercase hex characters drawn from the OS entropy source."""
    return secrets.token_hex(SESSION_ID_BYTES).upper()


class SessionRegistry:
    """Owns the mapping from session ID to session state (through the injected repository)."""

    def __init__(
        self,
        repository: SessionRepository,
        rules: RulesEngine,
        now: TimeSource = wall_clock_ms,
        id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self.repo = repository
        self.rules = rules
        self.now = now
        self.id_factory = id_factory

    def create_session(
        self, minutes: float, increment_seconds: float
    ) -> tuple[str, Session]:
        """New session in the waiting state under a fresh, unused ID."""
        session = Session.new_session(
            fen=self.rules.initial_fen(),
            minutes=minutes,
            increment_seconds=increment_seconds,
            now=self.now(),
        )
        session_id = self._unused_session_id()
        self.repo.create_session(session_id, session.to_model())
        logger.info(
            "Session %s created (%s min + %s s)", session_id, minutes, increment_seconds
        )
        return session_id, session

    def join_session(self, session_id: str, name: str) -> tuple[Session, Player]:
        session = self.get_session(session_id)
        player = session.join(name, self.now())
        self.save_session(session_id, session)
        logger.info(
            "Player %r joined session %s as %s (status: %s)",
            name,
            session_id,
            player.color,
            session.status,
        )
        return session, player

    def get_session(self, session_id: str) -> Session:
        model = self.repo.get_session(session_id)
        if model is None:
            raise SessionNotFoundError(f"Game {session_id} not found.")
        return Session.from_model(model)

    def save_session(self, session_id: str, session: Session) -> None:
        if self.repo.update_session(session_id, session.to_model()) is None:
            raise SessionNotFoundError(f"Game {session_id} not found.")

    def delete_session(self, session_id: str) -> bool:
        removed = self.repo.delete_session(session_id) is not None
        if removed:
            logger.info("Session %s removed", session_id)
        return removed

    def session_ids(self) -> list[str]:
        return self.repo.list_session_ids()

    def idle_session_ids(self, timeout_ms: float) -> list[str]:
        """Sessions without any activity during the last `timeout_ms`."""
        cutoff = self.now() - timeout_ms
        idle = []
        for session_id in self.repo.list_session_ids():
            model = self.repo.get_session(session_id)
            if model is not None and model.last_activity_at < cutoff:
                idle.append(session_id)
        return idle

    def _unused_session_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            session_id = self.id_factory()
            if self.repo.get_session(session_id) is None:
                return session_id
        raise RuntimeError("Could not allocate an unused game ID.")
