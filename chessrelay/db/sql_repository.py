"""Implementation of (Session)Repository using SQLAlchemy"""

from dataclasses import asdict
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from chessrelay.core.exceptions import RepositoryError
from chessrelay.core.models import (
    ClockModel,
    FairplayModel,
    OutcomeModel,
    PlayerModel,
    SessionModel,
)
from chessrelay.core.shared_types import Color
from chessrelay.db.schema import DBSession


class SQLSessionRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_session(self, session_id: str) -> SessionModel | None:
        """Get session by ID, if record exists."""
        session_db = self._fetch_session(session_id)
        if session_db:
            return self._to_model(session_db)
        return None

    def create_session(self, session_id: str, session: SessionModel) -> SessionModel:
        """Store a new session under an ID chosen by the caller and return the stored data."""
        if self._fetch_session(session_id) is not None:
            raise RepositoryError(f"Session with {session_id=} already exists.")

        session_db = DBSession(id=session_id)
        self._copy_into(session_db, session)
        self.db.add(session_db)
        self.db.commit()
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def update_session(
        self, session_id: str, session: SessionModel
    ) -> SessionModel | None:
        """Replace the stored state of an existing record."""
        session_db = self._fetch_session(session_id)
        if not session_db:
            return None
        self._copy_into(session_db, session)
        self.db.commit()
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def delete_session(self, session_id: str) -> SessionModel | None:
        """Remove a session's record."""
        session_db = self._fetch_session(session_id)
        if not session_db:
            return None
        session_model = self._to_model(session_db)
        self.db.delete(session_db)
        self.db.commit()
        return session_model

    def list_session_ids(self) -> list[str]:
        return list(self.db.scalars(select(DBSession.id)))

    def _fetch_session(self, session_id: str) -> DBSession | None:
        query = select(DBSession).where(DBSession.id == session_id)
        return self.db.scalar(query)

    def _copy_into(self, session_db: DBSession, session: SessionModel) -> None:
        """Write every field of the data transfer model onto the SQLAlchemy row."""
        session_db.fen = session.fen
        session_db.moves = list(session.moves)
        session_db.players = [asdict(player) for player in session.players]
        session_db.turn = session.turn
        session_db.status = session.status
        session_db.white_remaining_ms = session.clock.remaining_ms[Color.WHITE.value]
        session_db.black_remaining_ms = session.clock.remaining_ms[Color.BLACK.value]
        session_db.increment_ms = session.clock.increment_ms
        session_db.initial_ms = session.clock.initial_ms
        session_db.last_decision_at = session.clock.last_decision_at
        session_db.outcome_reason = session.outcome.reason if session.outcome else None
        session_db.outcome_winner = session.outcome.winner if session.outcome else None
        session_db.created_at = session.created_at
        session_db.last_activity_at = session.last_activity_at

    def _to_model(self, session_db: DBSession) -> SessionModel:
        """Convert SQLAlchemy model to data transfer model."""
        return SessionModel(
            fen=session_db.fen,
            moves=list(session_db.moves),
            players=[_player_from_json(player) for player in session_db.players],
            turn=session_db.turn,
            status=session_db.status,
            clock=ClockModel(
                remaining_ms={
                    Color.WHITE.value: session_db.white_remaining_ms,
                    Color.BLACK.value: session_db.black_remaining_ms,
                },
                increment_ms=session_db.increment_ms,
                initial_ms=session_db.initial_ms,
                last_decision_at=session_db.last_decision_at,
            ),
            outcome=(
                OutcomeModel(
                    reason=session_db.outcome_reason,
                    winner=session_db.outcome_winner,
                )
                if session_db.outcome_reason
                else None
            ),
            created_at=session_db.created_at,
            last_activity_at=session_db.last_activity_at,
        )


def _player_from_json(data: dict[str, Any]) -> PlayerModel:
    return PlayerModel(
        name=data["name"],
        color=data["color"],
        token=data["token"],
        fairplay=FairplayModel(**data.get("fairplay", {})),
    )
