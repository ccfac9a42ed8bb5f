"""Implementation of (Session)Repository using a plain dictionary. Sessions live as long as the process does."""

from copy import deepcopy

from chessrelay.core.exceptions import RepositoryError
from chessrelay.core.models import SessionModel


class InMemorySessionRepository:
    """Data stored in a dictionary of session models, keyed by session ID."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionModel] = {}

    def get_session(self, session_id: str) -> SessionModel | None:
        """Get session by ID, if record exists."""
        stored = self._sessions.get(session_id)
        return deepcopy(stored) if stored is not None else None

    def create_session(self, session_id: str, session: SessionModel) -> SessionModel:
        """Store a new session under an ID chosen by the caller and return the stored data."""
        if session_id in self._sessions:
            raise RepositoryError(f"Session with {session_id=} already exists.")
        self._sessions[session_id] = deepcopy(session)
        return deepcopy(session)

    def update_session(
        self, session_id: str, session: SessionModel
    ) -> SessionModel | None:
        """Replace the stored state of an existing record."""
        if session_id not in self._sessions:
            return None
        self._sessions[session_id] = deepcopy(session)
        return deepcopy(session)

    def delete_session(self, session_id: str) -> SessionModel | None:
        """Remove a session's record."""
        return self._sessions.pop(session_id, None)

    def list_session_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def clear(self) -> None:
        self._sessions.clear()
