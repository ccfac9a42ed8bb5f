"""Protocol repository (in-memory dictionary by default, SQLAlchemy when sessions must be shared between processes)"""

from typing import Protocol

from chessrelay.core.models import SessionModel


class SessionRepository(Protocol):
    """Persistence layer orchestration"""

    def get_session(self, session_id: str) -> SessionModel | None:
        """Get session by ID, if record exists."""
        ...

    def create_session(self, session_id: str, session: SessionModel) -> SessionModel:
        """Store a new session under an ID chosen by the caller and return the stored data."""
        ...

    def update_session(
        self, session_id: str, session: SessionModel
    ) -> SessionModel | None:
        """Replace the stored state of an existing record."""
        ...

    def delete_session(self, session_id: str) -> SessionModel | None:
        """Remove a session's record."""
        ...

    def list_session_ids(self) -> list[str]:
        """IDs of all stored sessions."""
        ...
