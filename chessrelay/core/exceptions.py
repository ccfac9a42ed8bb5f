"""
Exceptions raised by the domain and service layers.

Every exception carries a message that is safe to show to a client; the API layer maps each type onto an HTTP status code.
"""


class GameError(Exception):
    """Top-level exception for anything that goes wrong while handling a game request."""


class InvalidRequestError(GameError):
    """Malformed identifiers or out-of-range fields. Raised before any session state is touched."""


class RepositoryError(GameError):
    """Storage layer could not find or write a record."""


class SessionNotFoundError(RepositoryError):
    """No live session with the requested game ID."""


class SessionFullError(GameError):
    """Two players already joined this session."""


class UnauthorizedError(GameError):
    """Credential does not match the color (or the game) it was presented for."""


class GameStateError(GameError):
    """Request does not fit the current status of the game."""


class GameUnavailableError(GameStateError):
    """Session is not accepting moves (still waiting for an opponent, or already finished)."""


class NotYourTurnError(GameStateError):
    """The requesting color is not the color to move."""


class IllegalMoveError(GameError):
    """The rules engine rejected the move."""


class RateLimitedError(GameError):
    """Caller exceeded the request budget for this kind of request."""
