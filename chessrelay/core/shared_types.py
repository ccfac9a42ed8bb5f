"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    TERMINAL = "terminal"


class Color(StrEnum):
    WHITE = "w"
    BLACK = "b"

    @property
    def opposite(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class OutcomeReason(StrEnum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    FIFTY_MOVES = "fifty_moves"
    REPETITION = "repetition"
    TIMEOUT = "timeout"


# --- Join order decides colors: the first player to join gets white.
JOIN_ORDER: tuple[Color, Color] = (Color.WHITE, Color.BLACK)
