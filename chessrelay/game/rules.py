"""
Adapter around the python-chess library.

The rest of the package only sees the RulesEngine protocol: give it the move history of a game plus a candidate move,
get back the resulting position and, if the game just ended, how it ended.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import chess

from chessrelay.core.exceptions import IllegalMoveError
from chessrelay.core.shared_types import Color, OutcomeReason

STARTING_FEN = chess.STARTING_FEN
FIFTY_MOVE_HALFMOVES = 100

_TERMINATION_REASONS: dict[chess.Termination, OutcomeReason] = {
    chess.Termination.CHECKMATE: OutcomeReason.CHECKMATE,
    chess.Termination.STALEMATE: OutcomeReason.STALEMATE,
    chess.Termination.INSUFFICIENT_MATERIAL: OutcomeReason.INSUFFICIENT_MATERIAL,
    chess.Termination.SEVENTYFIVE_MOVES: OutcomeReason.FIFTY_MOVES,
    chess.Termination.FIVEFOLD_REPETITION: OutcomeReason.REPETITION,
}


@dataclass(frozen=True)
class Termination:
    reason: OutcomeReason
    winner: Optional[Color]


@dataclass(frozen=True)
class AppliedMove:
    """Result of a legal move."""

    fen: str
    uci: str
    san: str
    termination: Optional[Termination]


class RulesEngine(Protocol):
    """Chess legality, consumed as a black box by the session state machine."""

    def initial_fen(self) -> str:
        """Position every new game starts from."""
        ...

    def apply_move(
        self,
        moves: Sequence[str],
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> AppliedMove:
        """Play a candidate move after the given history. Raises IllegalMoveError if not allowed."""
        ...


class PythonChessRules:
    """RulesEngine implemented with python-chess.

    The board is rebuilt from the full move history on each call so repetition draws can be detected.
    """

    def __init__(self, starting_fen: str = STARTING_FEN) -> None:
        self.starting_fen = starting_fen

    def initial_fen(self) -> str:
        return self.starting_fen

    def apply_move(
        self,
        moves: Sequence[str],
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> AppliedMove:
        board = self.replay(moves)
        move = self._build_move(board, from_square, to_square, promotion)
        if move not in board.legal_moves:
            raise IllegalMoveError(f"Move not allowed: {from_square}{to_square}")

        san = board.san(move)
        board.push(move)
        return AppliedMove(
            fen=board.fen(),
            uci=move.uci(),
            san=san,
            termination=classify(board),
        )

    def replay(self, moves: Sequence[str]) -> chess.Board:
        """Board after playing the recorded UCI moves from the starting position."""
        board = chess.Board(self.starting_fen)
        for uci in moves:
            board.push_uci(uci)
        return board

    def _build_move(
        self,
        board: chess.Board,
        from_square: str,
        to_square: str,
        promotion: Optional[str],
    ) -> chess.Move:
        try:
            from_index = chess.parse_square(from_square)
            to_index = chess.parse_square(to_square)
        except ValueError as exc:
            raise IllegalMoveError(
                f"Cannot interpret {from_square!r} -> {to_square!r} as a move."
            ) from exc

        promotion_piece = None
        if promotion:
            if promotion.lower() not in ("n", "b", "r", "q"):
                raise IllegalMoveError(f"Cannot promote to {promotion!r}.")
            promotion_piece = chess.PIECE_SYMBOLS.index(promotion.lower())
        elif _is_promotion_push(board, from_index, to_index):
            # Clients that only send from/to squares get a queen.
            promotion_piece = chess.QUEEN

        return chess.Move(from_index, to_index, promotion=promotion_piece)


def classify(board: chess.Board) -> Optional[Termination]:
    """
    Terminal classification of a position, None while the game is ongoing.

    Threefold repetition and the fifty-move rule end the game as soon as the position on the board meets them,
    without waiting for a claim. A draw that could only be claimed with the next move does not count yet.
    """
    outcome = board.outcome()
    if outcome is None:
        if board.is_repetition(3):
            return Termination(reason=OutcomeReason.REPETITION, winner=None)
        if board.halfmove_clock >= FIFTY_MOVE_HALFMOVES:
            return Termination(reason=OutcomeReason.FIFTY_MOVES, winner=None)
        return None
    winner = None
    if outcome.winner is not None:
        winner = Color.WHITE if outcome.winner == chess.WHITE else Color.BLACK
    return Termination(reason=_TERMINATION_REASONS[outcome.termination], winner=winner)


def _is_promotion_push(board: chess.Board, from_index: int, to_index: int) -> bool:
    piece = board.piece_at(from_index)
    if piece is None or piece.piece_type != chess.PAWN:
        return False
    return chess.square_rank(to_index) in (0, 7)
