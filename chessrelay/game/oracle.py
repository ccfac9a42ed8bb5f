"""
Naive move oracle for the single-player bot.

choose_move() is a pure function of its inputs: no module state, safe to call from any number of requests at once.
"""

import random
from typing import Optional

import chess

PIECE_VALUES: dict[chess.PieceType, int] = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}
MATE_SCORE = 100_000


def material_balance(board: chess.Board, color: chess.Color) -> int:
    """Material of `color` minus material of the opponent, in centipawns."""
    score = 0
    for piece in board.piece_map().values():
        value = PIECE_VALUES[piece.piece_type]
        score += value if piece.color == color else -value
    return score


def score_move(board: chess.Board, move: chess.Move) -> int:
    """One-ply evaluation of `move` from the point of view of the side playing it."""
    mover = board.turn
    board.push(move)
    try:
        if board.is_checkmate():
            return MATE_SCORE
        if board.is_stalemate() or board.is_insufficient_material():
            return 0
        return material_balance(board, mover)
    finally:
        board.pop()


def choose_move(
    fen: str, search_budget: int, rng: Optional[random.Random] = None
) -> Optional[str]:
    """
    Pick a reply for the side to move in `fen`, as UCI. None if there is no legal move.
    ----
    At most `search_budget` candidate moves are scored (sampled at random when there are more); the best score wins
    and ties are broken at random.
    """
    rng = rng or random.Random()
    board = chess.Board(fen)
    candidates = list(board.legal_moves)
    if not candidates:
        return None

    if search_budget > 0 and len(candidates) > search_budget:
        candidates = rng.sample(candidates, search_budget)

    scored = [(score_move(board, move), move) for move in candidates]
    best = max(score for score, _ in scored)
    return rng.choice([move for score, move in scored if score == best]).uci()
