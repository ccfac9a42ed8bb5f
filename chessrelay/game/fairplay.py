"""Move-timing heuristics per player. Advisory only: nothing here can reject or delay a move."""

from dataclasses import dataclass
from typing import Self

from chessrelay.core.models import FairplayModel

DEFAULT_FAST_MOVE_THRESHOLD_MS = 1000.0


@dataclass
class FairplaySignals:
    move_count: int = 0
    fast_move_count: int = 0
    suspicion_score: int = 0

    @classmethod
    def from_model(cls, model: FairplayModel) -> Self:
        return cls(
            move_count=model.move_count,
            fast_move_count=model.fast_move_count,
            suspicion_score=model.suspicion_score,
        )

    def to_model(self) -> FairplayModel:
        return FairplayModel(
            move_count=self.move_count,
            fast_move_count=self.fast_move_count,
            suspicion_score=self.suspicion_score,
        )


class FairplayTracker:
    def __init__(self, fast_move_threshold_ms: float = DEFAULT_FAST_MOVE_THRESHOLD_MS) -> None:
        self.fast_move_threshold_ms = fast_move_threshold_ms

    def record(self, signals: FairplaySignals, think_time_ms: float) -> None:
        signals.move_count += 1
        if think_time_ms < self.fast_move_threshold_ms:
            signals.fast_move_count += 1
            signals.suspicion_score += 1
