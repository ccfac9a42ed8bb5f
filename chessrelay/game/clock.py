"""Dual chess clock with Fischer increment, evaluated lazily.

No timer runs in the background: the time of the color to move is computed from the timestamp of the last decision
whenever somebody asks (a move request, a state snapshot, the idle sweeper).
"""

from dataclasses import dataclass
from typing import Optional, Self

from chessrelay.core.models import ClockModel
from chessrelay.core.shared_types import Color

MS_PER_MINUTE = 60_000
MS_PER_SECOND = 1_000


@dataclass
class Clock:
    remaining_ms: dict[Color, float]
    increment_ms: float
    initial_ms: float
    last_decision_at: Optional[float] = None

    @classmethod
    def from_time_control(cls, minutes: float, increment_seconds: float) -> Self:
        initial = minutes * MS_PER_MINUTE
        return cls(
            remaining_ms={Color.WHITE: initial, Color.BLACK: initial},
            increment_ms=increment_seconds * MS_PER_SECOND,
            initial_ms=initial,
        )

    @classmethod
    def from_model(cls, model: ClockModel) -> Self:
        return cls(
            remaining_ms={
                Color.WHITE: model.remaining_ms[Color.WHITE.value],
                Color.BLACK: model.remaining_ms[Color.BLACK.value],
            },
            increment_ms=model.increment_ms,
            initial_ms=model.initial_ms,
            last_decision_at=model.last_decision_at,
        )

    def to_model(self) -> ClockModel:
        return ClockModel(
            remaining_ms={color.value: ms for color, ms in self.remaining_ms.items()},
            increment_ms=self.increment_ms,
            initial_ms=self.initial_ms,
            last_decision_at=self.last_decision_at,
        )

    @property
    def is_running(self) -> bool:
        return self.last_decision_at is not None

    def start(self, now: float) -> None:
        self.last_decision_at = now

    def elapsed(self, now: float) -> float:
        """Time spent on the current decision. Clock skew never produces negative time."""
        if self.last_decision_at is None:
            return 0.0
        return max(0.0, now - self.last_decision_at)

    def effective_remaining(self, color: Color, turn: Color, now: float) -> float:
        """remaining - (now - last decision) for the color to move, the stored value otherwise."""
        if color != turn or not self.is_running:
            return max(0.0, self.remaining_ms[color])
        return max(0.0, self.remaining_ms[color] - self.elapsed(now))

    def has_flag_fallen(self, color: Color, turn: Color, now: float) -> bool:
        """Zero counts as expired."""
        return self.effective_remaining(color, turn, now) <= 0

    def settle(self, color: Color, now: float) -> float:
        """
        Convert the time spent by `color` into a deduction from its budget.
        ----
        If the budget is used up, the clock stops at zero and no increment is added (the caller forfeits `color`).
        Otherwise the increment is added and the next decision starts at `now`.

        Returns the elapsed time (think time of the move).
        """
        elapsed = self.elapsed(now)
        remaining = max(0.0, self.remaining_ms[color] - elapsed)
        self.remaining_ms[color] = remaining
        if remaining <= 0:
            self.last_decision_at = None
            return elapsed

        self.remaining_ms[color] = remaining + self.increment_ms
        self.last_decision_at = now
        return elapsed

    def stop(self, turn: Color, now: float) -> None:
        """Freeze both clocks, charging the color to move for the time already spent (no increment)."""
        if not self.is_running:
            return
        self.remaining_ms[turn] = self.effective_remaining(turn, turn, now)
        self.last_decision_at = None

    def snapshot(self, turn: Color, now: float) -> dict[str, float | bool]:
        return {
            "w_ms": round(self.effective_remaining(Color.WHITE, turn, now)),
            "b_ms": round(self.effective_remaining(Color.BLACK, turn, now)),
            "increment_ms": round(self.increment_ms),
            "running": self.is_running,
        }
