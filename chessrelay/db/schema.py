"""Database tables / schema"""

from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DBSession(Base):
    __tablename__ = "sessions"
    id: Mapped[str] = mapped_column(String(6), primary_key=True)
    fen: Mapped[str]
    moves: Mapped[list[str]] = mapped_column(JSON, default=list)
    players: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    turn: Mapped[str] = mapped_column(String(1))
    status: Mapped[str]
    white_remaining_ms: Mapped[float]
    black_remaining_ms: Mapped[float]
    increment_ms: Mapped[float]
    initial_ms: Mapped[float]
    last_decision_at: Mapped[Optional[float]]
    outcome_reason: Mapped[Optional[str]]
    outcome_winner: Mapped[Optional[str]] = mapped_column(String(1))
    created_at: Mapped[float]
    last_activity_at: Mapped[float]
