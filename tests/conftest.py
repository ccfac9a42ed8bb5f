"""
Pytest will auto-discover / import this file called 'conftest.py'. ]
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chessrelay.db.memory_repository import InMemorySessionRepository
from chessrelay.db.schema import Base
from chessrelay.game.fairplay import FairplayTracker
from chessrelay.game.rules import PythonChessRules
from chessrelay.services.registry import SessionRegistry

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)

START_MS = 1_700_000_000_000.0


class FakeClock:
    """Controllable time source in milliseconds."""

    def __init__(self, start: float = START_MS) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, ms: float) -> None:
        self.current += ms


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rules() -> PythonChessRules:
    return PythonChessRules()


@pytest.fixture
def tracker() -> FairplayTracker:
    return FairplayTracker(fast_move_threshold_ms=1000)


@pytest.fixture
def memory_repository() -> Generator[InMemorySessionRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = InMemorySessionRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def registry(
    memory_repository: InMemorySessionRepository,
    rules: PythonChessRules,
    fake_clock: FakeClock,
) -> SessionRegistry:
    return SessionRegistry(memory_repository, rules, now=fake_clock)
