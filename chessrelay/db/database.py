"""Generate database session"""

from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chessrelay.db.schema import Base


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Engine for the session store.

    An in-memory SQLite database only exists inside a single connection, so it gets a StaticPool that hands every
    caller that same connection.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, echo=echo)

    # Ensure all tables are created
    Base.metadata.create_all(bind=engine)
    return engine


def open_session(engine: Engine) -> Session:
    SessionLocal = sessionmaker(autoflush=False, bind=engine)
    return SessionLocal()
