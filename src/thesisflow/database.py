"""SQLAlchemy engine and request-scoped sessions.

Connection pool sizing applies to PostgreSQL only; SQLite (used by the
test suite and local experiments) gets a single-file connection that may
be shared across threads.
"""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings

DATABASE_URL = get_settings().DATABASE_URL


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """One session per request, closed when the response is sent.

    The workflow engine commits or rolls back itself; this dependency only
    owns the session's lifetime.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
