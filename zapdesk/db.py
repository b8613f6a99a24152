"""
ZapDesk
Database module (single-file)

Provides:
- SQLAlchemy engine + SessionLocal
- get_db() generator for FastAPI dependency injection
- get_session_factory() for work that outlives the request (background jobs)
"""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from zapdesk.config import DATABASE_URL

# ---- Engine + Session ----
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db():
    """
    FastAPI dependency:
    - opens a DB session
    - yields it to the request handler
    - always closes it afterwards
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """
    FastAPI dependency for background tasks, which must open their own
    session because the request session is closed once the response is sent.
    """
    return SessionLocal


def ping_database() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
