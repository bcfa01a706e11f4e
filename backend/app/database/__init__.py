"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": 10, "application_name": "flightdesk_backend"},
    }


def build_engine(url: str | None = None) -> Engine:
    db_url = url or settings.get_database_url()
    engine = create_engine(db_url, echo=settings.sql_echo, future=True, **_engine_kwargs(db_url))

    @event.listens_for(engine, "connect")
    def _on_connect(_dbapi_connection: Any, _connection_record: Any) -> None:
        logger.debug("Database connection established")

    return engine


engine: Engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (development and tests; production uses its own migrations)."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
