"""Database helpers for the clinical AI service."""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseSettings, get_database_settings
from .models import Base


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the process-wide engine built from :func:`get_database_settings`."""

    settings = get_database_settings()
    return create_engine(settings.url, **settings.engine_options())


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False, future=True)


def initialise_schema(engine: Engine | None = None) -> None:
    """Create any missing tables on *engine* (defaults to the global engine)."""

    Base.metadata.create_all(engine or get_engine())


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Iterator[Session]:
    """Context manager yielding a session that commits on success."""

    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "DatabaseSettings",
    "get_database_settings",
    "get_engine",
    "get_session_factory",
    "initialise_schema",
    "session_scope",
]
