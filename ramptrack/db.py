"""Database configuration and helpers for the RampTrack backend."""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ramptrack.config import settings

DATABASE_URL = os.getenv("RAMPTRACK_DB_URL", "sqlite:///./ramptrack.db")

Base = declarative_base()

logger = logging.getLogger("ramptrack.db")


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine with the store timeout applied where the driver allows it."""

    connect_args = kwargs.pop("connect_args", {})
    if url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.store_timeout,
            **connect_args,
        }
    return create_engine(url, connect_args=connect_args, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create database tables if they do not exist."""

    import ramptrack.db_models  # noqa: F401 - models are imported for side effects

    Base.metadata.create_all(bind=bind or engine)


__all__ = ["Base", "SessionLocal", "engine", "init_db", "make_engine"]
