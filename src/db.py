"""Database engine and schema init for taskboard.

PostgreSQL via psycopg2 in production (URL from Settings); any SQLAlchemy URL
works, tests use in-memory SQLite.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from config import Settings, get_settings
from models import Task  # noqa: F401 — ensure table registered

logger = logging.getLogger(__name__)

_engine = None


def make_engine(settings: Settings) -> Engine:
    """Build an engine for *settings.database_url*."""
    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        settings.database_url,
        echo=settings.sql_echo,
        pool_pre_ping=not settings.database_url.startswith("sqlite"),
        connect_args=connect_args,
    )


def get_engine() -> Engine:
    """Return the shared engine, created from the process Settings on first use."""
    global _engine
    if _engine is None:
        _engine = make_engine(get_settings())
    return _engine


def init_db() -> None:
    """Create the tasks table (and its unique code index) if it does not exist."""
    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    logger.debug("Schema ready on %s", engine.url.render_as_string(hide_password=True))
