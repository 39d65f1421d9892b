"""
Database engine and session management for Cartera.
Uses SQLModel; SQLite databases get Write-Ahead Logging (WAL) and
foreign key enforcement so restrict/cascade rules hold.
"""

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine
from typing import Optional
import logging

from config import get_settings

logger = logging.getLogger(__name__)

# Global engine instance
_engine: Optional[object] = None


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        if settings.database_url.startswith("sqlite"):
            _engine = create_engine(
                settings.database_url,
                echo=settings.db_echo,
                connect_args={
                    "check_same_thread": False,  # Allow use across threads
                }
            )
            event.listen(_engine, "connect", _sqlite_on_connect)
            _enable_wal_mode()
        else:
            _engine = create_engine(settings.database_url, echo=settings.db_echo)
    return _engine


def _sqlite_on_connect(dbapi_connection, connection_record):
    """Turn on foreign key enforcement for every new SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _enable_wal_mode():
    """Enable SQLite WAL mode for improved concurrent read/write performance."""
    if _engine is None:
        return

    try:
        with _engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            # Set busy timeout to 5 seconds to handle concurrent access
            conn.exec_driver_sql("PRAGMA busy_timeout=5000")
            logger.info("SQLite WAL mode enabled for concurrent access")
    except Exception as e:
        logger.warning(f"Could not enable WAL mode: {e}")


def init_db():
    """Initialize the database and create all tables."""
    from models import Asset, Transaction, Quote, DollarRate  # noqa: F401

    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized")


def reset_engine():
    """Dispose the current engine so the next call rebuilds it from settings."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
