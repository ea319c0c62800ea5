"""Database configuration for the ride scheduler."""
import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import create_engine

from ride_scheduler.config import DATABASE_URL

logger = logging.getLogger(__name__)

# Check if we're using PostgreSQL or SQLite
if DATABASE_URL.startswith("postgresql"):
    logger.info("[DB CONFIG] Using PostgreSQL database")
else:
    logger.info(f"[DB CONFIG] Using SQLite database: {DATABASE_URL}")

# Store operations run in worker threads, so SQLite connections cross threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """Enforce the rides -> recurring_ride_patterns foreign key on SQLite."""
    @event.listens_for(target, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)


def get_engine() -> Engine:
    """Dependency for the shared engine."""
    return engine
