"""Initialize database tables."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from ride_scheduler.models.recurring_pattern import RecurringRidePattern  # noqa: F401
from ride_scheduler.models.ride import Ride  # noqa: F401
from ride_scheduler.db.config import engine as default_engine

logger = logging.getLogger(__name__)


def init_db(engine: Optional[Engine] = None):
    """Create all tables in the database."""
    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(engine or default_engine)
    logger.info("[DB INIT] Tables created successfully.")


if __name__ == "__main__":
    init_db()
