"""
Entry point for the periodic "extend horizon" job.

Run from a scheduler (cron, Kubernetes CronJob) to keep every active
recurring pattern materialized up to the configured horizon.
"""

import asyncio
import logging

from ride_scheduler.config import DEFAULT_HORIZON_DAYS, LOG_LEVEL
from ride_scheduler.db.config import engine
from ride_scheduler.services.pattern_store import SQLModelPatternStore
from ride_scheduler.services.schedule_materializer import ScheduleMaterializer

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


async def main():
    """Extend all active patterns once."""
    logger.info("Starting recurring ride horizon extension...")
    materializer = ScheduleMaterializer(SQLModelPatternStore(engine), horizon_days=DEFAULT_HORIZON_DAYS)
    results = await materializer.extend_all_active()
    logger.info(f"Extended {len(results)} patterns, created {sum(results.values())} rides")


if __name__ == "__main__":
    asyncio.run(main())
