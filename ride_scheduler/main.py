"""Main FastAPI application for the recurring ride scheduler."""
import logging

from fastapi import FastAPI

from ride_scheduler import __version__
from ride_scheduler.config import LOG_LEVEL
from ride_scheduler.db.init import init_db
from ride_scheduler.routers import recurring_rides
from ride_scheduler.utils.metrics import metrics_collector

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Recurring Ride Scheduler API",
    description="Creates and extends recurring ride schedules for drivers",
    version=__version__,
)


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    try:
        init_db()
        logger.info("[SUCCESS] Database tables initialized successfully.")
    except Exception as e:
        # Rides can still be posted through the single-ride fallback
        logger.warning(f"[WARNING] Database initialization failed: {str(e)}")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/metrics")
async def metrics():
    """Scheduler counters and timers."""
    return metrics_collector.get_metrics()


app.include_router(recurring_rides.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ride_scheduler.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
