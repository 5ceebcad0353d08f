"""PGC Leaderboard - Main Application.

This is the entry point for the application. It initializes the database,
the leaderboard data source and polling scheduler, and registers all routes.
"""
import os
import logging
from contextlib import asynccontextmanager

from fasthtml.common import *

# Configure logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import SECRET_KEY, SCHEDULER_TIMEZONE
from db import init_db
import db as db_module
from routes import init_routes, setup_home_routes, setup_leaderboard_routes
from services.freshness import LeaderboardHub
from services.sources import make_source

# Initialize database
tables = init_db()

# Initialize leaderboard services
source = make_source(db_module=db_module)
scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)
hub = LeaderboardHub(source, scheduler)


@asynccontextmanager
async def lifespan(app):
    """Run the polling scheduler for the lifetime of the server."""
    scheduler.start()
    logger.info(f"APScheduler started for leaderboard polling ({source.kind} source)")
    try:
        yield
    finally:
        # Clear every polling timer before the scheduler goes away
        await hub.close()
        await source.aclose()
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")


# Create FastHTML app
app, rt = fast_app(
    pico=False,
    secret_key=SECRET_KEY,
    lifespan=lifespan,
)

# Initialize route utilities with services
init_routes(hub, db_module)

# Register all routes
setup_home_routes(app)
setup_leaderboard_routes(app)


# ============ Run Server ============

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    serve(host="0.0.0.0", port=port)
