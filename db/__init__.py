"""Database connection and table registry.

The leaderboard pipeline only reads these tables; scores are written by an
external ingestion process.
"""
import asyncio
import logging
import threading

import sqlalchemy as sa
from fastsql import Database
from sqlalchemy.exc import DBAPIError, PendingRollbackError
from sqlalchemy.pool import StaticPool

from config import DATA_DIR, DATABASE_URL, DB_POOL_RECYCLE_SECONDS

logger = logging.getLogger(__name__)


class ResilientConnection:
    """Connection proxy that swaps in a fresh connection after one failed execute.

    Polling reads the tables every interval for as long as an event is live;
    a server-side idle disconnect costs one retry instead of a failed refresh.
    """

    def __init__(self, engine):
        self.engine = engine
        self._conn = engine.connect()
        self.reconnects = 0

    def _reconnect(self):
        try:
            self._conn.close()
        except DBAPIError as e:
            logger.debug(f"Ignoring error while closing stale connection: {e}")
        self._conn = self.engine.connect()
        self.reconnects += 1
        logger.warning(f"Reconnected to database (reconnect #{self.reconnects})")

    def execute(self, *args, **kwargs):
        try:
            return self._conn.execute(*args, **kwargs)
        except (DBAPIError, PendingRollbackError) as e:
            logger.warning(f"Database error: {e}, attempting reconnect...")
            try:
                self._conn.rollback()
            except DBAPIError as rollback_error:
                logger.debug(f"Rollback on stale connection failed: {rollback_error}")
            self._reconnect()
            return self._conn.execute(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._conn, name)


class PostgresDatabase(Database):
    """fastsql Database for PostgreSQL with pre-ping, recycling and reconnects."""

    def __init__(self, conn_str, pool_pre_ping=True, pool_recycle=DB_POOL_RECYCLE_SECONDS):
        self.conn_str = conn_str
        self.engine = sa.create_engine(conn_str, pool_pre_ping=pool_pre_ping, pool_recycle=pool_recycle)

        self.meta = sa.MetaData()
        self.meta.reflect(bind=self.engine)
        self.meta.bind = self.engine

        self.conn = ResilientConnection(self.engine)
        self.meta.conn = self.conn
        self._tables = {}


def connect(url: str = DATABASE_URL) -> Database:
    """Open the configured database: PostgreSQL when the URL says so, else SQLite."""
    if url.startswith("postgresql"):
        logger.info(f"Using PostgreSQL database (pool_pre_ping=True, pool_recycle={DB_POOL_RECYCLE_SECONDS})")
        return PostgresDatabase(url)
    logger.info(f"Using SQLite database: {url}")
    if ":memory:" in url:
        # One shared in-memory database, usable from the read worker threads
        return Database(url, engine_kws=dict(connect_args={"check_same_thread": False}, poolclass=StaticPool))
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    return Database(url)


db = connect()

# fastsql shares one connection per Database, so reads run one at a time
_read_lock = threading.Lock()


def _locked(query, kwargs):
    with _read_lock:
        return query(**kwargs)


async def read(table, **kwargs) -> list:
    """Run a blocking table query in a worker thread.

    `table` is any fastsql table (or callable with the same signature);
    keyword arguments such as `where` and `where_args` are passed through.
    """
    return await asyncio.to_thread(_locked, table, kwargs)


# Table references (set by init_db)
tours = None
tour_cards = None
tiers = None
courses = None
tournaments = None
golfers = None
teams = None


def init_db():
    """Create the leaderboard tables and bind the module-level references."""
    from db.models import create_tables
    global tours, tour_cards, tiers, courses, tournaments, golfers, teams

    tables = create_tables(db)
    tours = tables['tours']
    tour_cards = tables['tour_cards']
    tiers = tables['tiers']
    courses = tables['courses']
    tournaments = tables['tournaments']
    golfers = tables['golfers']
    teams = tables['teams']

    return tables
