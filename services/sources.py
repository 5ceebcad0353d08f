"""Leaderboard data sources.

Two interchangeable variants feed the freshness controller:

- StoreSource (kind "store") reads the database tables directly.
- HttpSource (kind "fetch") reads the same rows from the JSON API served by
  routes/leaderboard.py.
"""
import logging
from dataclasses import MISSING, fields

import httpx

from config import LEADERBOARD_API_URL, LEADERBOARD_SOURCE
from db import read
from db.models import Golfer, Team, TourCard, Tournament

logger = logging.getLogger(__name__)


def row_from_dict(cls, data: dict):
    """Build a table dataclass from a JSON object, ignoring unknown keys.

    Every field is passed explicitly so keys missing from the payload take
    the dataclass default rather than whatever the table class substitutes.
    """
    values = {}
    for f in fields(cls):
        if f.name in data:
            values[f.name] = data[f.name]
        elif f.default is not MISSING:
            values[f.name] = f.default
    return cls(**values)


class StoreSource:
    """Data source backed by the fastsql tables.

    Queries are filtered in SQL and run off the event loop.
    """

    kind = "store"

    def __init__(self, db_module):
        self.db = db_module

    async def get_tournament(self, event_id: int):
        rows = await read(self.db.tournaments, where="id = :id", where_args={"id": event_id})
        return rows[0] if rows else None

    async def get_teams_by_event(self, event_id: int) -> list:
        return await read(self.db.teams, where="tournament_id = :tournament_id",
                          where_args={"tournament_id": event_id})

    async def get_competitors_by_event(self, event_id: int) -> list:
        return await read(self.db.golfers, where="tournament_id = :tournament_id",
                          where_args={"tournament_id": event_id})

    async def get_tour_cards_by_event(self, event_id: int) -> list:
        """Tour cards referenced by the event's teams."""
        teams = await self.get_teams_by_event(event_id)
        card_ids = sorted({t.tour_card_id for t in teams if t.tour_card_id is not None})
        if not card_ids:
            return []
        params = {f"card_{i}": card_id for i, card_id in enumerate(card_ids)}
        placeholders = ", ".join(f":{name}" for name in params)
        return await read(self.db.tour_cards, where=f"id IN ({placeholders})", where_args=params)

    async def aclose(self):
        """Nothing to release; the database module owns its connection."""


class HttpSource:
    """Data source that fetches rows from the leaderboard JSON API."""

    kind = "fetch"
    TIMEOUT = 30.0

    def __init__(self, base_url: str = None, client: httpx.AsyncClient = None):
        self.base_url = (base_url or LEADERBOARD_API_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=self.TIMEOUT)

    async def _get(self, path: str):
        """GET a JSON document. Raises httpx.HTTPError on failure."""
        response = await self._client.get(f"{self.base_url}/api/tournaments/{path}")
        response.raise_for_status()
        return response.json()

    async def get_tournament(self, event_id: int):
        try:
            data = await self._get(str(event_id))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        return row_from_dict(Tournament, data)

    async def get_teams_by_event(self, event_id: int) -> list:
        return [row_from_dict(Team, d) for d in await self._get(f"{event_id}/teams")]

    async def get_competitors_by_event(self, event_id: int) -> list:
        return [row_from_dict(Golfer, d) for d in await self._get(f"{event_id}/golfers")]

    async def get_tour_cards_by_event(self, event_id: int) -> list:
        return [row_from_dict(TourCard, d) for d in await self._get(f"{event_id}/tour-cards")]

    async def aclose(self):
        await self._client.aclose()


def make_source(kind: str = None, db_module=None, base_url: str = None):
    """Create the configured data source."""
    kind = kind or LEADERBOARD_SOURCE
    if kind == StoreSource.kind:
        if db_module is None:
            raise ValueError("StoreSource requires a database module")
        return StoreSource(db_module)
    if kind == HttpSource.kind:
        logger.info(f"Fetching leaderboard data from {base_url or LEADERBOARD_API_URL}")
        return HttpSource(base_url)
    raise ValueError(f"Unknown leaderboard source: {kind!r}")
