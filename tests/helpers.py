"""Test doubles for the leaderboard pipeline."""
import asyncio
import time
from datetime import datetime, timedelta

NOW = datetime(2025, 4, 11, 15, 0)


class FakeClock:
    """Injectable wall clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSource:
    """In-memory data source that can hold fetches open or fail them.

    Each call captures the data and error configured at the moment it
    starts, so a slow fetch returns what was current when it began.
    """

    kind = "fake"

    def __init__(self, teams=(), golfers=(), tour_cards=(), tournaments=()):
        self.teams = list(teams)
        self.golfers = list(golfers)
        self.tour_cards = list(tour_cards)
        self.tournaments = {t.id: t for t in tournaments}
        self.error = None
        self.tournament_error = None
        self.calls = 0
        self.cancelled = 0
        self._gates = []

    def hold(self) -> asyncio.Event:
        """Block the next fetch until the returned event is set."""
        gate = asyncio.Event()
        self._gates.append(gate)
        return gate

    async def get_tournament(self, event_id):
        if self.tournament_error is not None:
            raise self.tournament_error
        return self.tournaments.get(event_id)

    async def get_teams_by_event(self, event_id):
        self.calls += 1
        teams, error = list(self.teams), self.error
        gate = self._gates.pop(0) if self._gates else None
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if error is not None:
            raise error
        return teams

    async def get_competitors_by_event(self, event_id):
        return list(self.golfers)

    async def get_tour_cards_by_event(self, event_id):
        return list(self.tour_cards)

    async def aclose(self):
        pass


class SlowTable:
    """Table stand-in whose queries block the calling thread."""

    def __init__(self, rows=(), delay: float = 0.5):
        self.rows = list(rows)
        self.delay = delay

    def __call__(self, **kwargs):
        time.sleep(self.delay)
        return list(self.rows)


async def settle(delay: float = 0.01):
    """Let pending fetch tasks run to completion."""
    await asyncio.sleep(delay)
