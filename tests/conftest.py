"""Shared pytest fixtures for leaderboard tests."""
import os
from types import SimpleNamespace

# Keep the import-time database connection in memory
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from db import connect
from db.models import Golfer, Team, Tier, Tour, TourCard, Tournament, create_tables
from helpers import FakeClock, FakeSource
from services.cache import LeaderboardCache
from services.freshness import FreshnessController


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tours():
    return [Tour(id=1, name="Coach's Cup Golf", short_form="CCG"), Tour(id=2, name="Dog by Dog", short_form="DbyD")]


@pytest.fixture
def tour_cards():
    return [
        TourCard(id=10, tour_id=1, display_name="Alice"),
        TourCard(id=11, tour_id=1, display_name="Bob"),
        TourCard(id=12, tour_id=2, display_name="Carol"),
        TourCard(id=13, tour_id=1, display_name="Dave"),
    ]


@pytest.fixture
def teams():
    return [
        Team(id=100, tournament_id=1, tour_card_id=10, score=-5, today=-2, thru=12, position="2", past_position="T3",
             round_one=68, round_two=70),
        Team(id=101, tournament_id=1, tour_card_id=11, score=2, thru=18, position="CUT", round_one=74, round_two=72),
        Team(id=102, tournament_id=1, tour_card_id=12, score=-1, thru=9, position="1", past_position="1",
             round_one=70, round_two=71),
        Team(id=103, tournament_id=1, tour_card_id=13, score=-10, today=-4, thru=14, position="1", past_position="2",
             round_one=66, round_two=68),
    ]


@pytest.fixture
def golfers():
    return [
        Golfer(id=200, tournament_id=1, player_name="Scottie Scheffler", position="1", pos_change=3, score=-9, thru=15),
        Golfer(id=201, tournament_id=1, player_name="Rory McIlroy", position="WD", score=1, thru=4),
        Golfer(id=202, tournament_id=1, player_name="Xander Schauffele", position="2", pos_change=-1, score=-7, thru=16),
    ]


@pytest.fixture
def tier():
    return Tier(id=1, name="Major", points="[100, 80, 60, 40]", payouts="[1000, 500, 250, 100]")


@pytest.fixture
def tournament():
    return Tournament(
        id=1,
        name="The Masters",
        start_date="2025-04-10T08:00:00",
        end_date="2025-04-13T20:00:00",
        current_round=2,
        live_play=True,
        tier_id=1,
    )


@pytest.fixture
def source(teams, golfers, tour_cards, tournament):
    return FakeSource(teams, golfers, tour_cards, tournaments=[tournament])


@pytest.fixture
def cache():
    return LeaderboardCache()


@pytest.fixture
def scheduler():
    # Never started: jobs are registered but never fire during a test
    return AsyncIOScheduler()


@pytest.fixture
def make_controller(source, cache, scheduler, clock):
    def _make(tournament, **options):
        options.setdefault("cooldown", 0)
        options.setdefault("timeout", 1)
        return FreshnessController(tournament, source, cache, scheduler, clock=clock, **options)
    return _make


@pytest.fixture
def store_db(tournament, tours, tour_cards, teams, golfers, tier):
    """A fresh in-memory database holding event 1, plus one row each for event 2."""
    tables = create_tables(connect("sqlite:///:memory:"))
    rows = {
        "tournaments": [tournament],
        "tours": tours,
        "tour_cards": tour_cards + [TourCard(id=99, tour_id=1, display_name="Unused")],
        "teams": teams + [Team(id=900, tournament_id=2, tour_card_id=10, score=0)],
        "golfers": golfers + [Golfer(id=901, tournament_id=2, player_name="Other Event")],
        "tiers": [tier],
    }
    for name, table_rows in rows.items():
        for row in table_rows:
            tables[name].insert(row)
    return SimpleNamespace(**tables)
