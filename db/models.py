"""Database table definitions."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class Tour:
    id: int
    name: str = ""
    short_form: Optional[str] = None  # e.g. "CCG", "DbyD"
    season_id: Optional[int] = None


@dataclass
class TourCard:
    id: int
    member_id: Optional[int] = None
    tour_id: Optional[int] = None
    season_id: Optional[int] = None
    display_name: str = ""
    playoff: int = 0  # 0 = not qualified, 1 = gold, 2 = silver


@dataclass
class Tier:
    id: int
    name: str = ""
    points: str = "[]"  # JSON list, index 0 = 1st place
    payouts: str = "[]"  # JSON list, index 0 = 1st place


@dataclass
class Course:
    id: int
    name: str = ""
    location: Optional[str] = None
    par: int = 72


@dataclass
class Tournament:
    id: int
    name: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    current_round: Optional[int] = None
    live_play: bool = False
    course_id: Optional[int] = None
    tier_id: Optional[int] = None
    season_id: Optional[int] = None
    updated_at: Optional[str] = None


@dataclass
class Golfer:
    id: int
    tournament_id: int = 0
    api_id: Optional[int] = None
    player_name: str = ""
    country: Optional[str] = None
    position: Optional[str] = None  # "1", "T4", "CUT", "WD", "DQ"
    pos_change: Optional[int] = None  # Upstream movement since last round
    score: Optional[int] = None  # Relative to par
    today: Optional[int] = None
    thru: Optional[int] = None
    round: Optional[int] = None
    round_one: Optional[int] = None
    round_two: Optional[int] = None
    round_three: Optional[int] = None
    round_four: Optional[int] = None
    group: Optional[int] = None  # Pick tier group 1-5
    world_rank: Optional[int] = None
    updated_at: Optional[str] = None


@dataclass
class Team:
    id: int
    tournament_id: int = 0
    tour_card_id: Optional[int] = None
    score: Optional[int] = None  # Aggregated upstream from the team's golfers
    today: Optional[int] = None
    thru: Optional[int] = None
    round: Optional[int] = None
    round_one: Optional[int] = None
    round_two: Optional[int] = None
    round_three: Optional[int] = None
    round_four: Optional[int] = None
    position: Optional[str] = None
    past_position: Optional[str] = None
    points: Optional[int] = None
    earnings: Optional[float] = None
    updated_at: Optional[str] = None


# Table name -> row class, in creation order
TABLES = {
    'tours': Tour,
    'tour_cards': TourCard,
    'tiers': Tier,
    'courses': Course,
    'tournaments': Tournament,
    'golfers': Golfer,
    'teams': Team,
}


def create_tables(db):
    """Create all database tables and return table references keyed by name."""
    return {name: db.create(cls, pk='id', transform=True) for name, cls in TABLES.items()}
