"""Leaderboard assembler - groups, ranks and derives display fields.

Everything here is computed fresh from a snapshot on each render; nothing is
written back to the database.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from services.scoring import (
    assign_past_positions,
    assign_positions,
    calculate_points_and_earnings,
    round_half_up,
)
from services.status import (
    STATUS_LABELS,
    Entry,
    entry_from_golfer,
    entry_from_team,
    field_value,
    parse_position,
    score_or_sentinel,
    sort_entries,
    tournament_status,
)

logger = logging.getLogger(__name__)

# Key for the golfer (competitor) board next to the tour boards
PGA_TOUR = "pga"

# Playoff brackets replace the tour boards during playoff events
PLAYOFF_GOLD = "gold"
PLAYOFF_SILVER = "silver"
PLAYOFFS = "playoffs"
PLAYOFF_LABELS = {PLAYOFF_GOLD: "Gold", PLAYOFF_SILVER: "Silver", PLAYOFFS: "Playoffs"}


def group_by_tour(entries, tour_cards) -> dict:
    """Partition team entries by the tour of their tour card.

    Teams whose tour card (or its tour) cannot be resolved are dropped and
    logged; the rest of the board is still assembled.
    """
    cards = {c.id: c for c in tour_cards}
    groups = {}
    for entry in entries:
        card = cards.get(entry.owner_id)
        tour_id = field_value(card, 'tour_id')
        if tour_id is None:
            logger.warning(f"Dropping team {entry.id}: no tour for tour card {entry.owner_id}")
            continue
        groups.setdefault(tour_id, []).append(entry)
    return groups


def is_playoff(tier) -> bool:
    """Playoff events are recognised by their tier name."""
    return tier is not None and "playoff" in (tier.name or "").lower()


def group_by_playoff(entries, tour_cards) -> dict:
    """Partition team entries into playoff brackets by their card's playoff level.

    When any card is at level 2 the board splits into gold (level 1) and
    silver (level 2) brackets; otherwise level 1 cards share one "playoffs"
    bracket. Teams whose card did not qualify are left off.
    """
    cards = {c.id: c for c in tour_cards}
    levels = {}
    for entry in entries:
        card = cards.get(entry.owner_id)
        levels[entry.id] = (card.playoff or 0) if card is not None else 0

    brackets = {PLAYOFF_GOLD: 1, PLAYOFF_SILVER: 2} if max(levels.values(), default=0) > 1 else {PLAYOFFS: 1}
    groups = {}
    for key, level in brackets.items():
        members = [e for e in entries if levels[e.id] == level]
        if members:
            groups[key] = members
    return groups


def rank_group(entries) -> list:
    """Order one group: thru ascending, then ranking key ascending."""
    return sort_entries(entries)


def position_change(entry: Entry, current_round: Optional[int], fallback_past: Optional[str] = None) -> int:
    """Places gained since the last refresh; positive is an improvement.

    Teams compare past and current position strings (past - current). A
    team with no stored past position uses fallback_past, the position it
    would have held before today's scores.
    Golfers carry an upstream delta. Before round 2, or for cut/WD/DQ
    entries, there is no movement.
    """
    if not current_round or current_round <= 1:
        return 0
    if entry.kind == "golfer":
        return 0 if entry.is_terminal else (entry.pos_change or 0)

    past = parse_position(entry.past_position or fallback_past)
    current = parse_position(entry.position)
    if past is None or current is None:
        return 0
    return past - current


def round_delta(entry: Entry, round_number: int, peers) -> Optional[float]:
    """Entry's round score minus the peer average, to one decimal.

    Returns None when there are fewer than two peers to average.
    """
    peers = list(peers)
    if len(peers) < 2:
        return None
    total = sum(score_or_sentinel(p.round_score(round_number)) for p in peers)
    average = total / len(peers)
    own = score_or_sentinel(entry.round_score(round_number))
    return round_half_up(own - average, 1)


def delta_tone(delta: Optional[float]) -> Optional[str]:
    """Colour for a round delta: green below average, red above."""
    if delta is None:
        return None
    if delta < 0:
        return "green"
    if delta > 0:
        return "red"
    return "neutral"


def _rank_string(value, values) -> str:
    better = sum(1 for v in values if v < value)
    same = sum(1 for v in values if v == value)
    prefix = "T" if same > 1 else ""
    return f"{prefix}{better + 1}"


def round_rank(entry: Entry, round_number: int, peers) -> Optional[str]:
    """Rank of the entry's score in a single round among its peers."""
    peers = list(peers)
    if not peers:
        return None
    values = [score_or_sentinel(p.round_score(round_number)) for p in peers]
    return _rank_string(score_or_sentinel(entry.round_score(round_number)), values)


def cumulative_total(entry: Entry, round_number: int) -> int:
    """Sum of rounds 1..round_number, missing rounds counted as 999."""
    return sum(score_or_sentinel(entry.round_score(i)) for i in range(1, round_number + 1))


def cumulative_rank(entry: Entry, round_number: int, peers) -> Optional[str]:
    """Rank of the running total through round_number, "T" marks a tie."""
    peers = list(peers)
    if not peers:
        return None
    values = [cumulative_total(p, round_number) for p in peers]
    return _rank_string(cumulative_total(entry, round_number), values)


def display_position(entry: Entry, computed: dict) -> str:
    if entry.is_terminal:
        return STATUS_LABELS[entry.tag]
    if entry.position:
        return entry.position
    return computed.get(entry.id, "-")


@dataclass
class LeaderboardRow:
    entry: Entry
    position: str
    position_change: int = 0
    points: Optional[int] = None
    earnings: Optional[float] = None


@dataclass
class Leaderboard:
    """Ranked, tour-grouped view of one event's snapshot.

    During playoff events `tours` is keyed by playoff bracket instead of tour id.
    """

    tournament_id: int
    status: str
    current_round: Optional[int] = None
    refreshed_at: Optional[datetime] = None
    tours: dict = field(default_factory=dict)  # tour id or bracket -> [LeaderboardRow]
    golfers: list = field(default_factory=list)
    playoff: bool = False

    def rows_for(self, tour_key) -> list:
        if tour_key == PGA_TOUR:
            return self.golfers
        return self.tours.get(tour_key, [])

    def entries_for(self, tour_key) -> list:
        return [row.entry for row in self.rows_for(tour_key)]


def _build_rows(ranked, current_round, tier=None) -> list:
    computed = assign_positions(ranked)
    past = assign_past_positions(ranked)
    positions = {e.id: display_position(e, computed) for e in ranked}
    awards = calculate_points_and_earnings(positions, tier) if tier is not None else {}

    rows = []
    for entry in ranked:
        points, earnings = awards.get(entry.id, (None, None))
        rows.append(LeaderboardRow(
            entry=entry,
            position=positions[entry.id],
            position_change=position_change(entry, current_round, past.get(entry.id)),
            points=points,
            earnings=earnings,
        ))
    return rows


def build_leaderboard(snapshot, tournament, now: datetime, tier=None) -> Optional[Leaderboard]:
    """Assemble the display structure, or None when no snapshot exists yet."""
    if snapshot is None:
        return None

    current_round = field_value(tournament, 'current_round')
    names = {c.id: c.display_name for c in snapshot.tour_cards}
    team_entries = [entry_from_team(t, names.get(field_value(t, 'tour_card_id'), "")) for t in snapshot.teams]

    playoff = is_playoff(tier)
    grouped = (group_by_playoff if playoff else group_by_tour)(team_entries, snapshot.tour_cards)
    tours = {key: _build_rows(rank_group(group), current_round, tier) for key, group in grouped.items()}

    golfer_entries = rank_group(entry_from_golfer(g) for g in snapshot.competitors)

    return Leaderboard(
        tournament_id=tournament.id,
        status=tournament_status(tournament, now),
        current_round=current_round,
        refreshed_at=snapshot.refreshed_at,
        tours=tours,
        golfers=_build_rows(golfer_entries, current_round),
        playoff=playoff,
    )
