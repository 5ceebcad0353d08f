"""Status classifier - lifecycle tags, ranking keys and entry normalization.

Every stored row (team or golfer) passes through `entry_from_team` /
`entry_from_golfer` before it is ranked. Missing numbers are defaulted here
and nowhere else.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from fastcore.xtras import UNSET

logger = logging.getLogger(__name__)

# Lifecycle tags
ACTIVE = "active"
CUT = "cut"
WITHDRAWN = "withdrawn"
DISQUALIFIED = "disqualified"

TERMINAL_TAGS = (CUT, WITHDRAWN, DISQUALIFIED)

# Worst-case value for a missing score
SENTINEL_SCORE = 999

# Offsets keep terminal tiers clear of any real score
STATUS_PENALTIES = {
    DISQUALIFIED: 999,
    WITHDRAWN: 888,
    CUT: 444,
}

STATUS_LABELS = {
    CUT: "CUT",
    WITHDRAWN: "WD",
    DISQUALIFIED: "DQ",
}

_TAG_ALIASES = {
    "CUT": CUT,
    "MC": CUT,
    "WD": WITHDRAWN,
    "W/D": WITHDRAWN,
    "DQ": DISQUALIFIED,
    CUT.upper(): CUT,
    WITHDRAWN.upper(): WITHDRAWN,
    DISQUALIFIED.upper(): DISQUALIFIED,
}


def lifecycle_tag(value: Optional[str]) -> str:
    """Map a position string or stored status to a lifecycle tag.

    "T4", "12", "" and None are all active; only the terminal markers
    (CUT/MC, WD/W/D, DQ) are not.
    """
    if not value:
        return ACTIVE
    return _TAG_ALIASES.get(str(value).strip().upper(), ACTIVE)


def is_terminal(value: Optional[str]) -> bool:
    """Check if a position/status marks the entry as cut, withdrawn or disqualified."""
    return lifecycle_tag(value) in TERMINAL_TAGS


def score_or_sentinel(score: Optional[int]) -> int:
    """Missing scores rank as the worst possible value."""
    return SENTINEL_SCORE if score is None else score


def ranking_key(score: Optional[int], tag: Optional[str]) -> int:
    """Ascending sort key: raw score for active entries, score + tier offset otherwise."""
    return score_or_sentinel(score) + STATUS_PENALTIES.get(lifecycle_tag(tag), 0)


def parse_position(position: Optional[str]) -> Optional[int]:
    """Strip a leading tie marker and return the numeric position, or None."""
    if position is None:
        return None
    cleaned = str(position).strip().upper()
    if cleaned.startswith("T"):
        cleaned = cleaned[1:]
    return int(cleaned) if cleaned.isdigit() else None


def field_value(row, name: str, default=None):
    """Read a column, treating a missing attribute or fastsql's UNSET as absent."""
    value = getattr(row, name, default)
    return default if value is UNSET or value is None else value


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a stored ISO timestamp into a naive local datetime."""
    if value is UNSET:
        value = None
    if value is None or isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def tournament_status(tournament, now: datetime) -> str:
    """Derive upcoming / current / completed from the event's dates."""
    start = parse_timestamp(tournament.start_date)
    end = parse_timestamp(tournament.end_date)
    if start is None or now < start:
        return "upcoming"
    if end is not None and now > end:
        return "completed"
    return "current"


@dataclass(frozen=True)
class Entry:
    """A team or golfer normalized for ranking."""

    id: int
    kind: str  # "team" or "golfer"
    name: str = ""
    score: Optional[int] = None
    rounds: tuple = (None, None, None, None)
    thru: int = 0
    tag: str = ACTIVE
    position: Optional[str] = None
    past_position: Optional[str] = None
    pos_change: Optional[int] = None
    today: Optional[int] = None
    owner_id: Optional[int] = None  # tour card for teams
    group: Optional[int] = None
    world_rank: Optional[int] = None
    row: object = field(default=None, compare=False, repr=False)

    @property
    def ranking_key(self) -> int:
        return ranking_key(self.score, self.tag)

    @property
    def is_terminal(self) -> bool:
        return self.tag in TERMINAL_TAGS

    def round_score(self, round_number: int) -> Optional[int]:
        if 1 <= round_number <= len(self.rounds):
            return self.rounds[round_number - 1]
        return None


def _rounds(row) -> tuple:
    return tuple(field_value(row, name) for name in ('round_one', 'round_two', 'round_three', 'round_four'))


def entry_from_team(team, name: str = "") -> Entry:
    """Normalize a Team row."""
    position = field_value(team, 'position')
    return Entry(
        id=team.id,
        kind="team",
        name=name,
        score=field_value(team, 'score'),
        rounds=_rounds(team),
        thru=field_value(team, 'thru', 0),
        tag=lifecycle_tag(position),
        position=position,
        past_position=field_value(team, 'past_position'),
        today=field_value(team, 'today'),
        owner_id=field_value(team, 'tour_card_id'),
        row=team,
    )


def entry_from_golfer(golfer) -> Entry:
    """Normalize a Golfer row."""
    position = field_value(golfer, 'position')
    return Entry(
        id=golfer.id,
        kind="golfer",
        name=field_value(golfer, 'player_name', ""),
        score=field_value(golfer, 'score'),
        rounds=_rounds(golfer),
        thru=field_value(golfer, 'thru', 0),
        tag=lifecycle_tag(position),
        position=position,
        pos_change=field_value(golfer, 'pos_change'),
        today=field_value(golfer, 'today'),
        group=field_value(golfer, 'group'),
        world_rank=field_value(golfer, 'world_rank'),
        row=golfer,
    )


def sort_entries(entries) -> list:
    """Two-key sort: holes completed ascending, then ranking key ascending.

    The thru pass runs first and the sort is stable, so among equal ranking
    keys the entry with fewer holes played comes first.
    """
    by_thru = sorted(entries, key=lambda e: e.thru or 0)
    return sorted(by_thru, key=lambda e: e.ranking_key)
