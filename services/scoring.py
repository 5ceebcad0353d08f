"""Scoring service - positions, past positions and tier payouts."""
import json
import logging
import math

from services.status import is_terminal, parse_position, score_or_sentinel

logger = logging.getLogger(__name__)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _positions_by(entries, score_of) -> dict:
    """Assign "1", "T2", "T2", "4"... to entries ordered by score_of."""
    ordered = sorted(entries, key=score_of)
    counts = {}
    for entry in ordered:
        value = score_of(entry)
        counts[value] = counts.get(value, 0) + 1

    positions = {}
    current = 1
    prev_value = None
    for i, entry in enumerate(ordered):
        value = score_of(entry)
        if prev_value is None or value != prev_value:
            current = i + 1
        prefix = "T" if counts[value] > 1 else ""
        positions[entry.id] = f"{prefix}{current}"
        prev_value = value
    return positions


def _rankable(entries) -> list:
    # Terminal entries and entries without a score have no position
    return [e for e in entries if not e.is_terminal and e.score is not None]


def assign_positions(entries) -> dict:
    """Current positions keyed by entry id.

    Only active, scored entries are placed. Equal scores share a position
    prefixed with "T"; the next distinct score takes its index + 1.
    """
    return _positions_by(_rankable(entries), lambda e: e.score)


def assign_past_positions(entries) -> dict:
    """Positions before the current round, from score minus today's score."""
    return _positions_by(
        _rankable(entries),
        lambda e: score_or_sentinel(e.score) - (e.today or 0),
    )


def tier_schedule(tier) -> tuple:
    """Return (points, payouts) lists for a tier; index 0 is first place."""
    if tier is None:
        return [], []

    def _load(raw):
        if isinstance(raw, (list, tuple)):
            return list(raw)
        try:
            return list(json.loads(raw or "[]"))
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid schedule on tier {tier.id}: {e}")
            return []

    return _load(tier.points), _load(tier.payouts)


def calculate_points_and_earnings(positions: dict, tier) -> dict:
    """Points and earnings keyed by entry id.

    Terminal positions earn nothing. Tied entries split the combined points
    and payouts of every position the tie occupies.
    """
    points, payouts = tier_schedule(tier)
    tie_sizes = {}
    for position in positions.values():
        tie_sizes[position] = tie_sizes.get(position, 0) + 1

    awards = {}
    for entry_id, position in positions.items():
        place = parse_position(position)
        if place is None or is_terminal(position):
            awards[entry_id] = (0, 0)
            continue

        tied = tie_sizes[position] if str(position).upper().startswith("T") else 1
        start = place - 1
        total_points = sum(points[start:start + tied])
        total_payouts = sum(payouts[start:start + tied])
        awards[entry_id] = (
            int(round_half_up(total_points / tied)),
            round_half_up(total_payouts / tied, 2),
        )
    return awards
