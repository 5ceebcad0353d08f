"""In-memory leaderboard snapshots, one per event."""
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Full replacement of an event's fetched rows."""

    event_id: int
    teams: tuple
    competitors: tuple
    tour_cards: tuple
    refreshed_at: datetime
    sequence: int


class LeaderboardCache:
    """Single store of fetched leaderboard data keyed by event id.

    Each fetch takes a sequence number from begin(). commit() keeps a result
    only if it belongs to the most recently started fetch for that event, so
    a slow superseded fetch can never overwrite newer data.
    """

    def __init__(self):
        self._snapshots = {}
        self._latest = {}
        self._sequence = itertools.count(1)

    def get(self, event_id) -> Optional[Snapshot]:
        return self._snapshots.get(event_id)

    def refreshed_at(self, event_id) -> Optional[datetime]:
        snapshot = self._snapshots.get(event_id)
        return snapshot.refreshed_at if snapshot else None

    def begin(self, event_id) -> int:
        """Register a new fetch for the event and return its sequence number."""
        sequence = next(self._sequence)
        self._latest[event_id] = sequence
        return sequence

    def commit(self, event_id, sequence, teams, competitors, tour_cards, now: datetime) -> bool:
        """Store a fetch result. Returns False if the fetch was superseded."""
        latest = self._latest.get(event_id)
        if sequence != latest:
            logger.debug(f"Discarding superseded fetch {sequence} for event {event_id} (latest {latest})")
            return False

        previous = self._snapshots.get(event_id)
        refreshed_at = now if previous is None else max(now, previous.refreshed_at)
        self._snapshots[event_id] = Snapshot(
            event_id=event_id,
            teams=tuple(teams),
            competitors=tuple(competitors),
            tour_cards=tuple(tour_cards),
            refreshed_at=refreshed_at,
            sequence=sequence,
        )
        return True

    def clear(self, event_id=None):
        if event_id is None:
            self._snapshots.clear()
            self._latest.clear()
        else:
            self._snapshots.pop(event_id, None)
            self._latest.pop(event_id, None)
