"""Tests for lifecycle tags, ranking keys and entry normalization."""
from datetime import datetime

import pytest

from db import connect
from db.models import Golfer, Team, Tournament, create_tables
from routes.utils import format_score
from services.status import (
    ACTIVE,
    CUT,
    DISQUALIFIED,
    SENTINEL_SCORE,
    WITHDRAWN,
    Entry,
    entry_from_golfer,
    entry_from_team,
    field_value,
    is_terminal,
    lifecycle_tag,
    parse_position,
    parse_timestamp,
    ranking_key,
    sort_entries,
    tournament_status,
)


class TestLifecycleTag:
    @pytest.mark.parametrize("value,expected", [
        ("CUT", CUT),
        ("MC", CUT),
        ("WD", WITHDRAWN),
        ("W/D", WITHDRAWN),
        ("DQ", DISQUALIFIED),
        ("dq", DISQUALIFIED),
        (" cut ", CUT),
        ("T4", ACTIVE),
        ("12", ACTIVE),
        ("", ACTIVE),
        (None, ACTIVE),
    ])
    def test_maps_markers(self, value, expected):
        assert lifecycle_tag(value) == expected

    def test_is_terminal(self):
        assert is_terminal("CUT")
        assert is_terminal("WD")
        assert not is_terminal("T1")
        assert not is_terminal(None)


class TestRankingKey:
    def test_active_uses_raw_score(self):
        assert ranking_key(-5, ACTIVE) == -5

    def test_missing_score_is_sentinel(self):
        assert ranking_key(None, ACTIVE) == SENTINEL_SCORE

    def test_offsets(self):
        assert ranking_key(2, CUT) == 446
        assert ranking_key(2, WITHDRAWN) == 890
        assert ranking_key(2, DISQUALIFIED) == 1001

    def test_tiers_never_interleave(self):
        scores = range(-20, 21)
        active = max(ranking_key(s, ACTIVE) for s in scores)
        cut = [ranking_key(s, CUT) for s in scores]
        withdrawn = [ranking_key(s, WITHDRAWN) for s in scores]
        disqualified = [ranking_key(s, DISQUALIFIED) for s in scores]

        assert active < min(cut)
        assert max(cut) < min(withdrawn)
        assert max(withdrawn) < min(disqualified)


class TestParsing:
    @pytest.mark.parametrize("value,expected", [
        ("1", 1),
        ("T4", 4),
        ("t12", 12),
        ("CUT", None),
        ("", None),
        (None, None),
    ])
    def test_parse_position(self, value, expected):
        assert parse_position(value) == expected

    def test_parse_timestamp_naive(self):
        assert parse_timestamp("2025-04-10T08:00:00") == datetime(2025, 4, 10, 8, 0)

    def test_parse_timestamp_aware_becomes_naive(self):
        parsed = parse_timestamp("2025-04-10T08:00:00Z")
        assert parsed.tzinfo is None

    def test_parse_timestamp_invalid(self, caplog):
        assert parse_timestamp("not a date") is None
        assert "Unparseable timestamp" in caplog.text


class TestTournamentStatus:
    def _tournament(self, start, end):
        return Tournament(id=1, start_date=start, end_date=end)

    def test_upcoming(self):
        t = self._tournament("2025-04-10T08:00:00", "2025-04-13T20:00:00")
        assert tournament_status(t, datetime(2025, 4, 9)) == "upcoming"

    def test_current(self):
        t = self._tournament("2025-04-10T08:00:00", "2025-04-13T20:00:00")
        assert tournament_status(t, datetime(2025, 4, 11)) == "current"

    def test_completed(self):
        t = self._tournament("2025-04-10T08:00:00", "2025-04-13T20:00:00")
        assert tournament_status(t, datetime(2025, 4, 14)) == "completed"

    def test_no_start_is_upcoming(self):
        assert tournament_status(self._tournament(None, None), datetime(2025, 4, 11)) == "upcoming"

    def test_no_end_never_completes(self):
        t = self._tournament("2025-04-10T08:00:00", None)
        assert tournament_status(t, datetime(2030, 1, 1)) == "current"


class TestNormalization:
    def test_team_defaults(self):
        entry = entry_from_team(Team(id=1, tour_card_id=7, position="CUT", round_one=71), name="Alice")
        assert entry.kind == "team"
        assert entry.name == "Alice"
        assert entry.thru == 0
        assert entry.tag == CUT
        assert entry.owner_id == 7
        assert entry.rounds == (71, None, None, None)
        assert entry.ranking_key == SENTINEL_SCORE + 444

    def test_golfer_fields(self):
        entry = entry_from_golfer(Golfer(id=5, player_name="Jon Rahm", position="T3", pos_change=2, score=-4, thru=18))
        assert entry.kind == "golfer"
        assert entry.name == "Jon Rahm"
        assert entry.tag == ACTIVE
        assert entry.pos_change == 2
        assert entry.ranking_key == -4

    def test_round_score(self):
        entry = Entry(id=1, kind="team", rounds=(68, 70, None, None))
        assert entry.round_score(2) == 70
        assert entry.round_score(3) is None
        assert entry.round_score(5) is None


class TestSortEntries:
    def test_mixed_statuses(self):
        entries = [
            Entry(id="A", kind="team", score=-3, thru=10),
            Entry(id="B", kind="team", score=-5, thru=12, tag=CUT),
            Entry(id="C", kind="team", score=-1, thru=9),
        ]
        assert [e.id for e in sort_entries(entries)] == ["A", "C", "B"]

    def test_equal_keys_order_by_thru(self):
        entries = [
            Entry(id="late", kind="team", score=-2, thru=14),
            Entry(id="early", kind="team", score=-2, thru=5),
        ]
        assert [e.id for e in sort_entries(entries)] == ["early", "late"]

    def test_missing_score_goes_last_among_active(self):
        entries = [
            Entry(id="none", kind="team", score=None, thru=3),
            Entry(id="over", kind="team", score=40, thru=18),
        ]
        assert [e.id for e in sort_entries(entries)] == ["over", "none"]

    def test_missing_thru_treated_as_zero(self):
        entries = [
            Entry(id="b", kind="golfer", score=0, thru=4),
            Entry(id="a", kind="golfer", score=0, thru=None),
        ]
        assert [e.id for e in sort_entries(entries)] == ["a", "b"]

    def test_cut_entry_follows_active_entries(self):
        entries = [
            Entry(id="mid", kind="team", score=-5),
            Entry(id="cut", kind="team", score=2, tag=CUT),
            Entry(id="lead", kind="team", score=-10),
        ]
        ranked = sort_entries(entries)
        assert [e.id for e in ranked] == ["lead", "mid", "cut"]
        assert [e.ranking_key for e in ranked] == [-10, -5, 446]

    def test_ranking_twice_gives_same_order(self):
        entries = [
            Entry(id="a", kind="team", score=-2, thru=14),
            Entry(id="b", kind="team", score=-2, thru=14),
            Entry(id="c", kind="team", score=1, thru=3, tag=WITHDRAWN),
            Entry(id="d", kind="team", score=None, thru=9),
            Entry(id="e", kind="team", score=-6, thru=14),
        ]
        original = list(entries)

        first = sort_entries(entries)
        second = sort_entries(entries)

        assert [e.id for e in first] == [e.id for e in second]
        assert entries == original


class TestNormalizationOfStoredRows:
    """Rows built after the tables exist omit fields differently from plain dataclasses."""

    @pytest.fixture(autouse=True)
    def tables(self):
        return create_tables(connect("sqlite:///:memory:"))

    def test_partial_team(self):
        entry = entry_from_team(Team(id=1, tournament_id=1, tour_card_id=10, score=-3))
        assert entry.thru == 0
        assert entry.today is None
        assert entry.position is None
        assert entry.tag == ACTIVE
        assert entry.rounds == (None, None, None, None)
        assert format_score(entry.today) == "-"

    def test_partial_team_without_card(self):
        entry = entry_from_team(Team(id=1, score=2))
        assert entry.owner_id is None
        assert entry.ranking_key == 2

    def test_partial_golfer(self):
        entry = entry_from_golfer(Golfer(id=5, player_name="Tom Kim"))
        assert entry.score is None
        assert entry.pos_change is None
        assert entry.thru == 0
        assert entry.ranking_key == SENTINEL_SCORE

    def test_partial_tournament_is_upcoming(self):
        assert tournament_status(Tournament(id=3, name="TBD"), datetime(2025, 4, 11)) == "upcoming"

    def test_field_value_treats_unset_as_missing(self):
        team = Team(id=1)
        assert field_value(team, "thru", 0) == 0
        assert field_value(team, "position") is None
