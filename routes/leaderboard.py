"""Leaderboard routes."""
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime
from urllib.parse import quote

from fasthtml.common import *
from fastcore.xtras import UNSET
from starlette.responses import JSONResponse, RedirectResponse

from components.layout import page_shell, card, alert
from db import read
from routes.utils import (
    get_db,
    get_hub,
    find_by_id,
    format_score,
    format_position_change,
    format_thru,
    format_time_ago,
)
from services.leaderboard import (
    PGA_TOUR,
    PLAYOFF_LABELS,
    build_leaderboard,
    cumulative_rank,
    delta_tone,
    round_delta,
    round_rank,
)
from services.sources import StoreSource
from services.status import field_value, tournament_status

logger = logging.getLogger(__name__)

_API_COLLECTIONS = {
    "teams": StoreSource.get_teams_by_event,
    "golfers": StoreSource.get_competitors_by_event,
    "tour-cards": StoreSource.get_tour_cards_by_event,
}


def _row_dict(row) -> dict:
    data = asdict(row) if is_dataclass(row) else dict(vars(row))
    return {k: (None if v is UNSET else v) for k, v in data.items()}


async def _find_tournament(db, tournament_id):
    return await StoreSource(db).get_tournament(tournament_id)


async def _tier_for(db, tournament):
    """The scoring tier of an event, or None when it has none."""
    tier_id = field_value(tournament, "tier_id")
    if tier_id is None:
        return None
    rows = await read(db.tiers, where="id = :id", where_args={"id": tier_id})
    return rows[0] if rows else None


async def _viewable_tournaments(db, now):
    """Current and completed events, current first, then most recent."""
    viewable = [t for t in await read(db.tournaments) if tournament_status(t, now) != "upcoming"]
    viewable.sort(key=lambda t: (tournament_status(t, now) == "current", t.start_date or ''), reverse=True)
    return viewable


def _tour_tabs(tours, board):
    """(key, label) pairs for every tour on the board plus the golfer board."""
    tours = {t.id: t for t in tours}
    tabs = []
    for tour_id in board.tours:
        if board.playoff:
            tabs.append((str(tour_id), PLAYOFF_LABELS[tour_id]))
            continue
        tour = tours.get(tour_id)
        tabs.append((str(tour_id), (tour.short_form or tour.name) if tour else f"Tour {tour_id}"))
    tabs.append((PGA_TOUR, "PGA"))
    return tabs


def _board_key(board, tour: str):
    """Map the tour query value back to a board key."""
    if tour == PGA_TOUR:
        return PGA_TOUR
    for tour_id in board.tours:
        if str(tour_id) == tour:
            return tour_id
    return next(iter(board.tours), PGA_TOUR)


def _leaderboard_table(tournament, board, tour_key, controller):
    """Ranked table for one tour; polls itself while the event is live."""
    rows = board.rows_for(tour_key)
    refresh_attrs = {}
    if controller.is_polling:
        refresh_attrs = dict(
            hx_get=f"/leaderboard/{tournament.id}/table?tour={tour_key}",
            hx_trigger=f"every {controller.interval}s",
            hx_swap="outerHTML",
        )

    if not rows:
        return Div(P("No scores for this tour yet."), id="leaderboard-table", **refresh_attrs)

    show_money = tour_key != PGA_TOUR and any(r.points is not None for r in rows)

    def row(r):
        entry = r.entry
        change = format_position_change(r.position_change)
        score_cls = ""
        if entry.is_terminal:
            score_cls = "missed-cut"
        elif entry.score is not None:
            score_cls = "under-par" if entry.score < 0 else ("over-par" if entry.score > 0 else "")
        return Tr(
            Td(r.position, cls="rank"),
            Td(change, cls=f"pos-change {'up' if r.position_change > 0 else 'down'}" if change else "pos-change"),
            Td(entry.name or "Unknown", cls="player-name"),
            Td(format_score(entry.score), cls=f"score {score_cls}"),
            Td(format_score(entry.today)),
            Td(format_thru(entry.thru)),
            Td(str(r.points) if show_money and r.points is not None else ""),
            Td(f"${r.earnings:,.2f}" if show_money and r.earnings else ""),
            cls="missed-cut-row" if entry.is_terminal else "",
        )

    return Div(
        Table(
            Thead(Tr(Th("Pos"), Th(""), Th("Player"), Th("Score"), Th("Today"), Th("Thru"),
                     Th("Pts" if show_money else ""), Th("$" if show_money else ""))),
            Tbody(*[row(r) for r in rows]),
            cls="leaderboard-table"
        ),
        id="leaderboard-table",
        **refresh_attrs
    )


def _sync_info(board, controller, now):
    """'Updated X ago' indicator; stops advancing while refreshes fail."""
    text = f"Updated {format_time_ago(board.refreshed_at, now).lower()}" if board else "Never updated"
    if controller.last_error:
        text += " (refresh failed, showing last update)"
    return Span(text, cls="sync-info")


def _stats_table(board, tour_key):
    """Per-round score, round rank, cumulative rank and delta to the field average."""
    rows = board.rows_for(tour_key)
    peers = board.entries_for(tour_key)
    rounds = board.current_round or 0

    def round_cells(entry, n):
        delta = round_delta(entry, n, peers)
        tone = delta_tone(delta)
        return (
            Td(str(entry.round_score(n)) if entry.round_score(n) is not None else "-"),
            Td(round_rank(entry, n, peers) or "-", cls="round-rank"),
            Td(cumulative_rank(entry, n, peers) or "-", cls="cumulative-rank"),
            Td(format_score(delta) if delta is not None else "-", cls=f"round-delta delta-{tone or 'none'}"),
        )

    header = [Th("Pos"), Th("Player"), Th("Score")]
    for n in range(1, rounds + 1):
        header += [Th(f"R{n}"), Th("Rank"), Th("Cum"), Th("+/- Avg")]

    body = []
    for r in rows:
        cells = [Td(r.position, cls="rank"), Td(r.entry.name or "Unknown"), Td(format_score(r.entry.score))]
        for n in range(1, rounds + 1):
            cells.extend(round_cells(r.entry, n))
        body.append(Tr(*cells))

    return Table(Thead(Tr(*header)), Tbody(*body), cls="leaderboard-table stats-table")


def setup_leaderboard_routes(app):
    """Register leaderboard routes."""

    @app.get("/leaderboard")
    async def leaderboard_page(request, tournament_id: int = None, tour: str = None, message: str = None):
        db = get_db()
        hub = get_hub()
        now = datetime.now()

        viewable = await _viewable_tournaments(db, now)
        if not viewable:
            return page_shell(
                "Leaderboard",
                card("No Tournament", P("No tournaments available yet.")),
            )

        tournament = find_by_id(viewable, tournament_id) or viewable[0]
        controller = await hub.watch(tournament)
        board = build_leaderboard(
            controller.snapshot, tournament, now, tier=await _tier_for(db, tournament)
        )

        tournament_selector = Div(
            Label("Tournament:", fr="tournament-select"),
            Select(
                *[Option(t.name + (" (Live)" if t.live_play else ""), value=str(t.id), selected=(t.id == tournament.id))
                  for t in viewable],
                name="tournament_id",
                id="tournament-select",
                onchange="window.location.href='/leaderboard?tournament_id=' + this.value"
            ),
            cls="tournament-selector"
        ) if len(viewable) > 1 else None

        refresh_button = Form(
            Button("Refreshing..." if controller.is_loading else "Refresh Scores",
                   type="submit", cls="btn btn-sm btn-primary"),
            Input(type="hidden", name="tournament_id", value=str(tournament.id)),
            Input(type="hidden", name="tour", value=tour or ""),
            action="/leaderboard/refresh",
            method="post",
            style="display:inline;"
        )

        if board is None:
            content = P("No leaderboard data yet. Scores will appear once they have been fetched.")
            tabs = None
        else:
            tour_key = _board_key(board, tour)
            base_url = f"/leaderboard?tournament_id={tournament.id}"
            tabs = Div(
                *[A(label, href=f"{base_url}&tour={key}", cls=f"tab {'tab-active' if key == str(tour_key) else ''}")
                  for key, label in _tour_tabs(await read(db.tours), board)],
                A("Stats", href=f"/leaderboard/{tournament.id}/stats?tour={tour_key}", cls="tab"),
                cls="tabs"
            )
            content = _leaderboard_table(tournament, board, tour_key, controller)

        status_badge = None
        if board is not None and board.status == "current":
            status_badge = Span("Live" if tournament.live_play else "In Progress", cls="badge badge-live")
        elif board is not None and board.status == "completed":
            status_badge = Span("Final", cls="badge badge-final")

        return page_shell(
            "Leaderboard",
            Div(
                alert(message, "warning") if message else None,
                Div(
                    Div(
                        H1(f"Leaderboard: {tournament.name}"),
                        status_badge,
                        P(f"Round {board.current_round}") if board is not None and board.current_round else None,
                        cls="leaderboard-title"
                    ),
                    Div(
                        tournament_selector,
                        Div(
                            _sync_info(board, controller, now),
                            refresh_button,
                            style="display: flex; gap: 10px; align-items: center;"
                        ),
                        cls="leaderboard-controls"
                    ),
                    cls="leaderboard-header"
                ),
                tabs,
                content,
                cls="leaderboard-page"
            ),
        )

    @app.get("/leaderboard/{tournament_id}/table")
    async def leaderboard_table(request, tournament_id: int, tour: str = None):
        """Table fragment re-requested by htmx on the polling interval."""
        db = get_db()
        now = datetime.now()
        tournament = await _find_tournament(db, tournament_id)
        if not tournament:
            return Div(P("Tournament not found."), id="leaderboard-table")

        controller = await get_hub().watch(tournament)
        board = build_leaderboard(
            controller.snapshot, tournament, now, tier=await _tier_for(db, tournament)
        )
        if board is None:
            return Div(P("No leaderboard data yet."), id="leaderboard-table")
        return _leaderboard_table(tournament, board, _board_key(board, tour), controller)

    @app.post("/leaderboard/refresh")
    async def refresh_scores(request, tournament_id: int, tour: str = None):
        """Manual refresh; joins a refresh already in progress instead of starting another."""
        db = get_db()
        tournament = await _find_tournament(db, tournament_id)
        if not tournament:
            return RedirectResponse("/leaderboard", status_code=303)

        controller = await get_hub().watch(tournament)
        refreshed = await controller.refresh()

        url = f"/leaderboard?tournament_id={tournament_id}"
        if tour:
            url += f"&tour={quote(tour)}"
        if not refreshed and controller.last_error:
            msg = "Could not refresh scores right now. Showing the last update."
            url += f"&message={quote(msg)}"
        return RedirectResponse(url, status_code=303)

    @app.get("/leaderboard/{tournament_id}/stats")
    async def leaderboard_stats(request, tournament_id: int, tour: str = None):
        """Round-by-round stats for one tour."""
        db = get_db()
        now = datetime.now()
        tournament = await _find_tournament(db, tournament_id)
        if not tournament:
            return RedirectResponse("/leaderboard", status_code=303)

        controller = await get_hub().watch(tournament)
        board = build_leaderboard(controller.snapshot, tournament, now, tier=await _tier_for(db, tournament))
        if board is None:
            return page_shell("Stats", card("No Data", P("No leaderboard data yet.")))

        tour_key = _board_key(board, tour)
        return page_shell(
            "Stats",
            Div(
                H1(f"Stats: {tournament.name}"),
                A("Back to leaderboard", href=f"/leaderboard?tournament_id={tournament.id}&tour={tour_key}"),
                _stats_table(board, tour_key),
                cls="stats-page"
            ),
        )

    @app.get("/api/tournaments/{tournament_id}")
    async def tournament_api(request, tournament_id: int):
        """One stored event; re-read by HttpSource while polling."""
        tournament = await _find_tournament(get_db(), tournament_id)
        if tournament is None:
            return JSONResponse({"error": f"Unknown tournament: {tournament_id}"}, status_code=404)
        return JSONResponse(_row_dict(tournament))

    @app.get("/api/tournaments/{tournament_id}/{collection}")
    async def leaderboard_api(request, tournament_id: int, collection: str):
        """Stored rows for one event; read by HttpSource."""
        reader = _API_COLLECTIONS.get(collection)
        if reader is None:
            return JSONResponse({"error": f"Unknown collection: {collection}"}, status_code=404)
        rows = await reader(StoreSource(get_db()), tournament_id)
        return JSONResponse([_row_dict(r) for r in rows])
