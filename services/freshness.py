"""Freshness controller - keeps a viewed event's leaderboard snapshot current.

States per viewed event:

    idle ──(live)──> polling ──(timer / manual)──> refreshing ──> polling
      ^                 │
      └──(not live / ended / closed)

A stale snapshot is fetched when the view opens, before the first render.
Only one refresh runs at a time; callers that arrive while one is in flight
wait for it instead of starting another fetch.
"""
import asyncio
import logging
from datetime import datetime, timedelta

from apscheduler.jobstores.base import JobLookupError

from config import (
    REFRESH_COOLDOWN_SECONDS,
    REFRESH_INTERVAL_SECONDS,
    REFRESH_TIMEOUT_SECONDS,
    STALE_AFTER_SECONDS,
    VIEW_IDLE_SECONDS,
)
from services.cache import LeaderboardCache
from services.status import tournament_status

logger = logging.getLogger(__name__)

IDLE = "idle"
POLLING = "polling"
REFRESHING = "refreshing"


class FreshnessController:
    """Polling and refresh policy for one viewed event.

    The data source, cache, scheduler and clock are injected. The controller
    is the only writer of its event's snapshot. Use it as an async context
    manager, or call open() and close() around the view's lifetime.
    """

    def __init__(self, tournament, source, cache, scheduler, clock=datetime.now,
                 interval=REFRESH_INTERVAL_SECONDS, stale_after=STALE_AFTER_SECONDS,
                 timeout=REFRESH_TIMEOUT_SECONDS, cooldown=REFRESH_COOLDOWN_SECONDS):
        self.tournament = tournament
        self.event_id = tournament.id
        self.source = source
        self.cache = cache
        self.scheduler = scheduler
        self.clock = clock
        self.interval = interval
        self.stale_after = timedelta(seconds=stale_after)
        self.timeout = timeout
        self.cooldown = cooldown

        self.state = IDLE
        self.last_error = None
        self._job = None
        self._inflight = None
        self._pending_fetches = set()
        self._cooldown_handle = None
        self._cooling_down = False
        self._opened = False
        self._closed = False

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def is_polling(self) -> bool:
        return self._job is not None

    @property
    def is_loading(self) -> bool:
        """True while refreshing and for the short cool-down after it."""
        return self.state == REFRESHING or self._cooling_down

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self):
        return self.cache.get(self.event_id)

    def is_stale(self) -> bool:
        refreshed_at = self.cache.refreshed_at(self.event_id)
        return refreshed_at is None or self.clock() - refreshed_at > self.stale_after

    async def open(self):
        """Mount the view: fetch first if stale, then poll while the event is live."""
        if self._closed:
            raise RuntimeError(f"Leaderboard controller for event {self.event_id} is closed")
        if self._opened:
            return
        self._opened = True
        await self.ensure_fresh()
        self.set_live(bool(self.tournament.live_play))

    async def ensure_fresh(self) -> bool:
        """Refresh only if the cached snapshot is missing or stale."""
        if not self.is_stale():
            return True
        logger.info(f"Leaderboard for event {self.event_id} is stale, refreshing before render")
        return await self.refresh()

    def update_tournament(self, tournament):
        """Take a newer copy of the same event and follow its live-play flag."""
        if tournament.id != self.event_id:
            raise ValueError(f"Controller for event {self.event_id} cannot follow event {tournament.id}")
        self.tournament = tournament
        self.set_live(bool(tournament.live_play))

    def set_live(self, live: bool):
        """Start or stop the polling timer."""
        if self._closed:
            return
        if live and self._job is None:
            self._job = self.scheduler.add_job(
                self.tick,
                'interval',
                seconds=self.interval,
                max_instances=1,
                coalesce=True,
                name=f"leaderboard-refresh-{self.event_id}",
            )
            if self.state == IDLE:
                self.state = POLLING
            logger.info(f"Polling leaderboard for event {self.event_id} every {self.interval}s")
        elif not live and self._job is not None:
            self._stop_timer()
            if self.state == POLLING:
                self.state = IDLE
            logger.info(f"Stopped polling leaderboard for event {self.event_id}")

    async def tick(self):
        """Timer callback: re-read the event, then refresh while it is still live."""
        if self._closed:
            return
        await self.reload_tournament()
        if not self.is_polling:
            return
        if tournament_status(self.tournament, self.clock()) == "completed":
            logger.info(f"Event {self.event_id} has ended, stopping leaderboard polling")
            self.set_live(False)
            return
        await self.refresh()

    async def reload_tournament(self):
        """Follow live-play changes made to the stored event since the view opened.

        A failed reload keeps the cached copy; a missing event stops polling.
        """
        try:
            tournament = await asyncio.wait_for(self.source.get_tournament(self.event_id), self.timeout)
        except Exception as e:
            logger.warning(f"Could not reload event {self.event_id}, keeping cached copy: {e}")
            return
        if self._closed:
            return
        if tournament is None:
            logger.warning(f"Event {self.event_id} no longer exists, stopping leaderboard polling")
            self.set_live(False)
            return
        self.update_tournament(tournament)

    async def refresh(self) -> bool:
        """Fetch a new snapshot, or join the refresh already in flight.

        Returns True when a new snapshot was stored. Never raises for fetch
        failures; those are logged and leave the previous snapshot in place.
        """
        if self._closed:
            return False
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh())
        return await asyncio.shield(self._inflight)

    async def close(self):
        """Tear down: clear the timer and cancel fetches still running."""
        if self._closed:
            return
        self._closed = True
        self._stop_timer()
        self._cancel_cooldown()
        for fetch in list(self._pending_fetches):
            fetch.cancel()
        self.state = IDLE
        logger.debug(f"Closed leaderboard controller for event {self.event_id}")

    async def _refresh(self) -> bool:
        sequence = self.cache.begin(self.event_id)
        self.state = REFRESHING
        self._cancel_cooldown()

        # Fetches left over from timed-out refreshes can no longer be committed
        for stale in list(self._pending_fetches):
            logger.debug(f"Cancelling superseded fetch for event {self.event_id}")
            stale.cancel()

        fetch = asyncio.ensure_future(self._fetch(sequence))
        self._pending_fetches.add(fetch)
        fetch.add_done_callback(self._pending_fetches.discard)

        try:
            done, _ = await asyncio.wait({fetch}, timeout=self.timeout)
            if fetch not in done:
                logger.error(f"Leaderboard refresh for event {self.event_id} timed out after {self.timeout}s")
                self.last_error = "Refresh timed out"
                refreshed = False
            elif fetch.cancelled():
                refreshed = False
            else:
                refreshed = fetch.result()
        finally:
            self._inflight = None
            if not self._closed:
                self.state = POLLING if self._job is not None else IDLE
                self._start_cooldown()
        return refreshed

    async def _fetch(self, sequence: int) -> bool:
        try:
            teams, competitors, tour_cards = await asyncio.gather(
                self.source.get_teams_by_event(self.event_id),
                self.source.get_competitors_by_event(self.event_id),
                self.source.get_tour_cards_by_event(self.event_id),
            )
        except Exception as e:
            logger.error(f"Leaderboard refresh failed for event {self.event_id}: {e}", exc_info=True)
            self.last_error = str(e) or e.__class__.__name__
            return False

        if self._closed:
            logger.debug(f"Discarding fetch {sequence} for closed view of event {self.event_id}")
            return False

        stored = self.cache.commit(self.event_id, sequence, teams, competitors, tour_cards, self.clock())
        if stored:
            self.last_error = None
            logger.info(f"Leaderboard refreshed for event {self.event_id}: "
                        f"{len(teams)} teams, {len(competitors)} golfers")
        return stored

    def _stop_timer(self):
        if self._job is None:
            return
        try:
            self.scheduler.remove_job(self._job.id)
        except JobLookupError:
            logger.debug(f"Polling job for event {self.event_id} was already removed")
        self._job = None

    def _start_cooldown(self):
        if self.cooldown <= 0:
            return
        self._cooling_down = True
        loop = asyncio.get_running_loop()
        self._cooldown_handle = loop.call_later(self.cooldown, self._end_cooldown)

    def _end_cooldown(self):
        self._cooling_down = False
        self._cooldown_handle = None

    def _cancel_cooldown(self):
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._cooldown_handle = None
        self._cooling_down = False


class LeaderboardView:
    """One viewer's leaderboard: a single controller at a time.

    Switching to a different event closes the old controller before the new
    one is created, so no orphaned timer keeps writing to the cache.
    """

    def __init__(self, factory):
        self._factory = factory
        self.controller = None

    async def show(self, tournament) -> FreshnessController:
        current = self.controller
        if current is not None and current.event_id == tournament.id:
            current.update_tournament(tournament)
            await current.ensure_fresh()
            return current

        if current is not None:
            await current.close()
            self.controller = None

        controller = self._factory(tournament)
        self.controller = controller
        await controller.open()
        return controller

    async def close(self):
        if self.controller is not None:
            await self.controller.close()
            self.controller = None


class LeaderboardHub:
    """Shared controllers for the web app, one per viewed event.

    Pages and their polling table fragments call watch() on every request.
    A controller nobody has watched for idle_after seconds is released by a
    periodic sweep, so abandoned events stop polling.
    """

    def __init__(self, source, scheduler, cache: LeaderboardCache = None, clock=datetime.now,
                 idle_after=VIEW_IDLE_SECONDS, sweep_interval=REFRESH_INTERVAL_SECONDS,
                 **controller_options):
        self.source = source
        self.scheduler = scheduler
        self.cache = cache or LeaderboardCache()
        self.clock = clock
        self.idle_after = timedelta(seconds=idle_after)
        self.sweep_interval = sweep_interval
        self.controller_options = controller_options
        self._controllers = {}
        self._last_watched = {}
        self._sweep_job = None

    def make_controller(self, tournament) -> FreshnessController:
        return FreshnessController(
            tournament,
            self.source,
            self.cache,
            self.scheduler,
            clock=self.clock,
            **self.controller_options,
        )

    def view(self) -> LeaderboardView:
        """A per-viewer view over this hub's cache, source and scheduler."""
        return LeaderboardView(self.make_controller)

    def get(self, event_id):
        return self._controllers.get(event_id)

    async def watch(self, tournament) -> FreshnessController:
        """Open (or reuse) the event's controller and make sure its data is fresh."""
        self._last_watched[tournament.id] = self.clock()
        await self.release_idle()

        controller = self._controllers.get(tournament.id)
        if controller is None:
            controller = self.make_controller(tournament)
            self._controllers[tournament.id] = controller
            self._start_sweep()
            await controller.open()
        else:
            controller.update_tournament(tournament)
            await controller.ensure_fresh()
        return controller

    async def release_idle(self) -> list:
        """Close controllers that have not been watched within idle_after."""
        cutoff = self.clock() - self.idle_after
        idle = [event_id for event_id, seen in self._last_watched.items()
                if seen < cutoff and event_id in self._controllers]
        for event_id in idle:
            logger.info(f"Releasing idle leaderboard view for event {event_id}")
            await self.release(event_id)
        return idle

    async def release(self, event_id):
        self._last_watched.pop(event_id, None)
        controller = self._controllers.pop(event_id, None)
        if controller is not None:
            await controller.close()

    async def close(self):
        if self._sweep_job is not None:
            try:
                self.scheduler.remove_job(self._sweep_job.id)
            except JobLookupError:
                logger.debug("Idle sweep job was already removed")
            self._sweep_job = None
        for event_id in list(self._controllers):
            await self.release(event_id)

    def _start_sweep(self):
        if self._sweep_job is not None:
            return
        self._sweep_job = self.scheduler.add_job(
            self.release_idle,
            'interval',
            seconds=self.sweep_interval,
            max_instances=1,
            coalesce=True,
            name="leaderboard-release-idle",
        )
