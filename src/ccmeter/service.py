import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from ccmeter.aggregator import aggregate_file
from ccmeter.config import Settings
from ccmeter.metrics import MetricsUpdater
from ccmeter.models import PlanLimits, UsageSummary
from ccmeter.sources import find_log_files
from ccmeter.state import (
    NO_DATA_MESSAGE,
    ServiceStatus,
    StatePublisher,
    UsageState,
)
from ccmeter.watcher import ChangeWatcher
from ccmeter.window import compute_window

logger = structlog.get_logger()

# a file written within this period marks the user as active
ACTIVITY_THRESHOLD = timedelta(seconds=30)
ACTIVITY_CHECK_INTERVAL = 3.0
# quiet period after the last change notification before refreshing
DEBOUNCE_DELAY = 2.0


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


def _local_midnight(day: "date") -> "datetime":
    # a naive datetime is interpreted in the host's local timezone
    return datetime(day.year, day.month, day.day).astimezone()


def period_cutoffs(now: "datetime") -> "tuple[datetime, datetime, datetime]":
    """
    returns the local start of today, of the current ISO week
    (Monday) and of the current month for the given instant.
    """
    today = now.astimezone().date()
    return (
        _local_midnight(today),
        _local_midnight(today - timedelta(days=today.weekday())),
        _local_midnight(today.replace(day=1)),
    )


class UsageService:
    """
    UsageService owns the published usage state. It re-aggregates all
    transcript files on a timer, on manual request and, debounced, on
    filesystem changes, and keeps an activity flag up to date.

    Only one refresh body runs at a time; concurrent requests queue
    behind it. Results of a refresh that started before stop(), or that
    is older than the state already published, are dropped.
    """

    def __init__(
        self,
        settings: "Settings",
        publisher: "StatePublisher | None" = None,
        metrics: "MetricsUpdater | None" = None,
        clock: "Callable[[], datetime]" = _utcnow,
        debounce_delay: "float" = DEBOUNCE_DELAY,
        activity_interval: "float" = ACTIVITY_CHECK_INTERVAL,
    ) -> "None":
        self._settings = settings
        self.publisher = publisher or StatePublisher()
        self._metrics = metrics
        self._clock = clock
        self._debounce_delay = debounce_delay
        self._activity_interval = activity_interval

        self._state = UsageState()
        self._refresh_lock: "asyncio.Lock" = asyncio.Lock()
        # bumped on stop so in-flight work can tell it was abandoned
        self._generation = 0
        self._running = False
        self._stop_event: "asyncio.Event" = asyncio.Event()
        self._watchers: "list[ChangeWatcher]" = []
        self._periodic_task: "asyncio.Task[None] | None" = None
        self._activity_task: "asyncio.Task[None] | None" = None
        self._debounce_task: "asyncio.Task[None] | None" = None
        # strong references for fire-and-forget tasks
        self._background: "set[asyncio.Task[Any]]" = set()

    @property
    def state(self) -> "UsageState":
        return self._state

    @property
    def settings(self) -> "Settings":
        return self._settings

    @property
    def plan_limits(self) -> "PlanLimits":
        return self._settings.limits

    @property
    def is_running(self) -> "bool":
        return self._running

    async def start(self) -> "None":
        """
        runs an initial refresh, then starts watching the transcript
        roots and the periodic refresh and activity loops.
        """
        if self._running:
            return

        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(
            "service_starting",
            plan=self._settings.plan.value,
            refresh_interval=self._settings.refresh_interval,
        )

        await self.refresh()

        for base_dir in self._settings.base_dirs:
            watcher = ChangeWatcher()
            if watcher.watch(base_dir, self.notify_change):
                self._watchers.append(watcher)

        self._periodic_task = self._spawn(self._periodic_refresh())
        self._activity_task = self._spawn(self._activity_loop())
        logger.info("service_started", watched=len(self._watchers))

    async def stop(self) -> "None":
        """
        cancels timers and watchers. A refresh still executing is
        left to finish but its result is not published.
        """
        if not self._running:
            return

        self._running = False
        self._generation += 1
        self._stop_event.set()

        tasks = [
            t
            for t in (self._periodic_task, self._activity_task, self._debounce_task)
            if t is not None
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._periodic_task = None
        self._activity_task = None
        self._debounce_task = None

        for watcher in self._watchers:
            await watcher.stop()
        self._watchers.clear()
        logger.info("service_stopped")

    def apply_settings(self, settings: "Settings") -> "None":
        """
        swaps in new settings. The periodic loop is restarted so a new
        refresh interval takes effect right away.
        """
        self._settings = settings
        logger.info(
            "settings_applied",
            plan=settings.plan.value,
            refresh_interval=settings.refresh_interval,
        )
        if self._metrics is not None:
            self._metrics.set_plan_limits(settings.limits)

        if self._running and self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = self._spawn(self._periodic_refresh())

    def notify_change(self) -> "None":
        """
        handles a filesystem change notification: flags activity now
        and (re)starts the debounce timer. A refresh that is already
        executing is never cancelled.
        """
        if not self._state.is_active:
            self._set_state(is_active=True)

        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = self._spawn(self._debounced_refresh())

    async def refresh(self) -> "None":
        async with self._refresh_lock:
            await self._refresh()

    async def _refresh(self) -> "None":
        generation = self._generation
        now = self._clock()
        started = time.monotonic()
        previous = self._state

        self._set_state(status=ServiceStatus.REFRESHING, is_loading=True, error=None)
        logger.debug("refresh_start", now=now.isoformat())

        try:
            totals = await asyncio.to_thread(self._collect, now)
        except Exception as exc:
            logger.exception("refresh_failed")
            if self._metrics is not None:
                self._metrics.inc_refresh_error()
            if generation == self._generation:
                self._set_state(
                    status=ServiceStatus.ERROR, is_loading=False, error=str(exc)
                )
            else:
                self._abandon(previous)
            return

        if generation != self._generation:
            self._abandon(previous)
            return

        if totals is None:
            logger.warning(
                "no_log_files_found",
                base_dirs=[str(d) for d in self._settings.base_dirs],
            )
            self._set_state(
                status=ServiceStatus.ERROR,
                is_loading=False,
                error=NO_DATA_MESSAGE,
            )
            return

        published_for = self._state.computed_for
        if published_for is not None and now < published_for:
            logger.info(
                "refresh_discarded",
                reason="stale",
                now=now.isoformat(),
                published_for=published_for.isoformat(),
            )
            self._set_state(status=ServiceStatus.IDLE, is_loading=False)
            return

        today, this_week, this_month = totals
        self._set_state(
            status=ServiceStatus.IDLE,
            today=today,
            this_week=this_week,
            this_month=this_month,
            window=compute_window(today, now),
            is_loading=False,
            error=None,
            last_refresh=self._clock(),
            computed_for=now,
        )

        duration = time.monotonic() - started
        if self._metrics is not None:
            self._metrics.observe_refresh_duration(duration)
        logger.info(
            "refresh_done",
            duration=round(duration, 3),
            today_tokens=today.total_tokens,
            month_messages=this_month.message_count,
        )

        try:
            await self._check_activity()
        except Exception:
            logger.exception("activity_check_failed")

    def _abandon(self, previous: "UsageState") -> "None":
        # the service stopped while this refresh ran, put back the
        # snapshot from before it started but never leave it loading
        logger.info("refresh_discarded", reason="stopped")
        self._set_state(
            status=previous.status,
            error=previous.error,
            is_loading=False,
        )

    def _collect(
        self,
        now: "datetime",
    ) -> "tuple[UsageSummary, UsageSummary, UsageSummary] | None":
        """
        aggregates every eligible file for the three horizons. Runs in
        a worker thread. Returns None when no transcript file exists.
        """
        files = find_log_files(self._settings.base_dirs)
        if not files:
            return None

        day_start, week_start, month_start = period_cutoffs(now)
        today = UsageSummary.empty()
        this_week = UsageSummary.empty()
        this_month = UsageSummary.empty()

        for log_file in files:
            # untouched since the month began, can't hold this month's data
            if log_file.mtime < month_start:
                continue

            this_month = this_month + aggregate_file(log_file.path, month_start)
            this_week = this_week + aggregate_file(log_file.path, week_start)
            today = today + aggregate_file(log_file.path, day_start)

        return today, this_week, this_month

    async def _check_activity(self) -> "None":
        generation = self._generation
        files = await asyncio.to_thread(find_log_files, self._settings.base_dirs)
        now = _utcnow()
        active = any(now - f.mtime < ACTIVITY_THRESHOLD for f in files)

        if generation != self._generation:
            return
        if active != self._state.is_active:
            self._set_state(is_active=active)

    async def _debounced_refresh(self) -> "None":
        await asyncio.sleep(self._debounce_delay)
        # from here on a new notification starts a fresh timer instead
        # of cancelling this refresh
        self._debounce_task = None
        await self.refresh()

    async def _periodic_refresh(self) -> "None":
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._settings.refresh_interval,
                )
            except TimeoutError:
                # shielded so restarting or stopping the loop never aborts a
                # refresh that is already executing
                await asyncio.shield(self._spawn(self.refresh()))

    async def _activity_loop(self) -> "None":
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._activity_interval,
                )
            except TimeoutError:
                try:
                    await self._check_activity()
                except Exception:
                    logger.exception("activity_check_failed")

    def _set_state(self, **changes: "Any") -> "None":
        self._state = replace(self._state, **changes)
        self.publisher.publish(self._state)

    def _spawn(self, coro: "Coroutine[Any, Any, None]") -> "asyncio.Task[None]":
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
