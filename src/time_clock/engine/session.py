"""Session engine: clock-in/out, breaks, reminders and cross-instance sync.

One ``SessionEngine`` serves one user session. Several engines (other
terminals, other processes) may share the same store; they keep each other
up to date with best-effort broadcasts plus a periodic sync, so the last
write to the store wins and a missed broadcast is corrected within one sync
interval.

Every public operation returns ``Ok(value)`` or ``Err(error)``; failures are
logged and reported through the ``ErrorReporter`` before being returned.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union
from uuid import uuid4

from time_clock.core import aggregation, breaks
from time_clock.core.clock import ClockService
from time_clock.core.errors import (
    AlreadyClockedIn,
    ClockInInFuture,
    Err,
    EngineShutDown,
    NoActiveBreak,
    NotClockedIn,
    NoUserSession,
    Ok,
    Result,
    TimeClockError,
    ValidationError,
)
from time_clock.core.models import (
    BreakPeriod,
    BreakType,
    DailyWorkSummary,
    EntryStatus,
    MonthlyWorkSummary,
    OvertimePolicy,
    SessionRecord,
    TimeEntry,
    WeeklyWorkSummary,
    WorkProgressMetrics,
)
from time_clock.core.storage import StorageGateway
from time_clock.engine.events import ENGINE_TOPIC, RealTimeUpdate, UpdateType
from time_clock.engine.pubsub import PubSub
from time_clock.engine.reporter import ErrorReporter
from time_clock.engine.scheduler import CancelHandle, Scheduler
from time_clock.export_import import export_summary
from time_clock.notifications.notifier import NotificationGateway, NullNotifier, Severity

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[RealTimeUpdate], Any]

WORK_TIMER = "work_reminder"
BREAK_TIMER = "break_reminder"
SYNC_TIMER = "sync"
CLEANUP_TIMER = "cleanup"


@dataclass
class EngineSettings:
    """Engine timing and feature switches."""

    work_reminder_interval: timedelta = timedelta(minutes=60)
    break_reminder_delay: timedelta = timedelta(minutes=45)
    sync_interval: timedelta = timedelta(minutes=5)
    cleanup_interval: timedelta = timedelta(minutes=60)
    clock_in_tolerance: timedelta = timedelta(minutes=5)
    storage_retries: int = 3
    enable_work_reminders: bool = True
    enable_break_reminders: bool = True
    enable_overtime_alerts: bool = True
    hourly_rate: float = 0.0
    topic: str = ENGINE_TOPIC

    @classmethod
    def from_config(cls, config: Any) -> "EngineSettings":
        """Build settings from the ``engine``, ``policy`` and ``sync`` config sections."""
        return cls(
            work_reminder_interval=timedelta(minutes=config.get("engine.work_reminder_minutes", 60)),
            break_reminder_delay=timedelta(minutes=config.get("engine.break_reminder_minutes", 45)),
            sync_interval=timedelta(minutes=config.get("engine.sync_interval_minutes", 5)),
            cleanup_interval=timedelta(minutes=config.get("engine.cleanup_interval_minutes", 60)),
            clock_in_tolerance=timedelta(
                minutes=config.get("engine.clock_in_tolerance_minutes", 5)
            ),
            storage_retries=config.get("engine.storage_retries", 3),
            enable_work_reminders=config.get("engine.enable_work_reminders", True),
            enable_break_reminders=config.get("engine.enable_break_reminders", True),
            enable_overtime_alerts=config.get("engine.enable_overtime_alerts", True),
            hourly_rate=float(config.get("policy.hourly_rate", 0.0)),
            topic=config.get("sync.topic", ENGINE_TOPIC),
        )


@dataclass
class EngineStatus:
    """Snapshot of engine state."""

    is_initialized: bool = False
    is_running: bool = False
    current_user: Optional[str] = None
    active_entry: Optional[TimeEntry] = None
    is_on_break: bool = False
    session_start_time: Optional[datetime] = None
    last_sync_time: Optional[datetime] = None
    error_count: int = 0
    last_error: Optional[str] = None


class SessionEngine:
    """Orchestrates one user's time clock session."""

    def __init__(
        self,
        store: StorageGateway,
        clock: ClockService,
        scheduler: Scheduler,
        notifier: Optional[NotificationGateway] = None,
        pubsub: Optional[PubSub] = None,
        policy: Optional[OvertimePolicy] = None,
        settings: Optional[EngineSettings] = None,
        reporter: Optional[ErrorReporter] = None,
        user_id: Optional[str] = None,
        instance_id: Optional[str] = None,
    ):
        """Initialize engine.

        Args:
            store: Shared storage gateway
            clock: Clock service (timezone and calendar)
            scheduler: Timer scheduler owned by this engine
            notifier: Notification gateway (default: discard notifications)
            pubsub: Cross-instance transport (optional)
            policy: Overtime policy (default: standard policy)
            settings: Engine settings (default: standard settings)
            reporter: Error reporter (default: one that notifies through ``notifier``)
            user_id: User to serve (can also be given to ``initialize``)
            instance_id: Unique id of this instance (default: random)
        """
        self.store = store
        self.clock = clock
        self.scheduler = scheduler
        self.notifier = notifier or NullNotifier()
        self.pubsub = pubsub
        self.policy = policy or OvertimePolicy()
        self.settings = settings or EngineSettings()
        self.reporter = reporter or ErrorReporter(self.notifier)
        self.instance_id = instance_id or uuid4().hex

        self._status = EngineStatus(current_user=user_id)
        self._listeners: list[Listener] = []
        self._timers: dict[str, CancelHandle] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._session: Optional[SessionRecord] = None
        self._lock = asyncio.Lock()
        self._shut_down = False

    # Public state

    @property
    def status(self) -> EngineStatus:
        return replace(self._status, active_entry=copy.deepcopy(self._status.active_entry))

    @property
    def session(self) -> Optional[SessionRecord]:
        return copy.deepcopy(self._session)

    @property
    def is_clocked_in(self) -> bool:
        return self._status.active_entry is not None

    @property
    def is_on_break(self) -> bool:
        return self._status.is_on_break

    @property
    def active_timers(self) -> list[str]:
        return sorted(self._timers)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a local update listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Lifecycle

    async def initialize(self, user_id: Optional[str] = None) -> Result[EngineStatus]:
        """Start the session, rejoining the user's open entry if there is one."""
        return await self._run("initialize", lambda: self._initialize(user_id))

    async def _initialize(self, user_id: Optional[str]) -> EngineStatus:
        if self._status.is_initialized:
            logger.debug("Engine already initialized")
            return self.status
        self._shut_down = False

        user = user_id or self._status.current_user
        if user is None:
            last = await self._store_call(lambda: self.store.load_last_session())
            user = last.user_id if last else None

        now = self.clock.now()
        if user is not None:
            self._status.current_user = user
            self._session = SessionRecord(user_id=user, start_time=now)
            active = await self._store_call(lambda: self.store.load_active_entry(user))
            self._set_active(active)
            if active is not None:
                logger.info(f"Rejoined open entry {active.id} for {user}")
                self._session.entry_ids.append(active.id)
                self._start_work_reminder()
                if active.open_break is not None:
                    self._start_break_reminder(active.open_break)

        self._timers[SYNC_TIMER] = self.scheduler.every(
            self.settings.sync_interval, self._periodic_sync
        )
        self._timers[CLEANUP_TIMER] = self.scheduler.every(
            self.settings.cleanup_interval, self._periodic_cleanup
        )
        if self.pubsub is not None:
            self._unsubscribe = self.pubsub.subscribe(self.settings.topic, self._on_message)

        self._status.is_initialized = True
        self._status.is_running = True
        self._status.session_start_time = now
        logger.info(f"Session engine {self.instance_id} initialized for {user or 'anonymous'}")
        await self._emit(UpdateType.PROGRESS_UPDATE, {"status": "initialized"})
        return self.status

    async def shutdown(self) -> Result[None]:
        """Cancel timers, flush the session record and drop listeners.

        Safe to call more than once and without ``initialize``.
        """
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        session, self._session = self._session, None
        self._shut_down = True
        self._status.is_initialized = False
        self._status.is_running = False
        self._listeners.clear()
        if session is None:
            return Ok(None)

        async def flush() -> None:
            session.end_time = self.clock.now()
            session.status = "completed"
            await self._store_call(lambda: self.store.save_session(session))
            await self.notifier.cleanup_expired(self.clock.now())
            logger.info(f"Session engine {self.instance_id} shut down")

        return await self._run("shutdown", flush)

    # Clock in/out

    async def clock_in(
        self, notes: Optional[str] = None, force: bool = False, at: Optional[datetime] = None
    ) -> Result[TimeEntry]:
        """Open a new time entry.

        Args:
            notes: Free-text notes
            force: Close an existing open entry at the new clock-in time first
            at: Clock-in instant (default: now); at most the tolerance ahead of now
        """
        return await self._run("clock_in", lambda: self._clock_in(notes, force, at), exclusive=True)

    async def _clock_in(
        self, notes: Optional[str], force: bool, at: Optional[datetime]
    ) -> TimeEntry:
        user = self._require_user()
        now = self.clock.now()
        when = self.clock.localize(at) if at is not None else now
        if when - now > self.settings.clock_in_tolerance:
            raise ClockInInFuture(
                f"Cannot clock in more than {self._minutes(self.settings.clock_in_tolerance)} "
                "minutes in the future",
                {"requested": when.isoformat(), "now": now.isoformat()},
            )

        existing = await self._store_call(lambda: self.store.load_active_entry(user))
        if existing is not None:
            if not force:
                raise AlreadyClockedIn(
                    context={"entry_id": existing.id, "clock_in": existing.clock_in.isoformat()}
                )
            closed = await self._store_call(
                lambda: self.store.close_entry(
                    existing.id, when, self.policy, "Closed by forced clock-in"
                )
            )
            logger.info(f"Forced clock-in closed entry {closed.id}")
            self._record_closed(closed)
            self._set_active(None)
            self._cancel_timer(BREAK_TIMER)
            await self._emit(UpdateType.CLOCK_OUT, {"entry": closed.to_dict()})

        entry = TimeEntry(user_id=user, clock_in=when, notes=notes, created_at=now, updated_at=now)
        created = await self._store_call(lambda: self.store.create_entry_if_none_active(entry))
        if not created:
            raise AlreadyClockedIn(
                "Another session clocked in at the same time", {"user_id": user}
            )

        self._set_active(entry)
        if self._session is not None:
            self._session.entry_ids.append(entry.id)
        self._start_work_reminder()
        await self._notify(
            "Clocked In",
            f"You've clocked in at {when:%I:%M %p}. Have a productive day!",
            Severity.SUCCESS,
        )
        await self._emit(UpdateType.CLOCK_IN, {"entry": entry.to_dict()})
        logger.info(f"{user} clocked in at {when.isoformat()}")
        return copy.deepcopy(entry)

    async def clock_out(
        self, at: Optional[datetime] = None, notes: Optional[str] = None
    ) -> Result[TimeEntry]:
        """Close the open entry, auto-completing any open break first."""
        return await self._run("clock_out", lambda: self._clock_out(at, notes), exclusive=True)

    async def _clock_out(self, at: Optional[datetime], notes: Optional[str]) -> TimeEntry:
        user = self._require_user()
        active = self._status.active_entry
        if active is None:
            active = await self._store_call(lambda: self.store.load_active_entry(user))
        if active is None:
            raise NotClockedIn()

        when = self.clock.localize(at) if at is not None else self.clock.now()
        entry_id = active.id
        try:
            closed = await self._store_call(
                lambda: self.store.close_entry(entry_id, when, self.policy, notes)
            )
        except NotClockedIn:
            # Closed elsewhere; drop the stale local copy
            self._set_active(None)
            self._cancel_reminders()
            raise

        self._set_active(None)
        self._cancel_reminders()
        self._record_closed(closed)

        message = f"You've clocked out at {when:%I:%M %p}. Total hours: {closed.total_hours or 0:.2f}"
        if closed.overtime_hours:
            message += f" (including {closed.overtime_hours:.2f} overtime hours)"
        await self._notify("Clocked Out", message, Severity.SUCCESS)
        await self._emit(UpdateType.CLOCK_OUT, {"entry": closed.to_dict()})
        logger.info(f"{user} clocked out at {when.isoformat()} ({closed.total_hours:.2f}h)")
        return closed

    # Breaks

    async def start_break(self, break_type: Union[str, BreakType]) -> Result[BreakPeriod]:
        """Start a break on the open entry."""
        return await self._run(
            "start_break", lambda: self._start_break(break_type), exclusive=True
        )

    async def _start_break(self, break_type: Union[str, BreakType]) -> BreakPeriod:
        entry = await self._load_current_entry()
        if entry is None:
            raise NotClockedIn("You must be clocked in to take a break")
        period = breaks.start_break(entry, break_type, self.clock.now())
        await self._store_call(lambda: self.store.save_entry(entry))

        self._set_active(entry)
        self._start_break_reminder(period)
        config = breaks.BREAK_TYPES[period.type]
        await self._notify(
            f"{config.name} Started",
            f"Suggested duration: {config.default_duration} minutes",
            Severity.INFO,
        )
        await self._emit(
            UpdateType.BREAK_START, {"entry": entry.to_dict(), "break": period.to_dict()}
        )
        return copy.deepcopy(period)

    async def end_break(self) -> Result[BreakPeriod]:
        """End the open break."""
        return await self._run("end_break", self._end_break, exclusive=True)

    async def _end_break(self) -> BreakPeriod:
        entry = await self._load_current_entry()
        if entry is None:
            raise NoActiveBreak()
        period = breaks.end_break(entry, self.clock.now())
        await self._store_call(lambda: self.store.save_entry(entry))

        self._set_active(entry)
        self._cancel_timer(BREAK_TIMER)
        config = breaks.BREAK_TYPES[period.type]
        await self._notify(
            "Break Ended", f"{config.name} ended. Duration: {period.duration} minutes", Severity.SUCCESS
        )
        await self._emit(
            UpdateType.BREAK_END, {"entry": entry.to_dict(), "break": period.to_dict()}
        )
        return copy.deepcopy(period)

    async def _load_current_entry(self) -> Optional[TimeEntry]:
        """Fresh copy of the open entry from the store."""
        user = self._require_user()
        local = self._status.active_entry
        entry = None
        if local is not None:
            entry = await self._store_call(lambda: self.store.find_by_id(local.id))
        if entry is None or not entry.is_active:
            entry = await self._store_call(lambda: self.store.load_active_entry(user))
        self._set_active(entry)
        return entry

    # Progress (read-only)

    async def get_today_progress(self) -> Result[DailyWorkSummary]:
        return await self._run("get_today_progress", self._today_summary)

    async def get_weekly_progress(self) -> Result[WeeklyWorkSummary]:
        return await self._run("get_weekly_progress", self._week_summary)

    async def get_monthly_progress(self) -> Result[MonthlyWorkSummary]:
        return await self._run("get_monthly_progress", self._month_summary)

    async def get_progress_metrics(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> Result[WorkProgressMetrics]:
        """Progress metrics for a date range (default: the last 30 days)."""

        async def compute() -> WorkProgressMetrics:
            last = end or self.clock.today()
            first = start or last - timedelta(days=29)
            if first > last:
                raise ValidationError(
                    "Start date must not be after end date",
                    {"start": first.isoformat(), "end": last.isoformat()},
                )
            entries = await self._entries_between(
                self.clock.start_of_day(first), self.clock.end_of_day(last)
            )
            return aggregation.calculate_progress_metrics(
                entries, first, last, self.clock, self.policy
            )

        return await self._run("get_progress_metrics", compute)

    async def export_summary(self, period: str = "day", fmt: str = "json") -> Result[str]:
        """Export the current day, week or month summary as JSON or CSV."""

        async def build() -> str:
            summaries: dict[str, Callable[[], Awaitable[Any]]] = {
                "day": self._today_summary,
                "week": self._week_summary,
                "month": self._month_summary,
            }
            if period not in summaries:
                raise ValidationError(f"Unsupported period: {period}", {"period": period})
            return export_summary(await summaries[period](), fmt)

        return await self._run("export_summary", build)

    async def _entries_between(self, start: datetime, end: datetime) -> list[TimeEntry]:
        user = self._require_user()
        entries = await self._store_call(lambda: self.store.find_entries(user, start, end))
        now = self.clock.now()
        return [e.snapshot(now) for e in entries]

    async def _today_summary(self) -> DailyWorkSummary:
        today = self.clock.today()
        entries = await self._entries_between(
            self.clock.start_of_day(today), self.clock.end_of_day(today)
        )
        return aggregation.generate_daily_summary(
            entries, today, self.clock, self.policy, self.settings.hourly_rate
        )

    async def _week_summary(self) -> WeeklyWorkSummary:
        today = self.clock.today()
        entries = await self._entries_between(
            self.clock.start_of_week(today), self.clock.end_of_week(today)
        )
        return aggregation.generate_weekly_summary(
            entries, today, self.clock, self.policy, self.settings.hourly_rate
        )

    async def _month_summary(self) -> MonthlyWorkSummary:
        today = self.clock.today()
        first = self.clock.week_start_date(self.clock.start_of_month(today))
        last = self.clock.end_of_week(self.clock.end_of_month(today))
        entries = await self._entries_between(self.clock.start_of_day(first), last)
        return aggregation.generate_monthly_summary(
            entries, today, self.clock, self.policy, self.settings.hourly_rate
        )

    # Sync and cleanup

    async def sync(self) -> Result[EngineStatus]:
        """Refresh state from the store and reconcile duplicate open entries."""
        return await self._run("sync", self._sync, exclusive=True)

    async def _sync(self) -> EngineStatus:
        user = self._require_user()
        now = self.clock.now()
        active_entries = await self._store_call(lambda: self.store.find_active_entries(user))

        active = active_entries[-1] if active_entries else None
        if active is not None and len(active_entries) > 1:
            for duplicate in active_entries[:-1]:
                duplicate.status = EntryStatus.CONFLICT
                duplicate.flag_reason = f"Duplicate open entry superseded by {active.id}"
                duplicate.updated_at = now
                await self._store_call(lambda: self.store.save_entry(duplicate))
                logger.warning(f"Flagged duplicate open entry {duplicate.id} for {user}")
            await self._notify(
                "Duplicate Clock-In",
                f"{len(active_entries) - 1} duplicate open time entr"
                f"{'y was' if len(active_entries) == 2 else 'ies were'} flagged for review. "
                f"Your session since {active.clock_in:%I:%M %p} is kept.",
                Severity.WARNING,
            )

        self._set_active(active)
        if active is None:
            self._cancel_reminders()
        else:
            if WORK_TIMER not in self._timers:
                self._start_work_reminder()
            current_break = active.open_break
            if current_break is None:
                self._cancel_timer(BREAK_TIMER)
            elif BREAK_TIMER not in self._timers:
                self._start_break_reminder(current_break)

        self._status.last_sync_time = now
        return self.status

    async def _periodic_sync(self) -> None:
        if self._status.current_user is None:
            return
        try:
            async with self._lock:
                await self._sync()
        except Exception as e:
            self._status.error_count += 1
            self._status.last_error = str(e)
            logger.error(f"Periodic sync failed: {e}")

    async def cleanup(self) -> Result[int]:
        """Purge expired notifications and trim the error log."""

        async def purge() -> int:
            removed = await self.notifier.cleanup_expired(self.clock.now())
            trimmed = self.reporter.trim()
            logger.debug(f"Cleanup removed {removed} notifications and {trimmed} error records")
            return removed

        return await self._run("cleanup", purge)

    async def _periodic_cleanup(self) -> None:
        try:
            await self.notifier.cleanup_expired(self.clock.now())
            self.reporter.trim()
        except Exception as e:
            logger.error(f"Cleanup failed: {e}")

    # Reminders

    def _start_work_reminder(self) -> None:
        if self._shut_down or not self.settings.enable_work_reminders:
            return
        self._cancel_timer(WORK_TIMER)
        self._timers[WORK_TIMER] = self.scheduler.every(
            self.settings.work_reminder_interval, self._work_reminder_tick
        )

    async def _work_reminder_tick(self) -> None:
        if self._status.active_entry is None:
            return
        try:
            summary = await self._today_summary()
        except Exception as e:
            logger.error(f"Work reminder failed: {e}")
            return

        hours = summary.total_hours
        goal = self.policy.standard_work_hours
        if hours < 4:
            message = f"Keep going! You've worked {hours:.1f} hours so far today."
        elif hours < 6:
            message = f"Great progress! {hours:.1f} hours completed. You're doing well!"
        elif hours < goal:
            message = f"Almost there! {hours:.1f} hours done. Just {goal - hours:.1f} hours to your goal!"
        else:
            message = ""
        if message:
            await self._notify("Time Reminder", message, Severity.INFO)

        if self.settings.enable_overtime_alerts and hours > self.policy.overtime_threshold:
            await self._notify(
                "Overtime Alert",
                f"You've worked {hours - self.policy.overtime_threshold:.1f} overtime hours today.",
                Severity.WARNING,
            )
        await self._emit(UpdateType.PROGRESS_UPDATE, {"summary": summary.to_dict()})

    def _start_break_reminder(self, period: BreakPeriod) -> None:
        if self._shut_down or not self.settings.enable_break_reminders:
            return
        self._cancel_timer(BREAK_TIMER)
        elapsed = self.clock.now() - period.start_time
        delay = max(timedelta(0), self.settings.break_reminder_delay - elapsed)
        name = breaks.BREAK_TYPES[period.type].name.lower()

        async def remind() -> None:
            self._timers.pop(BREAK_TIMER, None)
            await self._notify(
                "Break Reminder",
                f"Your {name} has been going for a while. Remember to stay hydrated!",
                Severity.INFO,
            )

        self._timers[BREAK_TIMER] = self.scheduler.after(delay, remind)

    def _cancel_timer(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _cancel_reminders(self) -> None:
        self._cancel_timer(WORK_TIMER)
        self._cancel_timer(BREAK_TIMER)

    # Cross-instance updates

    async def _on_message(self, message: bytes) -> None:
        try:
            update = RealTimeUpdate.from_bytes(message)
        except ValueError as e:
            logger.warning(f"Ignoring malformed update: {e}")
            return
        if update.origin == self.instance_id or update.user_id != self._status.current_user:
            return
        await self.apply_remote_update(update)

    async def apply_remote_update(self, update: RealTimeUpdate) -> None:
        """Mirror an update produced by another instance, then tell local listeners."""
        data = update.payload.get("entry")
        try:
            entry = TimeEntry.from_dict(data) if data else None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring {update.type.value} with malformed entry: {e}")
            return

        if update.type == UpdateType.CLOCK_IN and entry is not None:
            self._set_active(entry)
            if WORK_TIMER not in self._timers:
                self._start_work_reminder()
        elif update.type == UpdateType.CLOCK_OUT:
            current = self._status.active_entry
            if current is None or entry is None or current.id == entry.id:
                self._set_active(None)
                self._cancel_reminders()
        elif update.type in (UpdateType.BREAK_START, UpdateType.BREAK_END):
            if entry is not None and entry.is_active:
                self._set_active(entry)
            else:
                self._status.is_on_break = update.type == UpdateType.BREAK_START
            if update.type == UpdateType.BREAK_END:
                self._cancel_timer(BREAK_TIMER)

        self._notify_listeners(update)

    # Helpers

    async def _run(
        self, operation: str, func: Callable[[], Awaitable[T]], exclusive: bool = False
    ) -> Result[T]:
        try:
            if self._shut_down and operation not in ("initialize", "shutdown"):
                raise EngineShutDown(context={"operation": operation})
            if exclusive:
                async with self._lock:
                    value = await func()
            else:
                value = await func()
            return Ok(value)
        except Exception as exc:
            error = await self.reporter.report(exc, operation, self._status.current_user)
            self._status.error_count += 1
            self._status.last_error = error.message
            return Err(error, {"operation": operation})

    async def _store_call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run a storage call, retrying system failures a bounded number of times."""
        attempts = self.settings.storage_retries + 1
        attempt = 1
        while True:
            try:
                return await func()
            except Exception as e:
                retryable = e.retryable if isinstance(e, TimeClockError) else True
                if not retryable or attempt >= attempts:
                    raise
                logger.warning(f"Storage call failed (attempt {attempt}/{attempts}): {e}")
                attempt += 1

    def _require_user(self) -> str:
        if self._status.current_user is None:
            raise NoUserSession()
        return self._status.current_user

    def _set_active(self, entry: Optional[TimeEntry]) -> None:
        self._status.active_entry = copy.deepcopy(entry) if entry is not None else None
        self._status.is_on_break = breaks.is_on_break(entry)

    def _record_closed(self, entry: TimeEntry) -> None:
        if self._session is None:
            return
        if entry.id not in self._session.entry_ids:
            self._session.entry_ids.append(entry.id)
        self._session.total_work_hours += entry.total_hours or 0.0
        self._session.total_break_minutes += entry.break_minutes

    @staticmethod
    def _minutes(delta: timedelta) -> int:
        return int(delta.total_seconds() // 60)

    async def _notify(self, title: str, message: str, severity: Severity) -> None:
        user = self._status.current_user
        if user is None:
            return
        try:
            await self.notifier.notify(user, title, message, severity)
        except Exception as e:
            logger.warning(f"Notification '{title}' failed: {e}")

    async def _emit(self, update_type: UpdateType, payload: dict[str, Any]) -> None:
        update = RealTimeUpdate(
            type=update_type,
            timestamp=self.clock.now(),
            user_id=self._status.current_user or "anonymous",
            payload=payload,
            origin=self.instance_id,
        )
        self._notify_listeners(update)
        if self.pubsub is not None:
            try:
                await self.pubsub.publish(self.settings.topic, update.to_bytes())
            except Exception as e:
                logger.warning(f"Broadcast of {update_type.value} failed: {e}")

    def _notify_listeners(self, update: RealTimeUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                logger.exception("Update listener failed")
