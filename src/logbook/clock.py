"""
Report scheduling.

ReportClock answers "when is the next report due" and "is it due now"
for an anchor time-of-day plus a repeat interval. ReportScheduler polls the
clock on a background thread and hands due cycles to a small worker pool.

Reference time follows the timezone mode:
    gps   - UTC (GPS time)
    fixed - UTC shifted by the configured offset, e.g. "+05:30"
    local - the host's local time zone
"""

import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

TRIGGER_WINDOW = 60.0
POLL_INTERVAL = 60.0

DEFAULT_ANCHOR = "12:00"
DEFAULT_OFFSET = "+00:00"
DEFAULT_INTERVAL_HOURS = 24
MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 168

# Fixed origin for counting intervals; anchors repeat from here
REFERENCE_DAY = datetime(2000, 1, 1)

_ANCHOR_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_OFFSET_RE = re.compile(r"^\s*([+-])(\d{2}):(\d{2})\s*$")


def parse_anchor_time(text: str) -> Tuple[int, int]:
    """
    Parse an "HH:MM" anchor time.

    Raises:
        ConfigError: Not a valid 24-hour time of day
    """
    match = _ANCHOR_RE.match(text or "")
    if not match:
        raise ConfigError(f"Invalid time format: {text!r}", fallback=DEFAULT_ANCHOR)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ConfigError(f"Time out of range: {text!r}", fallback=DEFAULT_ANCHOR)
    return hours, minutes


def parse_offset(text: str) -> timedelta:
    """
    Parse a "±HH:MM" UTC offset.

    Raises:
        ConfigError: Malformed or outside UTC-12:00 .. UTC+14:00
    """
    match = _OFFSET_RE.match(text or "")
    if not match:
        raise ConfigError(f"Invalid timezone offset: {text!r}", fallback=DEFAULT_OFFSET)
    sign = -1 if match.group(1) == "-" else 1
    hours, minutes = int(match.group(2)), int(match.group(3))
    if minutes > 59:
        raise ConfigError(f"Invalid timezone offset: {text!r}", fallback=DEFAULT_OFFSET)
    offset = sign * timedelta(hours=hours, minutes=minutes)
    if not timedelta(hours=-12) <= offset <= timedelta(hours=14):
        raise ConfigError(f"Timezone offset out of range: {text!r}", fallback=DEFAULT_OFFSET)
    return offset


class ReportClock:
    """
    Due-time calculation with duplicate suppression.

    All instants are float epoch seconds.

    Usage:
        clock = ReportClock(interval_hours=6, anchor_time="00:00")
        if clock.is_due_now(time.time()):
            run_report()
    """

    def __init__(
        self,
        interval_hours: int = DEFAULT_INTERVAL_HOURS,
        anchor_time: str = DEFAULT_ANCHOR,
        timezone_mode: str = "gps",
        timezone_offset: str = DEFAULT_OFFSET,
        trigger_window: float = TRIGGER_WINDOW,
    ):
        self.trigger_window = trigger_window
        self.last_fired: Optional[float] = None
        self._lock = threading.Lock()

        self.interval_hours = self._validate_interval(interval_hours)

        try:
            self.anchor_hour, self.anchor_minute = parse_anchor_time(anchor_time)
            self.anchor_time = anchor_time.strip()
        except ConfigError as e:
            logger.warning(f"{e}, using default {e.fallback}")
            self.anchor_hour, self.anchor_minute = parse_anchor_time(e.fallback)
            self.anchor_time = e.fallback

        mode = (timezone_mode or "gps").lower()
        if mode not in ("gps", "fixed", "local"):
            logger.warning(f"Unknown timezone mode {timezone_mode!r}, using gps")
            mode = "gps"
        self.timezone_mode = mode

        try:
            self.offset = parse_offset(timezone_offset)
            self.timezone_offset = timezone_offset.strip()
        except ConfigError as e:
            logger.warning(f"{e}, using default {e.fallback}")
            self.offset = parse_offset(e.fallback)
            self.timezone_offset = e.fallback

    @staticmethod
    def _validate_interval(interval_hours) -> int:
        try:
            hours = int(interval_hours)
        except (TypeError, ValueError):
            logger.warning(
                f"Invalid report interval {interval_hours!r}, using {DEFAULT_INTERVAL_HOURS}h"
            )
            return DEFAULT_INTERVAL_HOURS
        if not MIN_INTERVAL_HOURS <= hours <= MAX_INTERVAL_HOURS:
            clamped = min(MAX_INTERVAL_HOURS, max(MIN_INTERVAL_HOURS, hours))
            logger.warning(f"Report interval {hours}h outside [1, 168], using {clamped}h")
            return clamped
        return hours

    @property
    def interval_seconds(self) -> float:
        return self.interval_hours * 3600.0

    def _reference_wall(self, instant: float) -> datetime:
        """Naive wall-clock time of instant in the reference clock."""
        if self.timezone_mode == "local":
            return datetime.fromtimestamp(instant)
        tz = timezone.utc if self.timezone_mode == "gps" else timezone(self.offset)
        return datetime.fromtimestamp(instant, tz=tz).replace(tzinfo=None)

    def _instant_of(self, wall: datetime) -> float:
        if self.timezone_mode == "local":
            return wall.timestamp()
        tz = timezone.utc if self.timezone_mode == "gps" else timezone(self.offset)
        return wall.replace(tzinfo=tz).timestamp()

    def next_due_instant(self, now: float) -> float:
        """
        First due instant strictly after now - trigger_window.

        Due instants are the anchor time plus whole intervals, counted in
        reference wall-clock time from a fixed reference day. For intervals
        that divide a day every day's anchor is on the series, and slots
        before the anchor (00:00 and 06:00 for 6h from 12:00) are included.
        """
        threshold = self._reference_wall(now - self.trigger_window)
        origin = REFERENCE_DAY.replace(hour=self.anchor_hour, minute=self.anchor_minute)
        elapsed = (threshold - origin).total_seconds()
        intervals_passed = int(elapsed // self.interval_seconds)
        due = origin + timedelta(seconds=(intervals_passed + 1) * self.interval_seconds)
        return self._instant_of(due)

    def is_due_now(self, now: float) -> bool:
        """True once per due instant, when now is within the trigger window of it."""
        due = self.next_due_instant(now)
        if abs(now - due) >= self.trigger_window:
            return False

        with self._lock:
            if self.last_fired is not None and abs(self.last_fired - due) < self.trigger_window:
                return False
            self.last_fired = due

        logger.debug(f"Report due at {datetime.fromtimestamp(due, tz=timezone.utc).isoformat()}")
        return True

    def time_until_next(self, now: float) -> Tuple[int, int, float]:
        """Hours and minutes until the next report, plus its instant."""
        due = self.next_due_instant(now)
        remaining = due - now
        if remaining < 0:
            return 0, 0, due
        hours = int(remaining // 3600)
        minutes = int((remaining // 60) % 60)
        return hours, minutes, due

    def describe(self) -> dict:
        return {
            "interval_hours": self.interval_hours,
            "anchor_time": self.anchor_time,
            "timezone_mode": self.timezone_mode,
            "timezone_offset": self.timezone_offset,
            "last_fired": self.last_fired,
        }


class ReportScheduler:
    """
    Polls a ReportClock and runs the report callback when due.

    Cycles run on a worker pool so a slow send never delays the next
    evaluation. Manual triggers run the same callback without touching the
    clock's fired bookkeeping.
    """

    def __init__(
        self,
        clock: ReportClock,
        callback: Callable[[], object],
        poll_interval: float = POLL_INTERVAL,
        max_workers: int = 2,
        now_fn: Callable[[], float] = time.time,
    ):
        self.clock = clock
        self.callback = callback
        self.poll_interval = poll_interval
        self._now = now_fn

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ReportCycle")
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._dispatch_lock = threading.Lock()
        self._stopped = False

        self.scheduled_runs = 0
        self.manual_runs = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the poll thread. The first check runs immediately."""
        if self.is_running:
            logger.warning("Report scheduler already running")
            return
        if self._stopped:
            raise RuntimeError("Report scheduler has been stopped")

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ReportScheduler",
        )
        self._thread.start()
        logger.info(
            f"Report scheduler started: every {self.clock.interval_hours}h "
            f"from {self.clock.anchor_time} ({self.clock.timezone_mode})"
        )

    def stop(self, wait: bool = True) -> None:
        """Stop polling, refuse new cycles and wait for in-flight ones."""
        with self._dispatch_lock:
            self._stopped = True
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._executor.shutdown(wait=wait)
        logger.info("Report scheduler stopped")

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.check()
            self._stop_event.wait(self.poll_interval)

    def check(self) -> Optional[Future]:
        """Evaluate the clock once; dispatch a cycle if a report is due."""
        if self._stopped:
            return None
        try:
            due = self.clock.is_due_now(self._now())
        except Exception as e:
            logger.error(f"Error checking for scheduled report: {e}")
            return None
        if not due:
            return None
        logger.info("Triggering scheduled report")
        future = self._dispatch()
        if future is not None:
            self.scheduled_runs += 1
        return future

    def manual_trigger(self, callback: Optional[Callable[[], object]] = None) -> Optional[Future]:
        """
        Run a report now, optionally with a different callback.

        Returns None once the scheduler is stopped.
        """
        logger.info("Manual report trigger")
        future = self._dispatch(callback or self.callback)
        if future is not None:
            self.manual_runs += 1
        return future

    def _dispatch(self, callback: Optional[Callable[[], object]] = None) -> Optional[Future]:
        with self._dispatch_lock:
            if self._stopped:
                logger.warning("Scheduler stopped, report cycle not started")
                return None
            return self._executor.submit(self._run_callback, callback or self.callback)

    @staticmethod
    def _run_callback(callback):
        try:
            return callback()
        except Exception as e:
            logger.error(f"Error in report callback: {e}", exc_info=True)
            return None
