"""
Unit tests for report scheduling.
"""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from src.logbook.clock import (
    ReportClock,
    ReportScheduler,
    parse_anchor_time,
    parse_offset,
)
from src.logbook.errors import ConfigError

HOUR = 3600.0
DAY = 24 * HOUR
# 2024-06-01 12:00:00 UTC
ANCHOR = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc).timestamp()
MIDNIGHT = ANCHOR + 12 * HOUR


@pytest.fixture
def host_zone_utc_plus_2(monkeypatch):
    """Switch the process local zone to a fixed UTC+2."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    monkeypatch.setenv("TZ", "LOG-02")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


# ============================================================================
# Parsing
# ============================================================================


class TestParsing:
    def test_anchor_time(self):
        assert parse_anchor_time("07:30") == (7, 30)
        assert parse_anchor_time(" 0:05 ") == (0, 5)

    @pytest.mark.parametrize("text", ["", "noon", "24:00", "12:60", "12-00", None])
    def test_bad_anchor_time(self, text):
        with pytest.raises(ConfigError) as exc:
            parse_anchor_time(text)
        assert exc.value.fallback == "12:00"

    def test_offset(self):
        assert parse_offset("+05:30") == timedelta(hours=5, minutes=30)
        assert parse_offset("-03:00") == timedelta(hours=-3)
        assert parse_offset("+14:00") == timedelta(hours=14)

    @pytest.mark.parametrize("text", ["0530", "+5:30", "+15:00", "-13:00", "+01:75"])
    def test_bad_offset(self, text):
        with pytest.raises(ConfigError):
            parse_offset(text)


# ============================================================================
# ReportClock
# ============================================================================


class TestNextDue:
    def test_advances_whole_intervals(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00", timezone_mode="gps")
        now = ANCHOR + 3.5 * DAY
        assert clock.next_due_instant(now) == ANCHOR + 4 * DAY

    def test_before_anchor_returns_anchor(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        assert clock.next_due_instant(ANCHOR - 2 * HOUR) == ANCHOR

    def test_sub_daily_interval(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        assert clock.next_due_instant(ANCHOR + 7 * HOUR) == ANCHOR + 12 * HOUR

    def test_just_past_due_is_still_next(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")
        assert clock.next_due_instant(ANCHOR + 30) == ANCHOR

    def test_never_before_trigger_window(self):
        clock = ReportClock(interval_hours=5, anchor_time="03:17")
        for step in range(0, 200):
            now = ANCHOR + step * 1234.5
            assert clock.next_due_instant(now) >= now - clock.trigger_window

    def test_fixed_offset(self):
        clock = ReportClock(
            interval_hours=24, anchor_time="12:00", timezone_mode="fixed", timezone_offset="+02:00"
        )
        # 12:00 at UTC+2 is 10:00 UTC
        assert clock.next_due_instant(ANCHOR - 3 * HOUR) == ANCHOR - 2 * HOUR

    def test_slot_before_anchor(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        # 03:00 -> the 06:00 slot, not the 12:00 anchor
        assert clock.next_due_instant(ANCHOR - 9 * HOUR) == ANCHOR - 6 * HOUR

    def test_midnight_slot_after_midnight(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        assert clock.next_due_instant(MIDNIGHT + 20) == MIDNIGHT

    def test_weekly_interval_is_stable(self):
        clock = ReportClock(interval_hours=168, anchor_time="12:00")
        due = clock.next_due_instant(ANCHOR)
        assert (due - ANCHOR) % DAY == 0
        assert clock.next_due_instant(due - HOUR) == due
        assert clock.next_due_instant(due - 3 * DAY) == due
        assert clock.next_due_instant(due + 120) == due + 168 * HOUR

    def test_local_mode_follows_host_zone(self, host_zone_utc_plus_2):
        clock = ReportClock(interval_hours=24, anchor_time="12:00", timezone_mode="local")
        # 12:00 at UTC+2 is 10:00 UTC
        assert clock.next_due_instant(ANCHOR - 3 * HOUR) == ANCHOR - 2 * HOUR
        assert clock.next_due_instant(ANCHOR) == ANCHOR - 2 * HOUR + DAY

    def test_time_until_next(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")
        hours, minutes, due = clock.time_until_next(ANCHOR - (2 * HOUR + 15 * 60))
        assert (hours, minutes) == (2, 15)
        assert due == ANCHOR


class TestIsDueNow:
    def test_fires_once_per_instant(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")

        assert clock.is_due_now(ANCHOR + 5) is True
        assert clock.is_due_now(ANCHOR + 20) is False
        assert clock.is_due_now(ANCHOR + 45) is False

    def test_fires_just_before_due(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")
        assert clock.is_due_now(ANCHOR - 30) is True
        assert clock.is_due_now(ANCHOR + 30) is False

    def test_outside_window(self):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")
        assert clock.is_due_now(ANCHOR + 2 * HOUR) is False
        assert clock.last_fired is None

    def test_fires_again_next_interval(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        assert clock.is_due_now(ANCHOR) is True
        assert clock.is_due_now(ANCHOR + 6 * HOUR + 10) is True
        assert clock.last_fired == ANCHOR + 6 * HOUR

    def test_midnight_slot_fires_after_midnight(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        clock.last_fired = ANCHOR + 6 * HOUR

        assert clock.is_due_now(MIDNIGHT - 61) is False
        assert clock.is_due_now(MIDNIGHT + 1) is True
        assert clock.last_fired == MIDNIGHT

    def test_drifting_polls_fire_every_slot_once(self):
        clock = ReportClock(interval_hours=6, anchor_time="12:00")
        fired = []
        now = ANCHOR - 2 * HOUR
        while now < ANCHOR + 2 * DAY - HOUR:
            if clock.is_due_now(now):
                fired.append(clock.last_fired)
            now += 61.7

        assert fired == [ANCHOR + i * 6 * HOUR for i in range(8)]


class TestFallbacks:
    def test_malformed_anchor_uses_noon(self):
        clock = ReportClock(anchor_time="half past")
        assert (clock.anchor_hour, clock.anchor_minute) == (12, 0)
        assert clock.anchor_time == "12:00"

    def test_bad_offset_uses_utc(self):
        clock = ReportClock(timezone_mode="fixed", timezone_offset="+20:00")
        assert clock.offset == timedelta(0)

    def test_unknown_mode_uses_gps(self):
        assert ReportClock(timezone_mode="ship").timezone_mode == "gps"

    @pytest.mark.parametrize("value,expected", [(0, 1), (500, 168), ("x", 24), (12, 12)])
    def test_interval_clamped(self, value, expected):
        assert ReportClock(interval_hours=value).interval_hours == expected


# ============================================================================
# ReportScheduler
# ============================================================================


class TestReportScheduler:
    def _scheduler(self, now, callback=None):
        clock = ReportClock(interval_hours=24, anchor_time="12:00")
        state = {"now": now}
        calls = []

        def default_callback():
            calls.append("scheduled")
            return "done"

        scheduler = ReportScheduler(
            clock, callback or default_callback, now_fn=lambda: state["now"]
        )
        return scheduler, clock, state, calls

    def test_check_dispatches_when_due(self):
        scheduler, _, _, calls = self._scheduler(ANCHOR + 1)
        try:
            future = scheduler.check()
            assert future.result(timeout=5) == "done"
            assert calls == ["scheduled"]
            assert scheduler.scheduled_runs == 1
            assert scheduler.check() is None
        finally:
            scheduler.stop()

    def test_check_idle_when_not_due(self):
        scheduler, _, _, calls = self._scheduler(ANCHOR + 3 * HOUR)
        try:
            assert scheduler.check() is None
            assert calls == []
        finally:
            scheduler.stop()

    def test_manual_trigger_leaves_schedule(self):
        scheduler, clock, _, _ = self._scheduler(ANCHOR + 1)
        try:
            future = scheduler.manual_trigger(lambda: "manual")
            assert future.result(timeout=5) == "manual"
            assert clock.last_fired is None
            assert scheduler.manual_runs == 1
            assert scheduler.check() is not None
        finally:
            scheduler.stop()

    def test_callback_errors_contained(self):
        def boom():
            raise RuntimeError("smtp exploded")

        scheduler, _, _, _ = self._scheduler(ANCHOR + 1, callback=boom)
        try:
            assert scheduler.manual_trigger().result(timeout=5) is None
        finally:
            scheduler.stop()

    def test_stop_refuses_new_cycles(self):
        scheduler, _, _, calls = self._scheduler(ANCHOR + 1)
        scheduler.stop()

        assert scheduler.manual_trigger() is None
        assert scheduler.check() is None
        assert calls == []

    def test_check_after_stop_leaves_clock_untouched(self):
        scheduler, clock, _, _ = self._scheduler(ANCHOR + 1)
        scheduler.stop()

        assert scheduler.check() is None
        assert clock.last_fired is None

    def test_stop_waits_for_in_flight(self):
        started = threading.Event()
        release = threading.Event()
        finished = []

        def slow():
            started.set()
            release.wait(5)
            finished.append(True)

        scheduler, _, _, _ = self._scheduler(ANCHOR + 1, callback=slow)
        scheduler.manual_trigger()
        assert started.wait(5)
        release.set()
        scheduler.stop(wait=True)
        assert finished == [True]

    def test_poll_thread_runs_first_check(self):
        scheduler, _, _, calls = self._scheduler(ANCHOR + 1)
        scheduler.poll_interval = 0.05
        scheduler.start()
        try:
            assert scheduler.is_running
            for _ in range(100):
                if calls:
                    break
                time.sleep(0.01)
            assert calls == ["scheduled"]
        finally:
            scheduler.stop()
        assert not scheduler.is_running
