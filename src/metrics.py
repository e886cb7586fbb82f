"""
Logbook Metrics Module.

Operation timings and event counters for the report cycle, the sampler,
storage and the HTTP layer. Everything here is read by the status endpoint,
so the summary is plain JSON.

Usage:
    from src.metrics import metrics, timed

    with metrics.timer("report_cycle"):
        orchestrator.run_cycle()

    metrics.increment("emails_sent")
"""

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import wraps
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

RECENT_SAMPLES = 20


@dataclass
class TimingStats:
    """Durations of one named operation, in milliseconds."""
    name: str
    count: int = 0
    failures: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0
    recent_ms: deque = field(default_factory=lambda: deque(maxlen=RECENT_SAMPLES))

    @property
    def avg_ms(self) -> float:
        if not self.count:
            return 0.0
        return self.total_ms / self.count

    def record(self, duration_ms: float, failed: bool = False):
        self.count += 1
        if failed:
            self.failures += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if duration_ms > self.max_ms:
            self.max_ms = duration_ms
        self.recent_ms.append(duration_ms)

    def to_dict(self) -> dict:
        recent = list(self.recent_ms)
        return {
            "count": self.count,
            "failures": self.failures,
            "avg_ms": round(self.avg_ms, 1),
            "max_ms": round(self.max_ms, 1),
            "last_ms": round(self.last_ms, 1),
            "recent_avg_ms": round(sum(recent) / len(recent), 1) if recent else 0.0,
        }


@dataclass
class EventCounter:
    """Running total of an event and when it last happened."""
    value: int = 0
    last_at: Optional[float] = None


class LogbookMetrics:
    """
    Metrics shared by the scheduler, sampler and request threads.

    Timers flag a sample as failed when the timed block raises, so
    "report_cycle" failures show up without extra bookkeeping.
    """

    # A report cycle includes an SMTP round trip
    SLOW_THRESHOLD_MS = 5000.0

    def __init__(self, slow_threshold_ms: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.slow_threshold_ms = slow_threshold_ms or self.SLOW_THRESHOLD_MS
        self._clock = clock
        self._lock = Lock()
        self._timings: Dict[str, TimingStats] = {}
        self._counters: Dict[str, EventCounter] = {}
        self._since = clock()

    @contextmanager
    def timer(self, name: str):
        """Time the enclosed block under name."""
        started = time.perf_counter()
        failed = False
        try:
            yield
        except BaseException:
            failed = True
            raise
        finally:
            self.observe(name, (time.perf_counter() - started) * 1000, failed=failed)

    def observe(self, name: str, duration_ms: float, failed: bool = False):
        """Record one duration sample."""
        with self._lock:
            stats = self._timings.setdefault(name, TimingStats(name=name))
            stats.record(duration_ms, failed=failed)

        if duration_ms > self.slow_threshold_ms:
            logger.warning(f"Slow operation: {name} took {duration_ms:.0f}ms")

    def increment(self, name: str, amount: int = 1):
        now = self._clock()
        with self._lock:
            counter = self._counters.setdefault(name, EventCounter())
            counter.value += amount
            counter.last_at = now

    def get_counter(self, name: str) -> int:
        with self._lock:
            counter = self._counters.get(name)
            return counter.value if counter else 0

    def last_occurrence(self, name: str) -> Optional[float]:
        """Epoch seconds of the last increment of name, if any."""
        with self._lock:
            counter = self._counters.get(name)
            return counter.last_at if counter else None

    def get_timing(self, name: str) -> Optional[TimingStats]:
        with self._lock:
            return self._timings.get(name)

    def get_summary(self) -> dict:
        with self._lock:
            return {
                "since": self._since,
                "uptime_seconds": round(self._clock() - self._since, 1),
                "counters": {name: c.value for name, c in self._counters.items()},
                "last_seen": {name: c.last_at for name, c in self._counters.items()},
                "timings": {name: stats.to_dict() for name, stats in self._timings.items()},
            }

    def reset(self):
        with self._lock:
            self._counters = {}
            self._timings = {}
            self._since = self._clock()


# Process-wide instance
metrics = LogbookMetrics()


def timed(name: str):
    """Decorator form of metrics.timer(name)."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            with metrics.timer(name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def get_metrics() -> LogbookMetrics:
    return metrics
