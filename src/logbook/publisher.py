"""
Status event publishing.

Events are flat lists of (path, value) updates under navigation.log, the
shape a Signal K server accepts as a delta. Publishers must never let a
failure escape into the report cycle; CompositePublisher isolates sinks.
"""

import collections
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PATH_LAST_ENTRY = "navigation.log.lastEntry"
PATH_SINCE_LAST = "navigation.log.distance.sinceLast"
PATH_TOTAL = "navigation.log.distance.total"
PATH_LOG = "navigation.log"
PATH_NEXT_REPORT = "navigation.log.nextReport"
PATH_REPORTS_SENT = "navigation.log.reportsSent"
PATH_VOYAGE_NAME = "navigation.log.voyageName"
PATH_PENDING = "navigation.log.pendingEntry"


@dataclass
class LogEvent:
    """One published event: a kind plus its path/value updates."""
    kind: str
    values: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    def add(self, path: str, value: Any) -> "LogEvent":
        self.values.append({"path": path, "value": value})
        return self

    def value_of(self, path: str) -> Any:
        for item in self.values:
            if item["path"] == path:
                return item["value"]
        return None

    def to_dict(self) -> dict:
        return {"kind": self.kind, "timestamp": self.timestamp, "values": list(self.values)}


def report_event(
    entry_id: int,
    log_data: Dict[str, Any],
    distance: Optional[Dict[str, float]],
    next_report: Optional[str],
    reports_sent: int,
) -> LogEvent:
    event = LogEvent(kind="report")
    if log_data.get("log_text"):
        event.add(PATH_LAST_ENTRY, log_data["log_text"])
    if distance:
        event.add(PATH_SINCE_LAST, distance["distance_since_last"])
        event.add(PATH_TOTAL, distance["total_distance"])
    event.add(PATH_LOG, dict(log_data, distance=distance, log_id=entry_id))
    if next_report:
        event.add(PATH_NEXT_REPORT, next_report)
    event.add(PATH_REPORTS_SENT, reports_sent)
    event.add(PATH_PENDING, None)
    return event


def status_event(
    next_report: Optional[str], total_distance: float, reports_sent: int, voyage_name: Optional[str]
) -> LogEvent:
    event = LogEvent(kind="status")
    if next_report:
        event.add(PATH_NEXT_REPORT, next_report)
    event.add(PATH_TOTAL, total_distance)
    event.add(PATH_REPORTS_SENT, reports_sent)
    if voyage_name is not None:
        event.add(PATH_VOYAGE_NAME, voyage_name)
    return event


def pending_event(log_text: Optional[str]) -> LogEvent:
    return LogEvent(kind="pending").add(PATH_PENDING, log_text)


def voyage_reset_event(voyage_name: str) -> LogEvent:
    return (
        LogEvent(kind="voyage_reset")
        .add(PATH_TOTAL, 0)
        .add(PATH_SINCE_LAST, 0)
        .add(PATH_VOYAGE_NAME, voyage_name)
    )


class LoggingPublisher:
    """Writes events to the application log."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def publish(self, event: LogEvent) -> None:
        logger.log(self.level, f"Published {len(event.values)} {event.kind} updates")


class BufferedPublisher:
    """Keeps the most recent events in a ring buffer for the HTTP API."""

    def __init__(self, maxlen: int = 200):
        self._buffer: collections.deque = collections.deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._latest: Dict[str, Any] = {}

    def publish(self, event: LogEvent) -> None:
        with self._lock:
            self._buffer.append(event)
            for item in event.values:
                self._latest[item["path"]] = item["value"]

    def recent(self, limit: int = 50) -> List[LogEvent]:
        """Newest first."""
        with self._lock:
            events = list(self._buffer)
        return list(reversed(events))[:limit]

    def latest_values(self) -> Dict[str, Any]:
        """Last published value for every path."""
        with self._lock:
            return dict(self._latest)


class CompositePublisher:
    """Fan an event out to several publishers; one failing sink never blocks the rest."""

    def __init__(self, *publishers):
        self.publishers = list(publishers)

    def publish(self, event: LogEvent) -> None:
        for publisher in self.publishers:
            try:
                publisher.publish(event)
            except Exception as e:
                logger.warning(f"Publisher {type(publisher).__name__} failed: {e}")
