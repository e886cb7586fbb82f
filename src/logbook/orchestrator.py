"""
Report cycle orchestration.

One cycle moves through:

    IDLE -> COLLECTING -> COMPUTING -> PERSISTING -> SENDING -> PUBLISHING -> IDLE

COLLECTING aborts the cycle when there is no position fix. COMPUTING and
PERSISTING happen together inside VoyageLedger.append. SENDING is skipped
when no mailer is configured and never rolls back what was persisted.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from ..metrics import metrics
from .errors import LogbookError, NoFixError, PersistenceError
from .mailer import ReportPayload
from .models import DistanceRecord, NewEntry
from .publisher import pending_event, report_event

logger = logging.getLogger(__name__)

MAX_LOG_TEXT_LENGTH = 10000


class CycleState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    COMPUTING = "computing"
    PERSISTING = "persisting"
    SENDING = "sending"
    PUBLISHING = "publishing"


@dataclass
class CycleResult:
    """Outcome of one report cycle."""
    success: bool
    state: CycleState
    trigger: str = "scheduled"
    entry_id: Optional[int] = None
    voyage_id: Optional[int] = None
    distance: Optional[DistanceRecord] = None
    email_sent: bool = False
    email_error: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "state": self.state.value,
            "trigger": self.trigger,
            "entry_id": self.entry_id,
            "voyage_id": self.voyage_id,
            "distance": self.distance.rounded().to_dict() if self.distance else None,
            "email_sent": self.email_sent,
            "email_error": self.email_error,
            "error": self.error,
            "warnings": list(self.warnings),
        }


class ReportOrchestrator:
    """
    Runs report cycles and owns the pending free-text entry.

    Cycles are serialised; the pending text is cleared only after the entry
    carrying it has been persisted, and only if it was not replaced while the
    cycle ran.
    """

    def __init__(
        self,
        collector,
        ledger,
        mailer=None,
        publisher=None,
        clock=None,
        vessel_name: str = "Unknown Vessel",
        now_fn: Callable[[], float] = time.time,
    ):
        self.collector = collector
        self.ledger = ledger
        self.mailer = mailer
        self.publisher = publisher
        self.clock = clock
        self.vessel_name = vessel_name
        self._now = now_fn

        self.state = CycleState.IDLE
        self.last_result: Optional[CycleResult] = None
        self._pending: Optional[str] = None
        self._pending_lock = threading.Lock()
        self._cycle_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Pending free text
    # ------------------------------------------------------------------

    @property
    def pending_log(self) -> Optional[str]:
        with self._pending_lock:
            return self._pending

    def submit_log(self, text: str) -> str:
        """
        Store the free-text entry for the next report.

        Raises:
            ValueError: Empty or longer than MAX_LOG_TEXT_LENGTH
        """
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValueError("Log text must not be empty")
        if len(cleaned) > MAX_LOG_TEXT_LENGTH:
            raise ValueError(f"Log text too long (max {MAX_LOG_TEXT_LENGTH} characters)")

        with self._pending_lock:
            self._pending = cleaned
        logger.info(f"Pending log entry saved ({len(cleaned)} characters)")
        self._publish(pending_event(cleaned))
        return cleaned

    def _clear_pending(self, expected: Optional[str]) -> bool:
        with self._pending_lock:
            if expected is not None and self._pending == expected:
                self._pending = None
                return True
            return False

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _enter(self, state: CycleState) -> None:
        self.state = state
        logger.debug(f"Report cycle: {state.value}")

    def run_cycle(self, trigger: str = "scheduled") -> CycleResult:
        with self._cycle_lock, metrics.timer("report_cycle"):
            try:
                result = self._run(trigger)
            finally:
                self.state = CycleState.IDLE
            self.last_result = result
            metrics.increment("report_cycles")
            if not result.success:
                metrics.increment("report_cycles_failed")
            return result

    def _run(self, trigger: str) -> CycleResult:
        self._enter(CycleState.COLLECTING)
        try:
            snapshot = self.collector.snapshot()
            if snapshot.position is None:
                raise NoFixError("No position data available for report")
        except NoFixError as e:
            logger.warning(f"Report aborted: {e}")
            return CycleResult(success=False, state=CycleState.COLLECTING, trigger=trigger, error=str(e))
        except Exception as e:
            logger.error(f"Report aborted, data collection failed: {e}")
            return CycleResult(success=False, state=CycleState.COLLECTING, trigger=trigger, error=str(e))

        log_text = self.pending_log
        entry = NewEntry.from_snapshot(snapshot, log_text=log_text, is_auto_track=False)

        self._enter(CycleState.COMPUTING)
        self._enter(CycleState.PERSISTING)
        try:
            appended = self.ledger.append(entry, snapshot.readings)
        except PersistenceError as e:
            logger.error(f"Report aborted, could not persist entry: {e}")
            return CycleResult(success=False, state=CycleState.PERSISTING, trigger=trigger, error=str(e))

        self._clear_pending(log_text)
        metrics.increment("reports_persisted")
        result = CycleResult(
            success=True,
            state=CycleState.PERSISTING,
            trigger=trigger,
            entry_id=appended.entry_id,
            voyage_id=appended.voyage_id,
            distance=appended.distance,
        )

        if self.mailer is not None and getattr(self.mailer, "enabled", True):
            self._enter(CycleState.SENDING)
            result.state = CycleState.SENDING
            self._send(result, snapshot, log_text)

        self._enter(CycleState.PUBLISHING)
        result.state = CycleState.PUBLISHING
        self._publish_report(result, snapshot, log_text)

        logger.info(f"Report created (ID: {result.entry_id}, trigger: {trigger})")
        return result

    def _send(self, result: CycleResult, snapshot, log_text: Optional[str]) -> None:
        payload = ReportPayload(
            date_key=snapshot.date_key,
            vessel_name=self.vessel_name,
            position=snapshot.position,
            log_text=log_text,
            distance=result.distance.rounded() if result.distance else None,
            readings=list(snapshot.readings),
            entry_id=result.entry_id,
        )
        try:
            sent = self.mailer.send(payload)
        except Exception as e:
            logger.warning(f"Email failed: {e}")
            result.email_error = str(e)
            result.warnings.append(f"Email failed: {e}")
            metrics.increment("emails_failed")
            return

        if not sent.success:
            logger.warning(f"Email failed: {sent.error}")
            result.email_error = sent.error
            result.warnings.append(f"Email failed: {sent.error}")
            metrics.increment("emails_failed")
            return

        try:
            self.ledger.storage.mark_sent(result.entry_id)
            result.email_sent = True
            metrics.increment("emails_sent")
        except PersistenceError as e:
            logger.warning(f"Email sent but entry {result.entry_id} could not be marked: {e}")
            result.warnings.append(f"Could not mark entry as sent: {e}")

    def next_report_iso(self) -> Optional[str]:
        if self.clock is None:
            return None
        _, _, due = self.clock.time_until_next(self._now())
        return datetime.fromtimestamp(due, tz=timezone.utc).isoformat()

    def _publish_report(self, result: CycleResult, snapshot, log_text: Optional[str]) -> None:
        if self.publisher is None:
            return
        try:
            reports_sent = self.ledger.storage.count_sent()
            distance = result.distance.rounded().to_dict() if result.distance else None
            log_data = {
                "timestamp": snapshot.timestamp,
                "date_key": snapshot.date_key,
                "position": snapshot.position.to_dict() if snapshot.position else None,
                "log_text": log_text,
                "readings": [r.to_dict() for r in snapshot.readings],
            }
            event = report_event(
                result.entry_id, log_data, distance, self.next_report_iso(), reports_sent
            )
        except LogbookError as e:
            result.warnings.append(f"Status not published: {e}")
            logger.warning(f"Status not published: {e}")
            return
        self._publish(event)

    def _publish(self, event) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish(event)
        except Exception as e:
            logger.warning(f"Failed to publish {event.kind} event: {e}")
