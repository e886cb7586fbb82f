"""
Logbook runtime.

LogbookService wires the core together and owns its threads:

- a startup thread that waits for a position fix before scheduling
- the ReportScheduler poll thread and its cycle worker pool
- the PositionSampler thread
- the TrackSync thread, when chart plotter sync is enabled

Usage:
    service = LogbookService.from_config(settings, "sqlite:///./logbook.db")
    service.start()
    ...
    service.stop()
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..metrics import metrics
from .clock import ReportClock, ReportScheduler
from .collector import DataCollector, SignalKClient, SimulatedPathReader
from .errors import LogbookError
from .ledger import VoyageLedger
from .mailer import SmtpMailer
from .orchestrator import CycleResult, CycleState, ReportOrchestrator
from .publisher import (
    BufferedPublisher,
    CompositePublisher,
    LoggingPublisher,
    status_event,
    voyage_reset_event,
)
from .recipients import RecipientBook
from .sampler import PositionSampler
from .track_sync import SignalKResources, TrackSync

logger = logging.getLogger(__name__)

SEND_NOW_TIMEOUT_S = 120.0


class LogbookService:
    """Runtime owner of scheduler, sampler, storage and mailer."""

    def __init__(
        self,
        config,
        storage,
        collector,
        mailer=None,
        publisher=None,
        now_fn: Callable[[], float] = time.time,
        poll_interval: Optional[float] = None,
        recipients: Optional[RecipientBook] = None,
        track_sync: Optional[TrackSync] = None,
    ):
        self.config = config
        self.storage = storage
        self.collector = collector
        self.mailer = mailer
        self.recipients = recipients or RecipientBook(storage, seed=config.email.recipients)
        self._now = now_fn

        self.events = BufferedPublisher()
        sinks = [LoggingPublisher(), self.events]
        if publisher is not None:
            sinks.append(publisher)
        self.publisher = CompositePublisher(*sinks)

        self.ledger = VoyageLedger(storage, now_fn=now_fn)
        self.clock = ReportClock(
            interval_hours=config.report_interval_hours,
            anchor_time=config.first_report_time,
            timezone_mode=config.timezone_mode,
            timezone_offset=config.timezone_offset,
        )
        self.orchestrator = ReportOrchestrator(
            collector,
            self.ledger,
            mailer=mailer,
            publisher=self.publisher,
            clock=self.clock,
            vessel_name=config.vessel_name,
            now_fn=now_fn,
        )
        scheduler_kwargs = {"now_fn": now_fn}
        if poll_interval is not None:
            scheduler_kwargs["poll_interval"] = poll_interval
        self.scheduler = ReportScheduler(
            self.clock, lambda: self.orchestrator.run_cycle("scheduled"), **scheduler_kwargs
        )
        self.sampler = PositionSampler(
            collector,
            self.ledger,
            interval_minutes=config.position_tracking.interval_minutes,
            enabled=config.position_tracking.enabled,
            on_record=lambda _result: self.publish_status(),
        )
        self.track_sync = track_sync or TrackSync(
            storage,
            SignalKResources(config.track_sync.resources_url, timeout=config.signalk_timeout_s),
            interval_minutes=config.position_tracking.interval_minutes,
            enabled=config.track_sync.enabled,
        )

        self.started = False
        self.startup_complete = False
        self.degraded = False
        self._stopped = False
        self._stop_event = threading.Event()
        self._startup_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config, database_url: str, storage=None) -> "LogbookService":
        """Build a service with the collector and mailer selected by config."""
        from src.database.storage import SqlLogStorage

        if storage is None:
            storage = SqlLogStorage(database_url)

        if config.data_source == "signalk":
            reader = SignalKClient(config.signalk_url, timeout=config.signalk_timeout_s)
        else:
            reader = SimulatedPathReader(
                start_lat=config.sim_start_lat,
                start_lon=config.sim_start_lon,
                speed_kts=config.sim_speed_kts,
                heading_deg=config.sim_heading_deg,
            )
        collector = DataCollector(
            reader,
            position_path=config.position_path,
            data_paths=config.custom_data_paths,
            use_metric=config.use_metric_units,
        )
        recipients = RecipientBook(storage, seed=config.email.recipients)
        mailer = None
        if config.email.enabled:
            mailer = SmtpMailer(config.email, recipients_fn=recipients.recipients)
        return cls(config, storage, collector, mailer=mailer, recipients=recipients)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, wait_for_fix: bool = True) -> None:
        """
        Prepare storage and start background work.

        With wait_for_fix, scheduling starts on a background thread once a
        position is available (or after the wait times out, in degraded mode).
        """
        if self.started:
            return
        self.storage.create_schema()
        self.ledger.ensure_active_voyage()
        self.recipients.load_seed()
        self.started = True

        if not wait_for_fix:
            self._start_components()
            return

        self._startup_thread = threading.Thread(
            target=self._startup_loop,
            daemon=True,
            name="LogbookStartup",
        )
        self._startup_thread.start()

    def wait_for_fix(self) -> bool:
        """Poll for a position fix. Returns False on timeout or stop."""
        attempts = self.config.fix_wait_attempts
        for attempt in range(1, attempts + 1):
            if self.collector.position() is not None:
                logger.info(f"Position fix available after {attempt} check(s)")
                return True
            logger.debug(f"Waiting for position fix ({attempt}/{attempts})")
            if self._stop_event.wait(self.config.fix_wait_interval_s):
                return False
        return False

    def _startup_loop(self) -> None:
        has_fix = self.wait_for_fix()
        if self._stop_event.is_set():
            return
        if not has_fix:
            self.degraded = True
            logger.warning("No position fix after startup wait, starting in degraded mode")
        self._start_components()

    def _start_components(self) -> None:
        if self._stopped:
            return
        self.scheduler.start()
        self.sampler.start()
        self.track_sync.start()
        self.startup_complete = True
        self.publish_status()
        logger.info("Logbook service started")

    def stop(self) -> None:
        """Stop timers, wait for in-flight cycles, then release the mailer and storage."""
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        if self._startup_thread:
            self._startup_thread.join(timeout=5.0)
            self._startup_thread = None

        self.sampler.stop()
        self.track_sync.stop()
        self.scheduler.stop(wait=True)

        if self.mailer is not None:
            try:
                self.mailer.close()
            except Exception as e:
                logger.warning(f"Error closing mailer: {e}")
        self.storage.close()
        self.started = False
        logger.info("Logbook service stopped")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def send_now(self, timeout: float = SEND_NOW_TIMEOUT_S) -> CycleResult:
        """Run a report immediately and wait for its result."""
        future = self.scheduler.manual_trigger(lambda: self.orchestrator.run_cycle("manual"))
        if future is None:
            return CycleResult(
                success=False, state=CycleState.IDLE, trigger="manual", error="Service is stopping"
            )
        result = future.result(timeout=timeout)
        if result is None:
            return CycleResult(
                success=False, state=CycleState.IDLE, trigger="manual", error="Report cycle failed"
            )
        return result

    def run_manual_cycle(self) -> CycleResult:
        return self.orchestrator.run_cycle("manual")

    def submit_log(self, text: str) -> str:
        return self.orchestrator.submit_log(text)

    def start_voyage(self, name: Optional[str] = None) -> int:
        voyage_id = self.ledger.start_voyage(name)
        voyage = self.storage.get_voyage(voyage_id)
        self.publisher.publish(voyage_reset_event(voyage.name if voyage else ""))
        metrics.increment("voyages_started")
        return voyage_id

    def delete_voyage(self, voyage_id: int) -> dict:
        """Delete an ended voyage, and its chart resources when track sync is on."""
        report_ids = []
        if self.track_sync.enabled:
            report_ids = [
                e.id for e in self.storage.entries_for_voyage(voyage_id) if not e.is_auto_track
            ]
        result = self.ledger.delete_voyage(voyage_id)
        if self.track_sync.enabled:
            self.track_sync.delete_voyage_resources(voyage_id, report_ids)
        return result

    def publish_status(self) -> None:
        try:
            voyage = self.storage.active_voyage()
            event = status_event(
                self.orchestrator.next_report_iso(),
                round(voyage.total_distance, 1) if voyage else 0.0,
                self.storage.count_sent(),
                voyage.name if voyage else None,
            )
        except LogbookError as e:
            logger.warning(f"Status not published: {e}")
            return
        self.publisher.publish(event)

    def status(self) -> dict:
        now = self._now()
        hours, minutes, due = self.clock.time_until_next(now)
        voyage = self.storage.active_voyage()
        last = self.orchestrator.last_result
        return {
            "started": self.started,
            "startup_complete": self.startup_complete,
            "degraded": self.degraded,
            "cycle_state": self.orchestrator.state.value,
            "pending_log": self.orchestrator.pending_log,
            "schedule": dict(
                self.clock.describe(),
                next_report=datetime.fromtimestamp(due, tz=timezone.utc).isoformat(),
                hours_until=hours,
                minutes_until=minutes,
                scheduler_running=self.scheduler.is_running,
            ),
            "voyage": voyage.to_dict() if voyage else None,
            "reports_sent": self.storage.count_sent(),
            "auto_track_entries": self.storage.count_auto_track(voyage.id if voyage else None),
            "email_enabled": self.mailer is not None and bool(getattr(self.mailer, "enabled", True)),
            "position_tracking": self.sampler.statistics(),
            "track_sync": self.track_sync.statistics(),
            "email_recipients": len(self.recipients.recipients()),
            "last_cycle": last.to_dict() if last else None,
            "metrics": metrics.get_summary(),
        }
