"""
Auto-track position sampler.

Records a position-only entry at a fixed interval, independent of the
report schedule, so the voyage track has more points than one per report.
Entries go through VoyageLedger.append and therefore carry distance records
like any other position-bearing entry.
"""

import logging
import threading
from typing import Callable, Optional

from .geo import within_distance
from .ledger import LedgerResult
from .models import NewEntry, Position

logger = logging.getLogger(__name__)

# ~100 m
MIN_MOVEMENT_NM = 0.054


class PositionSampler:
    """
    Periodic auto-track writer.

    Usage:
        sampler = PositionSampler(collector, ledger, interval_minutes=15)
        sampler.start()
        ...
        sampler.stop()
    """

    def __init__(
        self,
        collector,
        ledger,
        interval_minutes: int = 60,
        enabled: bool = True,
        min_movement_nm: float = MIN_MOVEMENT_NM,
        on_record: Optional[Callable[[LedgerResult], None]] = None,
    ):
        self.collector = collector
        self.ledger = ledger
        self.interval_minutes = interval_minutes
        self.enabled = enabled
        self.min_movement_nm = min_movement_nm
        self.on_record = on_record

        self.last_sampled: Optional[Position] = None
        self.recorded_count = 0
        self.skipped_count = 0
        self.error_count = 0

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start sampling on a background thread. The first sample is taken immediately."""
        if not self.enabled:
            logger.debug("Position tracking not enabled")
            return
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sample_loop,
            daemon=True,
            name="PositionSampler",
        )
        self._thread.start()
        logger.info(f"Position sampler started with {self.interval_minutes} minute interval")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
            logger.info("Position sampler stopped")

    def _sample_loop(self) -> None:
        while not self._stop_event.is_set():
            self.sample_once()
            self._stop_event.wait(self.interval_minutes * 60)

    def _should_skip(self, position: Position) -> bool:
        if self.last_sampled is None:
            return False
        return within_distance(self.last_sampled, position, self.min_movement_nm)

    def sample_once(self) -> Optional[LedgerResult]:
        """
        Take one sample.

        Returns:
            LedgerResult when an entry was written, None when skipped or failed
        """
        try:
            snapshot = self.collector.snapshot()
            if snapshot.position is None:
                logger.debug("Position sampler: no position data available")
                self.skipped_count += 1
                return None

            if self._should_skip(snapshot.position):
                logger.debug("Position sampler: position unchanged, skipping")
                self.skipped_count += 1
                return None

            entry = NewEntry.from_snapshot(snapshot, log_text=None, is_auto_track=True)
            result = self.ledger.append(entry, snapshot.readings)
            self.last_sampled = snapshot.position
            self.recorded_count += 1
            logger.debug(
                f"Position tracked: {snapshot.position.latitude:.6f}, "
                f"{snapshot.position.longitude:.6f} (ID: {result.entry_id})"
            )
        except Exception as e:
            self.error_count += 1
            logger.error(f"Position sampler error: {e}")
            return None

        if self.on_record is not None:
            try:
                self.on_record(result)
            except Exception as e:
                logger.warning(f"Position sampler callback failed: {e}")
        return result

    def statistics(self) -> dict:
        return {
            "enabled": self.enabled,
            "interval_minutes": self.interval_minutes,
            "is_running": self.is_running,
            "recorded": self.recorded_count,
            "skipped": self.skipped_count,
            "errors": self.error_count,
        }
