"""
Voyage distance ledger.

Voyage distance is never stored as a counter. Each position-bearing entry
carries an immutable DistanceRecord (leg + running total snapshot) and the
voyage total is the sum of persisted legs. All writers (report cycles and the
position sampler) go through VoyageLedger.append, whose lock makes
"read last position, compute, append" one step.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .errors import InvalidVoyageOperation
from .geo import distance_nm
from .models import (
    DistanceRecord,
    EnvironmentalReading,
    LogEntry,
    NewEntry,
    Position,
    VoyageSummary,
)

logger = logging.getLogger(__name__)

MAX_VOYAGE_NAME_LENGTH = 100
FIRST_VOYAGE_NAME = "First Voyage"


@dataclass
class LedgerResult:
    """Outcome of one append."""
    entry_id: int
    voyage_id: Optional[int]
    distance: Optional[DistanceRecord] = None

    @property
    def distance_since_last(self) -> float:
        return self.distance.distance_since_last if self.distance else 0.0

    @property
    def total_distance(self) -> float:
        return self.distance.total_distance if self.distance else 0.0


def clean_voyage_name(name: Optional[str]) -> str:
    """Trim and validate a voyage name."""
    if name is None:
        raise InvalidVoyageOperation("Voyage name is required")
    cleaned = str(name).strip()
    if not cleaned:
        raise InvalidVoyageOperation("Voyage name must not be empty")
    if len(cleaned) > MAX_VOYAGE_NAME_LENGTH:
        raise InvalidVoyageOperation(
            f"Voyage name must be at most {MAX_VOYAGE_NAME_LENGTH} characters"
        )
    return cleaned


class VoyageLedger:
    """
    Distance accounting and voyage lifecycle over a Storage.

    The storage is expected to provide the SqlLogStorage interface.
    """

    def __init__(self, storage, now_fn: Callable[[], float] = time.time):
        self.storage = storage
        self._now = now_fn
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Distance
    # ------------------------------------------------------------------

    def active_voyage_id(self) -> Optional[int]:
        voyage = self.storage.active_voyage()
        return voyage.id if voyage is not None else None

    def last_position(self) -> Optional[Position]:
        return self.storage.last_position(self.active_voyage_id())

    def distance_since_last(self, position: Optional[Position]) -> float:
        """Leg from the voyage's most recent fix to position (0 when there is none)."""
        if position is None:
            return 0.0
        last = self.last_position()
        if last is None:
            return 0.0
        return distance_nm(last.latitude, last.longitude, position.latitude, position.longitude)

    def total_distance(self) -> float:
        """Sum of persisted legs over the active voyage."""
        return self.storage.sum_distances(self.active_voyage_id())

    def append(
        self, entry: NewEntry, readings: Sequence[EnvironmentalReading] = ()
    ) -> LedgerResult:
        """
        Append an entry with its readings and distance record.

        Raises:
            PersistenceError: The write failed; nothing was stored
        """
        with self._lock:
            voyage_id = self.ensure_active_voyage()

            record = None
            if entry.position is not None:
                last = self.storage.last_position(voyage_id)
                leg = 0.0
                if last is not None:
                    leg = distance_nm(
                        last.latitude, last.longitude,
                        entry.position.latitude, entry.position.longitude,
                    )
                total = self.storage.sum_distances(voyage_id) + leg
                record = DistanceRecord(distance_since_last=leg, total_distance=total)

            entry_id = self.storage.append(
                entry, readings, distance_record=record, voyage_id=voyage_id
            )

        if record is not None:
            logger.debug(
                f"Entry {entry_id} appended to voyage {voyage_id}: "
                f"leg {record.distance_since_last:.3f} nm, total {record.total_distance:.3f} nm"
            )
        else:
            logger.debug(f"Entry {entry_id} appended to voyage {voyage_id} without position")
        return LedgerResult(entry_id=entry_id, voyage_id=voyage_id, distance=record)

    # ------------------------------------------------------------------
    # Voyage lifecycle
    # ------------------------------------------------------------------

    def ensure_active_voyage(self) -> int:
        """Return the active voyage id, creating the first voyage if none exists."""
        with self._lock:
            voyage_id = self.active_voyage_id()
            if voyage_id is None:
                voyage_id = self.storage.start_voyage(FIRST_VOYAGE_NAME, int(self._now()))
                logger.info(f"Created initial voyage {voyage_id}")
            return voyage_id

    def start_voyage(self, name: Optional[str] = None) -> int:
        """End the active voyage and start a new one."""
        if name is not None:
            name = clean_voyage_name(name)
        with self._lock:
            return self.storage.start_voyage(name, int(self._now()))

    def rename_voyage(self, voyage_id: int, name: str) -> VoyageSummary:
        cleaned = clean_voyage_name(name)
        with self._lock:
            return self.storage.rename_voyage(voyage_id, cleaned)

    def delete_voyage(self, voyage_id: int) -> Dict[str, int]:
        """
        Delete an ended voyage and everything recorded in it.

        Raises:
            InvalidVoyageOperation: Unknown id or voyage still active
        """
        with self._lock:
            return self.storage.delete_voyage(voyage_id)

    def voyage_summaries(self) -> List[VoyageSummary]:
        return self.storage.list_voyages()

    def voyage_detail(self, voyage_id: int) -> Dict:
        """Voyage summary with its entries in chronological order."""
        voyage = self.storage.get_voyage(voyage_id)
        if voyage is None:
            raise InvalidVoyageOperation(
                f"Voyage {voyage_id} not found", voyage_id=voyage_id, not_found=True
            )
        entries: List[LogEntry] = self.storage.entries_for_voyage(voyage_id, newest_first=False)
        return {"voyage": voyage, "entries": entries}
