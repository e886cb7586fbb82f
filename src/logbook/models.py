"""
Domain records exchanged between the logbook core and its collaborators.

These are plain dataclasses; the relational mapping lives in
src.database.models.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import List, Optional


def date_key_for(timestamp: int) -> str:
    """Calendar date (UTC) of an epoch timestamp, as YYYY-MM-DD."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


@dataclass(frozen=True)
class Position:
    """A position fix. Both coordinates are always present."""
    latitude: float
    longitude: float

    @classmethod
    def from_values(cls, latitude, longitude) -> Optional["Position"]:
        """Build a Position, or None when either coordinate is missing or not finite."""
        if latitude is None or longitude is None:
            return None
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return None
        return cls(latitude=lat, longitude=lon)

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass
class EnvironmentalReading:
    """One converted sensor reading attached to a log entry."""
    path: str
    label: str
    value: str
    unit: str = ""
    raw_value: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Snapshot:
    """What the data collector sees at one instant."""
    timestamp: int
    date_key: str
    position: Optional[Position] = None
    readings: List[EnvironmentalReading] = field(default_factory=list)

    @property
    def has_fix(self) -> bool:
        return self.position is not None


@dataclass
class NewEntry:
    """A log entry about to be appended."""
    timestamp: int
    date_key: str
    position: Optional[Position] = None
    log_text: Optional[str] = None
    is_auto_track: bool = False

    @classmethod
    def from_snapshot(
        cls, snapshot: Snapshot, log_text: Optional[str] = None, is_auto_track: bool = False
    ) -> "NewEntry":
        return cls(
            timestamp=snapshot.timestamp,
            date_key=snapshot.date_key,
            position=snapshot.position,
            log_text=log_text,
            is_auto_track=is_auto_track,
        )


@dataclass(frozen=True)
class DistanceRecord:
    """Leg distance and the running voyage total at the time of the entry."""
    distance_since_last: float
    total_distance: float

    def rounded(self) -> "DistanceRecord":
        """One-decimal copy for reports and display."""
        return DistanceRecord(
            distance_since_last=round(self.distance_since_last, 1),
            total_distance=round(self.total_distance, 1),
        )

    def to_dict(self) -> dict:
        return {
            "distance_since_last": self.distance_since_last,
            "total_distance": self.total_distance,
        }


@dataclass
class LogEntry:
    """A persisted log entry with its readings and distance record."""
    id: int
    voyage_id: Optional[int]
    timestamp: int
    date_key: str
    position: Optional[Position]
    log_text: Optional[str]
    email_sent: bool
    is_auto_track: bool
    readings: List[EnvironmentalReading] = field(default_factory=list)
    distance: Optional[DistanceRecord] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "voyage_id": self.voyage_id,
            "timestamp": self.timestamp,
            "date_key": self.date_key,
            "latitude": self.position.latitude if self.position else None,
            "longitude": self.position.longitude if self.position else None,
            "log_text": self.log_text,
            "email_sent": self.email_sent,
            "is_auto_track": self.is_auto_track,
            "readings": [r.to_dict() for r in self.readings],
            "distance": self.distance.to_dict() if self.distance else None,
        }


@dataclass
class VoyageSummary:
    """Voyage row plus derived statistics."""
    id: int
    name: str
    start_timestamp: int
    end_timestamp: Optional[int]
    is_active: bool
    entry_count: int = 0
    last_entry_timestamp: Optional[int] = None
    total_distance: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)
