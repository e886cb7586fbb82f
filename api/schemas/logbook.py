"""Logbook API schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.logbook.models import LogEntry, VoyageSummary
from src.logbook.orchestrator import MAX_LOG_TEXT_LENGTH


# =============================================================================
# Requests
# =============================================================================

class SubmitLogRequest(BaseModel):
    """Free-text entry for the next report."""
    log_text: str = Field(..., min_length=1, max_length=MAX_LOG_TEXT_LENGTH)


class StartVoyageRequest(BaseModel):
    """Start a new voyage; the name defaults to 'Voyage YYYY-MM-DD'."""
    name: Optional[str] = None


class RenameVoyageRequest(BaseModel):
    name: str


# =============================================================================
# Entries
# =============================================================================

class ReadingModel(BaseModel):
    path: str
    label: str
    value: str
    unit: str = ""


class DistanceModel(BaseModel):
    """Distances in nautical miles, rounded to one decimal."""
    distance_since_last: float
    total_distance: float


class LogEntryResponse(BaseModel):
    id: int
    voyage_id: Optional[int] = None
    timestamp: int
    date_key: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    log_text: Optional[str] = None
    email_sent: bool
    is_auto_track: bool
    readings: List[ReadingModel] = []
    distance: Optional[DistanceModel] = None

    @classmethod
    def from_entry(cls, entry: LogEntry) -> "LogEntryResponse":
        distance = None
        if entry.distance is not None:
            rounded = entry.distance.rounded()
            distance = DistanceModel(
                distance_since_last=rounded.distance_since_last,
                total_distance=rounded.total_distance,
            )
        return cls(
            id=entry.id,
            voyage_id=entry.voyage_id,
            timestamp=entry.timestamp,
            date_key=entry.date_key,
            latitude=entry.position.latitude if entry.position else None,
            longitude=entry.position.longitude if entry.position else None,
            log_text=entry.log_text,
            email_sent=entry.email_sent,
            is_auto_track=entry.is_auto_track,
            readings=[
                ReadingModel(path=r.path, label=r.label, value=r.value, unit=r.unit)
                for r in entry.readings
            ],
            distance=distance,
        )


class LogHistoryResponse(BaseModel):
    entries: List[LogEntryResponse]
    count: int


class LogExportResponse(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    entries: List[LogEntryResponse]
    count: int


class LogDateModel(BaseModel):
    date_key: str
    has_noon_report: bool
    entry_count: int


class LogDatesResponse(BaseModel):
    dates: List[LogDateModel]


class PendingLogResponse(BaseModel):
    success: bool = True
    log_text: Optional[str] = None


# =============================================================================
# Voyages
# =============================================================================

class VoyageSummaryResponse(BaseModel):
    id: int
    name: str
    start_timestamp: int
    end_timestamp: Optional[int] = None
    is_active: bool
    entry_count: int = 0
    last_entry_timestamp: Optional[int] = None
    total_distance: float = 0.0

    @classmethod
    def from_summary(cls, voyage: VoyageSummary) -> "VoyageSummaryResponse":
        return cls(
            id=voyage.id,
            name=voyage.name,
            start_timestamp=voyage.start_timestamp,
            end_timestamp=voyage.end_timestamp,
            is_active=voyage.is_active,
            entry_count=voyage.entry_count,
            last_entry_timestamp=voyage.last_entry_timestamp,
            total_distance=round(voyage.total_distance, 1),
        )


class VoyageListResponse(BaseModel):
    voyages: List[VoyageSummaryResponse]
    count: int


class VoyageDetailResponse(BaseModel):
    voyage: VoyageSummaryResponse
    entries: List[LogEntryResponse]


class StartVoyageResponse(BaseModel):
    success: bool = True
    voyage: VoyageSummaryResponse


class DeleteVoyageResponse(BaseModel):
    success: bool = True
    voyage_id: int
    deleted_entries: int


# =============================================================================
# Reports and status
# =============================================================================

class CycleResultResponse(BaseModel):
    success: bool
    state: str
    trigger: str
    entry_id: Optional[int] = None
    voyage_id: Optional[int] = None
    distance: Optional[DistanceModel] = None
    email_sent: bool = False
    email_error: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = []


class LogEventModel(BaseModel):
    kind: str
    timestamp: float
    values: List[Dict[str, Any]]


class EventsResponse(BaseModel):
    events: List[LogEventModel]
    latest: Dict[str, Any]


# =============================================================================
# Email recipients
# =============================================================================


class RecipientRequest(BaseModel):
    email: str = Field(..., description="Address to receive noon reports")


class RecipientsResponse(BaseModel):
    recipients: List[str]
    count: int
    message: Optional[str] = None
