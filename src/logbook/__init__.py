"""Vessel noon logbook: scheduling, distance ledger and voyage lifecycle."""

from .errors import (
    LogbookError,
    ConfigError,
    NoFixError,
    PersistenceError,
    SendError,
    InvalidVoyageOperation,
    InvalidRecipient,
    SyncError,
)
from .geo import distance_nm, within_distance, format_position
from .units import convert, format_value, Converted
from .models import Position, EnvironmentalReading, Snapshot, NewEntry, DistanceRecord, LogEntry, VoyageSummary
from .ledger import VoyageLedger, LedgerResult
from .clock import ReportClock, ReportScheduler
from .sampler import PositionSampler
from .orchestrator import ReportOrchestrator, CycleResult, CycleState
from .service import LogbookService

__all__ = [
    "LogbookError",
    "ConfigError",
    "NoFixError",
    "PersistenceError",
    "SendError",
    "InvalidVoyageOperation",
    "InvalidRecipient",
    "SyncError",
    "distance_nm",
    "within_distance",
    "format_position",
    "convert",
    "format_value",
    "Converted",
    "Position",
    "EnvironmentalReading",
    "Snapshot",
    "NewEntry",
    "DistanceRecord",
    "LogEntry",
    "VoyageSummary",
    "VoyageLedger",
    "LedgerResult",
    "ReportClock",
    "ReportScheduler",
    "PositionSampler",
    "ReportOrchestrator",
    "CycleResult",
    "CycleState",
    "LogbookService",
]
