"""Relational storage for log entries and voyages."""

from .models import (
    Base,
    VoyageRecord,
    LogEntryRecord,
    ReadingRecord,
    DistanceRecordRow,
    EmailRecipientRecord,
)
from .storage import SqlLogStorage, create_storage_engine

__all__ = [
    "Base",
    "VoyageRecord",
    "LogEntryRecord",
    "ReadingRecord",
    "DistanceRecordRow",
    "EmailRecipientRecord",
    "SqlLogStorage",
    "create_storage_engine",
]
