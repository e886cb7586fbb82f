"""
Logbook API Pydantic schemas.

Re-exports all schema classes:
    from api.schemas import LogEntryResponse, VoyageListResponse, ...
"""

from .logbook import (  # noqa: F401
    SubmitLogRequest,
    StartVoyageRequest,
    RenameVoyageRequest,
    ReadingModel,
    DistanceModel,
    LogEntryResponse,
    LogHistoryResponse,
    LogExportResponse,
    LogDateModel,
    LogDatesResponse,
    PendingLogResponse,
    VoyageSummaryResponse,
    VoyageListResponse,
    VoyageDetailResponse,
    StartVoyageResponse,
    DeleteVoyageResponse,
    CycleResultResponse,
    LogEventModel,
    EventsResponse,
    RecipientRequest,
    RecipientsResponse,
)
