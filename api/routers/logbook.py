"""
Logbook router: log entries, voyages, exports and report control.
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from api.schemas import (
    CycleResultResponse,
    DeleteVoyageResponse,
    DistanceModel,
    EventsResponse,
    LogDateModel,
    LogDatesResponse,
    LogEntryResponse,
    LogEventModel,
    LogExportResponse,
    LogHistoryResponse,
    PendingLogResponse,
    RecipientRequest,
    RecipientsResponse,
    RenameVoyageRequest,
    StartVoyageRequest,
    StartVoyageResponse,
    SubmitLogRequest,
    VoyageDetailResponse,
    VoyageListResponse,
    VoyageSummaryResponse,
)
from api.state import get_app_state
from src.logbook.errors import InvalidRecipient, InvalidVoyageOperation, PersistenceError
from src.logbook.export import export_filename, generate_gpx, generate_logbook
from src.logbook.orchestrator import CycleResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logbook", tags=["Logbook"])

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def get_service():
    """FastAPI dependency for the running LogbookService."""
    return get_app_state().service


def _voyage_error(e: InvalidVoyageOperation) -> HTTPException:
    return HTTPException(status_code=404 if e.not_found else 400, detail=e.reason)


def _storage_error(e: PersistenceError) -> HTTPException:
    logger.error(f"Storage failure: {e}")
    return HTTPException(status_code=503, detail="Log storage unavailable")


def _recipient_error(e: InvalidRecipient) -> HTTPException:
    return HTTPException(status_code=404 if e.not_found else 400, detail=e.reason)


def _cycle_response(result: CycleResult) -> CycleResultResponse:
    distance = None
    if result.distance is not None:
        rounded = result.distance.rounded()
        distance = DistanceModel(
            distance_since_last=rounded.distance_since_last,
            total_distance=rounded.total_distance,
        )
    return CycleResultResponse(
        success=result.success,
        state=result.state.value,
        trigger=result.trigger,
        entry_id=result.entry_id,
        voyage_id=result.voyage_id,
        distance=distance,
        email_sent=result.email_sent,
        email_error=result.email_error,
        error=result.error,
        warnings=result.warnings,
    )


# =============================================================================
# Log entries
# =============================================================================


@router.post("/log", response_model=PendingLogResponse)
async def submit_log(body: SubmitLogRequest, service=Depends(get_service)):
    """Save free text to be attached to the next report."""
    try:
        text = service.submit_log(body.log_text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PendingLogResponse(log_text=text)


@router.get("/log/pending", response_model=PendingLogResponse)
async def get_pending_log(service=Depends(get_service)):
    return PendingLogResponse(log_text=service.orchestrator.pending_log)


@router.get("/history", response_model=LogHistoryResponse)
async def get_history(
    limit: int = Query(30, ge=1, le=1000, description="Number of entries, newest first"),
    service=Depends(get_service),
):
    try:
        entries = service.storage.recent_entries(limit)
    except PersistenceError as e:
        raise _storage_error(e)
    return LogHistoryResponse(
        entries=[LogEntryResponse.from_entry(e) for e in entries],
        count=len(entries),
    )


@router.get("/dates", response_model=LogDatesResponse)
async def get_log_dates(service=Depends(get_service)):
    try:
        rows = service.storage.log_dates()
    except PersistenceError as e:
        raise _storage_error(e)
    return LogDatesResponse(dates=[LogDateModel(**row) for row in rows])


@router.get("/entries/{date_key}", response_model=LogEntryResponse)
async def get_entry_for_date(date_key: str, service=Depends(get_service)):
    """Entry for a day (YYYY-MM-DD); a noon report is preferred over auto-track samples."""
    if not _DATE_KEY_RE.match(date_key):
        raise HTTPException(status_code=400, detail="Invalid date format, expected YYYY-MM-DD")
    try:
        entry = service.storage.entry_for_date(date_key)
    except PersistenceError as e:
        raise _storage_error(e)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No log entry for {date_key}")
    return LogEntryResponse.from_entry(entry)


@router.get("/export", response_model=LogExportResponse)
async def export_entries(
    start_date: Optional[str] = Query(None, description="First day, YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Last day, YYYY-MM-DD"),
    service=Depends(get_service),
):
    """Entries between two days inclusive, oldest first. Open ends are unbounded."""
    for value in (start_date, end_date):
        if value is not None and not _DATE_KEY_RE.match(value):
            raise HTTPException(status_code=400, detail="Invalid date format, expected YYYY-MM-DD")
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    try:
        entries = service.storage.entries_between(start_date, end_date)
    except PersistenceError as e:
        raise _storage_error(e)
    return LogExportResponse(
        start_date=start_date,
        end_date=end_date,
        entries=[LogEntryResponse.from_entry(e) for e in entries],
        count=len(entries),
    )


# =============================================================================
# Voyages
# =============================================================================


@router.get("/voyages/current", response_model=VoyageSummaryResponse)
async def get_current_voyage(service=Depends(get_service)):
    try:
        voyage_id = service.ledger.ensure_active_voyage()
        voyage = service.storage.get_voyage(voyage_id)
    except PersistenceError as e:
        raise _storage_error(e)
    return VoyageSummaryResponse.from_summary(voyage)


@router.get("/voyages", response_model=VoyageListResponse)
async def list_voyages(service=Depends(get_service)):
    try:
        voyages = service.ledger.voyage_summaries()
    except PersistenceError as e:
        raise _storage_error(e)
    return VoyageListResponse(
        voyages=[VoyageSummaryResponse.from_summary(v) for v in voyages],
        count=len(voyages),
    )


@router.post("/voyages", response_model=StartVoyageResponse)
async def start_voyage(body: StartVoyageRequest, service=Depends(get_service)):
    """End the active voyage and start a new one."""
    try:
        voyage_id = service.start_voyage(body.name)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    voyage = service.storage.get_voyage(voyage_id)
    return StartVoyageResponse(voyage=VoyageSummaryResponse.from_summary(voyage))


@router.get("/voyages/{voyage_id}", response_model=VoyageDetailResponse)
async def get_voyage(voyage_id: int, service=Depends(get_service)):
    try:
        detail = service.ledger.voyage_detail(voyage_id)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    return VoyageDetailResponse(
        voyage=VoyageSummaryResponse.from_summary(detail["voyage"]),
        entries=[LogEntryResponse.from_entry(e) for e in detail["entries"]],
    )


@router.put("/voyages/{voyage_id}", response_model=VoyageSummaryResponse)
async def rename_voyage(voyage_id: int, body: RenameVoyageRequest, service=Depends(get_service)):
    try:
        voyage = service.ledger.rename_voyage(voyage_id, body.name)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    if voyage.is_active:
        service.publish_status()
    return VoyageSummaryResponse.from_summary(voyage)


@router.delete("/voyages/{voyage_id}", response_model=DeleteVoyageResponse)
async def delete_voyage(voyage_id: int, service=Depends(get_service)):
    """Delete an ended voyage and all of its entries."""
    try:
        result = service.delete_voyage(voyage_id)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    except PersistenceError as e:
        raise _storage_error(e)
    return DeleteVoyageResponse(**result)


@router.get("/voyages/{voyage_id}/export/gpx")
async def export_gpx(voyage_id: int, service=Depends(get_service)):
    try:
        detail = service.ledger.voyage_detail(voyage_id)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    voyage = detail["voyage"]
    return Response(
        content=generate_gpx(voyage, detail["entries"]),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(voyage, "gpx")}"'},
    )


@router.get("/voyages/{voyage_id}/export/logbook")
async def export_logbook(voyage_id: int, service=Depends(get_service)):
    try:
        detail = service.ledger.voyage_detail(voyage_id)
    except InvalidVoyageOperation as e:
        raise _voyage_error(e)
    voyage = detail["voyage"]
    return Response(
        content=generate_logbook(voyage, detail["entries"]),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(voyage, "txt")}"'},
    )


# =============================================================================
# Email recipients
# =============================================================================


@router.get("/email/recipients", response_model=RecipientsResponse)
async def list_recipients(service=Depends(get_service)):
    try:
        recipients = service.recipients.recipients()
    except PersistenceError as e:
        raise _storage_error(e)
    return RecipientsResponse(recipients=recipients, count=len(recipients))


@router.post("/email/recipients", response_model=RecipientsResponse)
async def add_recipient(body: RecipientRequest, service=Depends(get_service)):
    try:
        recipients = service.recipients.add(body.email)
    except InvalidRecipient as e:
        raise _recipient_error(e)
    except PersistenceError as e:
        raise _storage_error(e)
    return RecipientsResponse(
        recipients=recipients,
        count=len(recipients),
        message="Email recipient added successfully",
    )


@router.delete("/email/recipients/{email}", response_model=RecipientsResponse)
async def remove_recipient(email: str, service=Depends(get_service)):
    try:
        recipients = service.recipients.remove(email)
    except InvalidRecipient as e:
        raise _recipient_error(e)
    except PersistenceError as e:
        raise _storage_error(e)
    return RecipientsResponse(
        recipients=recipients,
        count=len(recipients),
        message="Email recipient removed successfully",
    )


# =============================================================================
# Reports and status
# =============================================================================


@router.post("/send-now", response_model=CycleResultResponse)
def send_now(service=Depends(get_service)):
    """Run a report cycle immediately. Does not affect the schedule."""
    return _cycle_response(service.send_now())


@router.get("/status")
async def get_status(service=Depends(get_service)):
    return service.status()


@router.get("/events", response_model=EventsResponse)
async def get_events(
    limit: int = Query(50, ge=1, le=200),
    service=Depends(get_service),
):
    """Recently published status events, newest first."""
    events = service.events.recent(limit)
    return EventsResponse(
        events=[LogEventModel(**event.to_dict()) for event in events],
        latest=service.events.latest_values(),
    )
