"""
Relational storage for the logbook.

SqlLogStorage is the single Storage implementation used by the core. Each
public method runs in its own session and commits as one unit; SQLAlchemy
failures are re-raised as PersistenceError so callers never see driver
exceptions.
"""

import bisect
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Generator, List, Optional, Sequence

from sqlalchemy import create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.models import (
    Base,
    DistanceRecordRow,
    EmailRecipientRecord,
    LogEntryRecord,
    ReadingRecord,
    VoyageRecord,
)
from src.logbook.errors import InvalidVoyageOperation, PersistenceError
from src.metrics import timed
from src.logbook.models import (
    DistanceRecord,
    EnvironmentalReading,
    LogEntry,
    NewEntry,
    Position,
    VoyageSummary,
)

logger = logging.getLogger(__name__)


def default_voyage_name(timestamp: int) -> str:
    """Name used when a voyage is started without one."""
    day = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
    return f"Voyage {day}"


def create_storage_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine suitable for the logbook.

    SQLite connections are shared across the scheduler, sampler and request
    threads, so same-thread checks are disabled. In-memory databases use a
    StaticPool so every session sees the same data.
    """
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **kwargs)


class SqlLogStorage:
    """
    SQLAlchemy-backed log storage.

    Usage:
        storage = SqlLogStorage("sqlite:///./logbook.db")
        storage.create_schema()
        voyage_id = storage.start_voyage("Passage to Horta")
    """

    def __init__(
        self,
        database_url: str = "sqlite:///./logbook.db",
        engine: Optional[Engine] = None,
        echo: bool = False,
        now_fn: Callable[[], float] = time.time,
    ):
        self.engine = engine if engine is not None else create_storage_engine(database_url, echo)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        self._now = now_fn

    def _timestamp(self) -> int:
        return int(self._now())

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Storage error: {e}")
            raise PersistenceError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create schema: {e}") from e
        logger.info("Logbook schema ready")

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
        logger.info("Storage closed")

    # ------------------------------------------------------------------
    # Voyages
    # ------------------------------------------------------------------

    def active_voyage(self) -> Optional[VoyageSummary]:
        with self._session() as session:
            voyage = self._active_voyage_row(session)
            if voyage is None:
                return None
            return self._summarize(session, voyage)

    def get_voyage(self, voyage_id: int) -> Optional[VoyageSummary]:
        with self._session() as session:
            voyage = session.get(VoyageRecord, voyage_id)
            if voyage is None:
                return None
            return self._summarize(session, voyage)

    def list_voyages(self) -> List[VoyageSummary]:
        """All voyages, newest first, with entry counts and derived distance."""
        with self._session() as session:
            voyages = (
                session.query(VoyageRecord)
                .order_by(VoyageRecord.start_timestamp.desc(), VoyageRecord.id.desc())
                .all()
            )
            stats = {
                row[0]: (row[1], row[2])
                for row in session.query(
                    LogEntryRecord.voyage_id,
                    func.count(LogEntryRecord.id),
                    func.max(LogEntryRecord.timestamp),
                ).group_by(LogEntryRecord.voyage_id)
            }
            distances = {
                row[0]: row[1]
                for row in session.query(
                    LogEntryRecord.voyage_id,
                    func.sum(DistanceRecordRow.distance_since_last),
                )
                .select_from(DistanceRecordRow)
                .join(LogEntryRecord, DistanceRecordRow.entry_id == LogEntryRecord.id)
                .group_by(LogEntryRecord.voyage_id)
            }
            result = []
            for v in voyages:
                count, last_ts = stats.get(v.id, (0, None))
                result.append(self._to_summary(v, count, last_ts, distances.get(v.id) or 0.0))
            return result

    def start_voyage(self, name: Optional[str] = None, timestamp: Optional[int] = None) -> int:
        """End the active voyage (if any) and start a new one, atomically."""
        ts = timestamp if timestamp is not None else self._timestamp()
        with self._session() as session:
            ended = self._end_active(session, ts)
            voyage = VoyageRecord(
                name=name or default_voyage_name(ts),
                start_timestamp=ts,
                is_active=True,
            )
            session.add(voyage)
            session.flush()
            voyage_id = voyage.id

        if ended is not None:
            logger.info(f"Voyage {ended} ended")
        logger.info(f"Voyage {voyage_id} started: {name or default_voyage_name(ts)}")
        return voyage_id

    def end_active_voyage(self, timestamp: Optional[int] = None) -> Optional[int]:
        """End the active voyage without starting another. Returns its id."""
        ts = timestamp if timestamp is not None else self._timestamp()
        with self._session() as session:
            return self._end_active(session, ts)

    def rename_voyage(self, voyage_id: int, name: str) -> VoyageSummary:
        with self._session() as session:
            voyage = session.get(VoyageRecord, voyage_id)
            if voyage is None:
                raise InvalidVoyageOperation(
                    f"Voyage {voyage_id} not found", voyage_id=voyage_id, not_found=True
                )
            voyage.name = name
            session.flush()
            return self._summarize(session, voyage)

    def delete_voyage(self, voyage_id: int) -> Dict[str, int]:
        """Delete an inactive voyage with its entries, readings and distances."""
        with self._session() as session:
            voyage = session.get(VoyageRecord, voyage_id)
            if voyage is None:
                raise InvalidVoyageOperation(
                    f"Voyage {voyage_id} not found", voyage_id=voyage_id, not_found=True
                )
            if voyage.is_active:
                raise InvalidVoyageOperation(
                    "Cannot delete active voyage", voyage_id=voyage_id
                )
            deleted = len(voyage.entries)
            session.delete(voyage)

        logger.info(f"Voyage {voyage_id} deleted with {deleted} entries")
        return {"voyage_id": voyage_id, "deleted_entries": deleted}

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def last_position(self, voyage_id: Optional[int]) -> Optional[Position]:
        """
        Last fix appended to the voyage (reports and samples alike).

        Append order, not snapshot time: a report collected before a sample
        but written after it is the latest fix for the next leg.
        """
        if voyage_id is None:
            return None
        with self._session() as session:
            row = (
                session.query(LogEntryRecord.latitude, LogEntryRecord.longitude)
                .filter(
                    LogEntryRecord.voyage_id == voyage_id,
                    LogEntryRecord.latitude.isnot(None),
                    LogEntryRecord.longitude.isnot(None),
                )
                .order_by(LogEntryRecord.id.desc())
                .first()
            )
            if row is None:
                return None
            return Position(latitude=row[0], longitude=row[1])

    def sum_distances(self, voyage_id: Optional[int]) -> float:
        """Sum of persisted leg distances of a voyage."""
        if voyage_id is None:
            return 0.0
        with self._session() as session:
            total = (
                session.query(func.sum(DistanceRecordRow.distance_since_last))
                .select_from(DistanceRecordRow)
                .join(LogEntryRecord, DistanceRecordRow.entry_id == LogEntryRecord.id)
                .filter(LogEntryRecord.voyage_id == voyage_id)
                .scalar()
            )
            return float(total or 0.0)

    @timed("storage_append")
    def append(
        self,
        entry: NewEntry,
        readings: Sequence[EnvironmentalReading] = (),
        distance_record: Optional[DistanceRecord] = None,
        voyage_id: Optional[int] = None,
    ) -> int:
        """Write an entry, its readings and its distance record as one unit."""
        with self._session() as session:
            if voyage_id is None:
                active = self._active_voyage_row(session)
                voyage_id = active.id if active is not None else None

            row = LogEntryRecord(
                voyage_id=voyage_id,
                timestamp=entry.timestamp,
                date_key=entry.date_key,
                latitude=entry.position.latitude if entry.position else None,
                longitude=entry.position.longitude if entry.position else None,
                log_text=entry.log_text,
                email_sent=False,
                is_auto_track=entry.is_auto_track,
            )
            for reading in readings:
                row.readings.append(ReadingRecord(
                    path=reading.path,
                    label=reading.label,
                    value=reading.value,
                    unit=reading.unit or None,
                ))
            if distance_record is not None:
                row.distance = DistanceRecordRow(
                    distance_since_last=distance_record.distance_since_last,
                    total_distance=distance_record.total_distance,
                )
            session.add(row)
            session.flush()
            return row.id

    def mark_sent(self, entry_id: int) -> None:
        with self._session() as session:
            row = session.get(LogEntryRecord, entry_id)
            if row is None:
                raise PersistenceError(f"Log entry {entry_id} not found")
            row.email_sent = True

    def get_entry(self, entry_id: int) -> Optional[LogEntry]:
        with self._session() as session:
            row = self._entry_query(session).filter(LogEntryRecord.id == entry_id).first()
            return self._to_entry(row) if row is not None else None

    def entries_for_voyage(self, voyage_id: int, newest_first: bool = True) -> List[LogEntry]:
        with self._session() as session:
            order = LogEntryRecord.timestamp.desc() if newest_first else LogEntryRecord.timestamp.asc()
            rows = (
                self._entry_query(session)
                .filter(LogEntryRecord.voyage_id == voyage_id)
                .order_by(order, LogEntryRecord.id)
                .all()
            )
            return [self._to_entry(r) for r in rows]

    def recent_entries(self, limit: int = 30) -> List[LogEntry]:
        with self._session() as session:
            rows = (
                self._entry_query(session)
                .order_by(LogEntryRecord.timestamp.desc(), LogEntryRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [self._to_entry(r) for r in rows]

    def entries_between(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[LogEntry]:
        """Entries whose date_key falls in [start_date, end_date], oldest first."""
        with self._session() as session:
            query = self._entry_query(session)
            if start_date:
                query = query.filter(LogEntryRecord.date_key >= start_date)
            if end_date:
                query = query.filter(LogEntryRecord.date_key <= end_date)
            rows = query.order_by(LogEntryRecord.timestamp.asc(), LogEntryRecord.id).all()
            return [self._to_entry(r) for r in rows]

    def entry_for_date(self, date_key: str) -> Optional[LogEntry]:
        """Entry shown for a calendar day; noon reports win over auto-track samples."""
        with self._session() as session:
            row = (
                self._entry_query(session)
                .filter(LogEntryRecord.date_key == date_key)
                .order_by(LogEntryRecord.is_auto_track.asc(), LogEntryRecord.timestamp.desc())
                .first()
            )
            return self._to_entry(row) if row is not None else None

    def log_dates(self) -> List[Dict]:
        """Days with entries, newest first."""
        with self._session() as session:
            rows = (
                session.query(
                    LogEntryRecord.date_key,
                    func.min(LogEntryRecord.is_auto_track),
                    func.count(LogEntryRecord.id),
                )
                .group_by(LogEntryRecord.date_key)
                .order_by(LogEntryRecord.date_key.desc())
                .all()
            )
            return [
                {"date_key": d, "has_noon_report": not bool(auto), "entry_count": n}
                for d, auto, n in rows
            ]

    def count_sent(self) -> int:
        with self._session() as session:
            return (
                session.query(func.count(LogEntryRecord.id))
                .filter(LogEntryRecord.email_sent.is_(True))
                .scalar()
            ) or 0

    def count_auto_track(self, voyage_id: Optional[int]) -> int:
        if voyage_id is None:
            return 0
        with self._session() as session:
            return (
                session.query(func.count(LogEntryRecord.id))
                .filter(
                    LogEntryRecord.voyage_id == voyage_id,
                    LogEntryRecord.is_auto_track.is_(True),
                )
                .scalar()
            ) or 0

    def backfill_voyage_ids(self) -> int:
        """
        Assign voyage ids to legacy entries stored without one.

        An entry belongs to the voyage whose start is the latest start at or
        before the entry's timestamp. Entries older than every voyage stay
        unassigned.
        """
        with self._session() as session:
            voyages = (
                session.query(VoyageRecord.id, VoyageRecord.start_timestamp)
                .order_by(VoyageRecord.start_timestamp, VoyageRecord.id)
                .all()
            )
            if not voyages:
                return 0
            starts = [v[1] for v in voyages]
            orphans = session.query(LogEntryRecord).filter(LogEntryRecord.voyage_id.is_(None)).all()

            assigned = 0
            for row in orphans:
                idx = bisect.bisect_right(starts, row.timestamp) - 1
                if idx < 0:
                    continue
                row.voyage_id = voyages[idx][0]
                assigned += 1

        if assigned:
            logger.info(f"Backfilled voyage id on {assigned} entries")
        return assigned

    # ------------------------------------------------------------------
    # Email recipients
    # ------------------------------------------------------------------

    def list_recipients(self) -> List[str]:
        """Stored recipients, sorted case-insensitively."""
        with self._session() as session:
            emails = [row[0] for row in session.query(EmailRecipientRecord.email)]
        return sorted(emails, key=str.lower)

    def add_recipient(self, email: str) -> bool:
        """Store a recipient. Returns False when it is already present."""
        with self._session() as session:
            exists = (
                session.query(EmailRecipientRecord.id)
                .filter(EmailRecipientRecord.email == email)
                .first()
            )
            if exists is not None:
                return False
            session.add(EmailRecipientRecord(email=email))
        return True

    def remove_recipient(self, email: str) -> bool:
        """Delete a recipient. Returns False when it was not stored."""
        with self._session() as session:
            deleted = (
                session.query(EmailRecipientRecord)
                .filter(EmailRecipientRecord.email == email)
                .delete(synchronize_session=False)
            )
        return bool(deleted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _active_voyage_row(session: Session) -> Optional[VoyageRecord]:
        return (
            session.query(VoyageRecord)
            .filter(VoyageRecord.is_active.is_(True))
            .order_by(VoyageRecord.start_timestamp.desc())
            .first()
        )

    @staticmethod
    def _end_active(session: Session, timestamp: int) -> Optional[int]:
        ended = None
        for voyage in session.query(VoyageRecord).filter(VoyageRecord.is_active.is_(True)):
            voyage.is_active = False
            voyage.end_timestamp = timestamp
            ended = voyage.id
        session.flush()
        return ended

    @staticmethod
    def _entry_query(session: Session):
        return session.query(LogEntryRecord).options(
            selectinload(LogEntryRecord.readings),
            selectinload(LogEntryRecord.distance),
        )

    def _summarize(self, session: Session, voyage: VoyageRecord) -> VoyageSummary:
        count, last_ts = (
            session.query(func.count(LogEntryRecord.id), func.max(LogEntryRecord.timestamp))
            .filter(LogEntryRecord.voyage_id == voyage.id)
            .one()
        )
        total = (
            session.query(func.sum(DistanceRecordRow.distance_since_last))
            .select_from(DistanceRecordRow)
            .join(LogEntryRecord, DistanceRecordRow.entry_id == LogEntryRecord.id)
            .filter(LogEntryRecord.voyage_id == voyage.id)
            .scalar()
        )
        return self._to_summary(voyage, count, last_ts, total or 0.0)

    @staticmethod
    def _to_summary(voyage: VoyageRecord, count, last_ts, total) -> VoyageSummary:
        return VoyageSummary(
            id=voyage.id,
            name=voyage.name,
            start_timestamp=voyage.start_timestamp,
            end_timestamp=voyage.end_timestamp,
            is_active=bool(voyage.is_active),
            entry_count=count or 0,
            last_entry_timestamp=last_ts,
            total_distance=float(total),
        )

    @staticmethod
    def _to_entry(row: LogEntryRecord) -> LogEntry:
        distance = None
        if row.distance is not None:
            distance = DistanceRecord(
                distance_since_last=row.distance.distance_since_last,
                total_distance=row.distance.total_distance,
            )
        return LogEntry(
            id=row.id,
            voyage_id=row.voyage_id,
            timestamp=row.timestamp,
            date_key=row.date_key,
            position=Position.from_values(row.latitude, row.longitude),
            log_text=row.log_text,
            email_sent=bool(row.email_sent),
            is_auto_track=bool(row.is_auto_track),
            readings=[
                EnvironmentalReading(path=r.path, label=r.label or r.path, value=r.value, unit=r.unit or "")
                for r in row.readings
            ],
            distance=distance,
        )
