"""
SQLAlchemy models for the logbook database.
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class VoyageRecord(Base):
    """A voyage. Exactly one row has is_active set."""

    __tablename__ = "voyages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    start_timestamp = Column(Integer, nullable=False, index=True)
    end_timestamp = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    entries = relationship(
        "LogEntryRecord",
        back_populates="voyage",
        cascade="all, delete-orphan",
        order_by="LogEntryRecord.timestamp",
    )

    def __repr__(self):
        return f"<VoyageRecord(name='{self.name}', active={self.is_active})>"


class LogEntryRecord(Base):
    """Noon report or auto-tracked position."""

    __tablename__ = "log_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    voyage_id = Column(
        Integer, ForeignKey("voyages.id", ondelete="CASCADE"), nullable=True, index=True
    )
    timestamp = Column(Integer, nullable=False, index=True)
    date_key = Column(String(10), nullable=False, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    log_text = Column(Text, nullable=True)
    email_sent = Column(Boolean, default=False, nullable=False)
    is_auto_track = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    voyage = relationship("VoyageRecord", back_populates="entries")
    readings = relationship(
        "ReadingRecord",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="ReadingRecord.id",
    )
    distance = relationship(
        "DistanceRecordRow",
        back_populates="entry",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (
        Index("ix_log_entries_voyage_timestamp", "voyage_id", "timestamp"),
    )

    def __repr__(self):
        return f"<LogEntryRecord(timestamp={self.timestamp}, auto={self.is_auto_track})>"


class ReadingRecord(Base):
    """Environmental reading captured with a log entry."""

    __tablename__ = "log_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(
        Integer, ForeignKey("log_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    path = Column(String(255), nullable=False)
    label = Column(String(255), nullable=True)
    value = Column(String(64), nullable=True)
    unit = Column(String(16), nullable=True)

    entry = relationship("LogEntryRecord", back_populates="readings")

    def __repr__(self):
        return f"<ReadingRecord(path='{self.path}', value={self.value})>"


class DistanceRecordRow(Base):
    """Distance snapshot for a position-bearing entry."""

    __tablename__ = "distance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(
        Integer,
        ForeignKey("log_entries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    distance_since_last = Column(Float, nullable=False)
    total_distance = Column(Float, nullable=False)

    entry = relationship("LogEntryRecord", back_populates="distance")

    def __repr__(self):
        return f"<DistanceRecordRow(entry_id={self.entry_id}, leg={self.distance_since_last})>"


class EmailRecipientRecord(Base):
    """Report email recipient managed at runtime."""

    __tablename__ = "email_recipients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EmailRecipientRecord(email='{self.email}')>"
