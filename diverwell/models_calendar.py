"""
Calendar Models
Internal operations calendar, external provider credentials, the unified
event store used for conflict detection, and sync bookkeeping.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base

OPERATION_TYPES = ("DIVE", "INSPECTION", "MAINTENANCE", "TRAINING", "OTHER")
OPERATION_STATUSES = ("SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED")

SYNC_SOURCES = ("google", "outlook", "apple", "highlevel", "ical")
CALENDAR_SOURCES = ("internal", "calendly") + SYNC_SOURCES
SYNC_STATUSES = ("synced", "pending", "conflict")


class OperationsCalendarEvent(Base):
    __tablename__ = "operations_calendar"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    operation_date = Column(DateTime, nullable=False, index=True)  # midnight of the day
    start_time = Column(String(5), nullable=True)  # HH:MM
    end_time = Column(String(5), nullable=True)  # HH:MM
    location = Column(String(255), nullable=True)
    type = Column(String(20), default="OTHER", nullable=False)
    status = Column(String(20), default="SCHEDULED", nullable=False)
    color = Column(String(7), nullable=True)  # #RRGGBB
    external_id = Column(String(500), nullable=True, index=True)  # set for imported events
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CalendarSyncCredential(Base):
    __tablename__ = "calendar_sync_credentials"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_calendar_credential_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # google, highlevel, ical
    name = Column(String(255), nullable=True)

    # Provider config (API keys, feed URLs) as Fernet-encrypted JSON
    config_encrypted = Column(Text, nullable=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    external_account_email = Column(String(255), nullable=True)
    external_calendar_id = Column(String(500), nullable=True)

    sync_enabled = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class UnifiedCalendarEvent(Base):
    __tablename__ = "unified_calendar_events"
    __table_args__ = (UniqueConstraint("user_id", "event_key", name="uq_unified_event_user_key"),)

    id = Column(Integer, primary_key=True, index=True)
    event_key = Column(String(600), index=True, nullable=False)  # "{source}-{source_id}"
    source = Column(String(20), nullable=False, index=True)
    source_id = Column(String(500), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    attendees = Column(JSON, default=list)  # [{"email", "name"}]
    event_type = Column(String(50), nullable=True)
    status = Column(String(50), nullable=True)
    color = Column(String(7), nullable=True)
    all_day = Column(Boolean, default=False, nullable=False)
    sync_status = Column(String(20), default="synced", nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    # Hidden from the unified view after losing a conflict resolution
    suppressed = Column(Boolean, default=False, nullable=False)
    event_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CalendarConflict(Base):
    __tablename__ = "calendar_conflicts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    conflict_type = Column(String(20), nullable=False)  # time_overlap, duplicate, resource
    severity = Column(String(10), nullable=False)  # low, medium, high
    event_ids = Column(JSON, nullable=False)  # unified event keys, sorted
    fingerprint = Column(String(1000), nullable=False, index=True)
    description = Column(Text, nullable=True)
    suggested_resolution = Column(String(20), nullable=True)
    resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolution = Column(String(20), nullable=True)
    resolved_by = Column(String(255), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    detected_at = Column(DateTime, nullable=False)


class CalendarSyncStatus(Base):
    __tablename__ = "calendar_sync_status"
    __table_args__ = (UniqueConstraint("user_id", "source", name="uq_calendar_sync_status"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(20), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # in_progress, success, failed
    last_sync_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    events_synced = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CalendarSyncLog(Base):
    __tablename__ = "calendar_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(20), nullable=False)
    operation = Column(String(20), nullable=False)  # pull, push, sync, aggregate
    status = Column(String(20), nullable=False)  # success, failed, partial
    events_processed = Column(Integer, default=0, nullable=False)
    errors = Column(JSON, nullable=True)
    duration_ms = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
