"""Calendar repository - Database operations for operations, credentials, unified events and sync records"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_calendar import (
    CalendarConflict,
    CalendarSyncCredential,
    CalendarSyncLog,
    CalendarSyncStatus,
    OperationsCalendarEvent,
    UnifiedCalendarEvent,
)
from ...models_crm import CrmClient


class CalendarRepository:
    """Repository for calendar database operations"""

    @staticmethod
    def save(db: Session, row):
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def update(db: Session, row, **updates):
        for key, value in updates.items():
            if value is not None and hasattr(row, key):
                setattr(row, key, value)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()

    # Operations calendar

    @staticmethod
    def get_operations(
        db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[OperationsCalendarEvent]:
        query = db.query(OperationsCalendarEvent)
        if start:
            query = query.filter(OperationsCalendarEvent.operation_date >= start)
        if end:
            query = query.filter(OperationsCalendarEvent.operation_date <= end)
        return query.order_by(OperationsCalendarEvent.operation_date, OperationsCalendarEvent.start_time).all()

    @staticmethod
    def get_operation(db: Session, operation_id: int) -> Optional[OperationsCalendarEvent]:
        return db.query(OperationsCalendarEvent).filter(OperationsCalendarEvent.id == operation_id).first()

    @staticmethod
    def external_id_exists(db: Session, external_id: str) -> bool:
        return (
            db.query(OperationsCalendarEvent.id)
            .filter(OperationsCalendarEvent.external_id == external_id)
            .first()
            is not None
        )

    @staticmethod
    def get_bookings_between(db: Session, start: datetime, end: datetime) -> list[CrmClient]:
        return (
            db.query(CrmClient)
            .filter(
                CrmClient.last_booking_time.isnot(None),
                CrmClient.calendly_event_uri.isnot(None),
                CrmClient.last_booking_time >= start,
                CrmClient.last_booking_time <= end,
            )
            .all()
        )

    # Credentials

    @staticmethod
    def get_credentials(db: Session, user_id: int) -> list[CalendarSyncCredential]:
        return (
            db.query(CalendarSyncCredential)
            .filter(CalendarSyncCredential.user_id == user_id)
            .order_by(CalendarSyncCredential.provider)
            .all()
        )

    @staticmethod
    def get_credential(db: Session, user_id: int, provider: str) -> Optional[CalendarSyncCredential]:
        return (
            db.query(CalendarSyncCredential)
            .filter(CalendarSyncCredential.user_id == user_id, CalendarSyncCredential.provider == provider)
            .first()
        )

    @staticmethod
    def get_credential_by_id(db: Session, credential_id: int) -> Optional[CalendarSyncCredential]:
        return db.query(CalendarSyncCredential).filter(CalendarSyncCredential.id == credential_id).first()

    @staticmethod
    def get_sync_user_ids(db: Session) -> list[int]:
        rows = (
            db.query(CalendarSyncCredential.user_id)
            .filter(CalendarSyncCredential.is_active.is_(True), CalendarSyncCredential.sync_enabled.is_(True))
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    # Unified events

    @staticmethod
    def get_unified_by_keys(db: Session, keys: list[str], user_id: Optional[int]) -> list[UnifiedCalendarEvent]:
        """One user's stored events; user_id None reads the unowned rows"""
        if not keys:
            return []
        return (
            db.query(UnifiedCalendarEvent)
            .filter(UnifiedCalendarEvent.event_key.in_(keys), UnifiedCalendarEvent.user_id == user_id)
            .all()
        )

    @staticmethod
    def get_unified_between(
        db: Session, start: datetime, end: datetime, include_suppressed: bool = False
    ) -> list[UnifiedCalendarEvent]:
        query = db.query(UnifiedCalendarEvent).filter(
            UnifiedCalendarEvent.start_time < end, UnifiedCalendarEvent.end_time > start
        )
        if not include_suppressed:
            query = query.filter(UnifiedCalendarEvent.suppressed.is_(False))
        return query.order_by(UnifiedCalendarEvent.start_time).all()

    # Conflicts

    @staticmethod
    def get_conflict(db: Session, conflict_id: int) -> Optional[CalendarConflict]:
        return db.query(CalendarConflict).filter(CalendarConflict.id == conflict_id).first()

    @staticmethod
    def get_unresolved_conflicts(db: Session) -> list[CalendarConflict]:
        return (
            db.query(CalendarConflict)
            .filter(CalendarConflict.resolved.is_(False))
            .order_by(CalendarConflict.detected_at.desc(), CalendarConflict.id.desc())
            .all()
        )

    @staticmethod
    def get_unresolved_by_fingerprint(
        db: Session, fingerprint: str, user_id: Optional[int]
    ) -> Optional[CalendarConflict]:
        return (
            db.query(CalendarConflict)
            .filter(
                CalendarConflict.fingerprint == fingerprint,
                CalendarConflict.user_id == user_id,
                CalendarConflict.resolved.is_(False),
            )
            .first()
        )

    @staticmethod
    def get_conflicts(db: Session) -> list[CalendarConflict]:
        return db.query(CalendarConflict).order_by(CalendarConflict.id).all()

    # Sync bookkeeping

    @staticmethod
    def get_sync_status(db: Session, user_id: int, source: str) -> Optional[CalendarSyncStatus]:
        return (
            db.query(CalendarSyncStatus)
            .filter(CalendarSyncStatus.user_id == user_id, CalendarSyncStatus.source == source)
            .first()
        )

    @staticmethod
    def get_sync_statuses(db: Session, user_id: int) -> list[CalendarSyncStatus]:
        return (
            db.query(CalendarSyncStatus)
            .filter(CalendarSyncStatus.user_id == user_id)
            .order_by(CalendarSyncStatus.source)
            .all()
        )

    @staticmethod
    def get_sync_logs(db: Session, user_id: int, limit: int = 50) -> list[CalendarSyncLog]:
        return (
            db.query(CalendarSyncLog)
            .filter(CalendarSyncLog.user_id == user_id)
            .order_by(CalendarSyncLog.id.desc())
            .limit(limit)
            .all()
        )
