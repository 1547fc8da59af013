"""Calendar sync - pulls external calendars into the unified store and records how it went"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CALENDAR_SYNC_FUTURE_DAYS, CALENDAR_SYNC_PAST_DAYS
from ...models_calendar import SYNC_SOURCES, CalendarSyncLog, CalendarSyncStatus
from .providers import CalendarProviderError, ProviderNotConnected, provider_registry
from .repository import CalendarRepository
from .unified_service import SOURCE_COLORS, UnifiedCalendarService

logger = logging.getLogger(__name__)


def sync_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    now = now or datetime.utcnow()
    return now - timedelta(days=CALENDAR_SYNC_PAST_DAYS), now + timedelta(days=CALENDAR_SYNC_FUTURE_DAYS)


class CalendarSyncScheduler:
    """Runs provider pulls for a user and keeps status rows and sync logs current"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def _set_status(
        self,
        user_id: int,
        source: str,
        status: str,
        events_synced: int = 0,
        error_message: Optional[str] = None,
    ) -> CalendarSyncStatus:
        row = self.repo.get_sync_status(self.db, user_id, source)
        if not row:
            row = CalendarSyncStatus(user_id=user_id, source=source)
            self.db.add(row)
        row.status = status
        row.error_message = error_message
        if status != "in_progress":
            row.events_synced = events_synced
            row.last_sync_at = datetime.utcnow()
        self.db.commit()
        return row

    def _log(self, user_id: int, source: str, status: str, events: int, errors: list[str], started: float) -> None:
        self.repo.save(
            self.db,
            CalendarSyncLog(
                user_id=user_id,
                source=source,
                operation="pull",
                status=status,
                events_processed=events,
                errors=errors or None,
                duration_ms=int((time.monotonic() - started) * 1000),
            ),
        )

    async def sync_source(self, user_id: int, source: str, now: Optional[datetime] = None) -> dict:
        started = time.monotonic()
        start, end = sync_window(now)
        self._set_status(user_id, source, "in_progress")

        provider = provider_registry.get(source)
        try:
            events = await provider.pull_events(self.db, user_id, start, end)
        except ProviderNotConnected as e:
            note = str(e)
            self._set_status(user_id, source, "success", 0, note)
            self._log(user_id, source, "success", 0, [note], started)
            logger.info(f"ℹ️ {note} for user {user_id}, nothing to sync")
            return {"source": source, "success": True, "eventsSynced": 0, "errors": [], "note": note}
        except CalendarProviderError as e:
            error = str(e)
            self._set_status(user_id, source, "failed", 0, error)
            self._log(user_id, source, "failed", 0, [error], started)
            logger.error(f"❌ {source} sync failed for user {user_id}: {error}")
            return {"source": source, "success": False, "eventsSynced": 0, "errors": [error], "note": None}

        for event in events:
            event.color = event.color or SOURCE_COLORS[source]
        UnifiedCalendarService(self.db).store_events(events, user_id)

        credential = self.repo.get_credential(self.db, user_id, source)
        if credential:
            credential.last_sync_at = datetime.utcnow()
        self._set_status(user_id, source, "success", len(events))
        self._log(user_id, source, "success", len(events), [], started)
        logger.info(f"✅ Synced {len(events)} {source} events for user {user_id}")
        return {"source": source, "success": True, "eventsSynced": len(events), "errors": [], "note": None}

    async def sync_user(self, user_id: int, source: Optional[str] = None, now: Optional[datetime] = None) -> list[dict]:
        sources = [source] if source else list(SYNC_SOURCES)
        return [await self.sync_source(user_id, s, now) for s in sources]

    async def sync_all_users(self) -> dict:
        """Sync every user holding an active, sync-enabled credential"""
        user_ids = self.repo.get_sync_user_ids(self.db)
        synced = 0
        failed = 0
        for user_id in user_ids:
            for credential in self.repo.get_credentials(self.db, user_id):
                if not (credential.is_active and credential.sync_enabled):
                    continue
                result = await self.sync_source(user_id, credential.provider)
                if result["success"]:
                    synced += 1
                else:
                    failed += 1
        logger.info(f"🔄 Calendar sync run: {len(user_ids)} users, {synced} sources synced, {failed} failed")
        return {"users": len(user_ids), "synced": synced, "failed": failed}

    def get_status(self, user_id: int) -> list[CalendarSyncStatus]:
        return self.repo.get_sync_statuses(self.db, user_id)

    def get_logs(self, user_id: int, limit: int = 50) -> list[CalendarSyncLog]:
        return self.repo.get_sync_logs(self.db, user_id, limit)
