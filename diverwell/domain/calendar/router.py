"""
Calendar routers - operations calendar, provider connections and the
admin unified calendar with conflict management and sync.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from ...models_calendar import CALENDAR_SOURCES
from ...shared.crypto import decrypt_config
from .conflict_resolver import ConflictResolver
from .events import CalendarEvent
from .providers import provider_registry
from .schemas import (
    AutoResolveRequest,
    AutoResolveResult,
    CalendarAnalytics,
    ConflictResponse,
    ConnectionCreate,
    ConnectionResponse,
    ConnectionTestResponse,
    ConnectionUpdate,
    ImportResult,
    OAuthCallbackRequest,
    OAuthConnectResponse,
    OperationCreate,
    OperationResponse,
    OperationUpdate,
    ProviderConfig,
    ResolveConflictRequest,
    SyncLogResponse,
    SyncRequest,
    SyncSourceResult,
    SyncStatusResponse,
    UnifiedEventResponse,
)
from .service import CalendarConnectionService, OperationsCalendarService
from .sync_scheduler import CalendarSyncScheduler, sync_window
from .unified_service import UnifiedCalendarService

logger = logging.getLogger(__name__)

operations_router = APIRouter(prefix="/api/operations-calendar", tags=["Operations Calendar"])
connections_router = APIRouter(prefix="/api/calendar/connections", tags=["Calendar Connections"])
admin_router = APIRouter(prefix="/api/admin/calendar", tags=["Admin Calendar"])

MAX_ICAL_UPLOAD_BYTES = 5 * 1024 * 1024


def get_operations_service(db: Session = Depends(get_db)) -> OperationsCalendarService:
    """Dependency injection for OperationsCalendarService"""
    return OperationsCalendarService(db)


def get_connection_service(db: Session = Depends(get_db)) -> CalendarConnectionService:
    """Dependency injection for CalendarConnectionService"""
    return CalendarConnectionService(db)


def _operation_response(op) -> OperationResponse:
    return OperationResponse(
        id=op.id,
        title=op.title,
        description=op.description,
        operationDate=op.operation_date,
        startTime=op.start_time,
        endTime=op.end_time,
        location=op.location,
        type=op.type,
        status=op.status,
        color=op.color,
        externalId=op.external_id,
        createdBy=op.created_by,
        createdAt=op.created_at,
    )


def _connection_response(c) -> ConnectionResponse:
    return ConnectionResponse(
        id=c.id,
        provider=c.provider,
        name=c.name,
        externalAccountEmail=c.external_account_email,
        externalCalendarId=c.external_calendar_id,
        syncEnabled=c.sync_enabled,
        isActive=c.is_active,
        lastSyncAt=c.last_sync_at,
        configuredFields=sorted(decrypt_config(c.config_encrypted)),
        createdAt=c.created_at,
    )


def _event_response(e: CalendarEvent) -> UnifiedEventResponse:
    return UnifiedEventResponse(
        id=e.key,
        source=e.source,
        sourceId=e.source_id,
        title=e.title,
        startTime=e.start,
        endTime=e.end,
        description=e.description,
        location=e.location,
        attendees=[a for a in e.attendees if a.get("email")],
        eventType=e.event_type,
        status=e.status,
        color=e.color,
        allDay=e.all_day,
        syncStatus=e.sync_status,
        lastSyncedAt=e.last_synced_at,
        userId=e.user_id,
        metadata=e.metadata or {},
    )


def _conflict_response(c, events: Optional[list[CalendarEvent]] = None) -> ConflictResponse:
    return ConflictResponse(
        id=c.id,
        type=c.conflict_type,
        severity=c.severity,
        eventIds=c.event_ids or [],
        events=[_event_response(e) for e in events or []],
        description=c.description,
        suggestedResolution=c.suggested_resolution,
        resolved=c.resolved,
        resolution=c.resolution,
        resolvedBy=c.resolved_by,
        resolvedAt=c.resolved_at,
        detectedAt=c.detected_at,
    )


def _parse_sources(sources: Optional[str]) -> Optional[list[str]]:
    if not sources:
        return None
    requested = [s.strip().lower() for s in sources.split(",") if s.strip()]
    unknown = [s for s in requested if s not in CALENDAR_SOURCES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown calendar sources: {', '.join(unknown)}")
    return requested


def _date_range(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
    default_start, default_end = sync_window()
    start = start or default_start
    end = end or default_end
    if end <= start:
        raise HTTPException(status_code=400, detail="end must be after start")
    return start, end


# ============================================================================
# OPERATIONS CALENDAR
# ============================================================================


@operations_router.get("", response_model=list[OperationResponse])
async def list_operations(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return [_operation_response(op) for op in service.get_operations(start, end)]


@operations_router.get("/export/ical")
async def export_ical(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return Response(
        content=service.export_ical(start, end),
        media_type="text/calendar",
        headers={"Content-Disposition": 'attachment; filename="operations-calendar.ics"'},
    )


@operations_router.post("/import/ical", response_model=ImportResult)
async def import_ical(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_admin),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > MAX_ICAL_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="iCal file is too large")
    result = service.import_ical(content, current_user.id)
    return ImportResult(
        imported=result["imported"],
        skipped=result["skipped"],
        events=[_operation_response(op) for op in result["events"]],
    )


@operations_router.get("/{operation_id}", response_model=OperationResponse)
async def get_operation(
    operation_id: int,
    current_user: User = Depends(get_current_user),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return _operation_response(service.get_operation(operation_id))


@operations_router.post("", response_model=OperationResponse, status_code=201)
async def create_operation(
    data: OperationCreate,
    current_user: User = Depends(get_current_admin),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return _operation_response(service.create_operation(data, current_user.id))


@operations_router.put("/{operation_id}", response_model=OperationResponse)
async def update_operation(
    operation_id: int,
    data: OperationUpdate,
    current_user: User = Depends(get_current_admin),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return _operation_response(service.update_operation(operation_id, data))


@operations_router.delete("/{operation_id}")
async def delete_operation(
    operation_id: int,
    current_user: User = Depends(get_current_admin),
    service: OperationsCalendarService = Depends(get_operations_service),
):
    return service.delete_operation(operation_id)


# ============================================================================
# CONNECTIONS
# ============================================================================


@connections_router.get("/providers", response_model=list[ProviderConfig])
async def list_providers(current_user: User = Depends(get_current_user)):
    return provider_registry.list_configs()


@connections_router.get("", response_model=list[ConnectionResponse])
async def list_connections(
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return [_connection_response(c) for c in service.get_connections(current_user.id)]


@connections_router.post("", response_model=ConnectionResponse, status_code=201)
async def create_connection(
    data: ConnectionCreate,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return _connection_response(service.create_connection(current_user.id, data))


@connections_router.get("/google/connect", response_model=OAuthConnectResponse)
async def connect_google(
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return OAuthConnectResponse(authorizationUrl=service.google_authorization_url(current_user))


@connections_router.post("/google/callback", response_model=ConnectionResponse)
async def google_callback(
    data: OAuthCallbackRequest,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return _connection_response(await service.complete_google_oauth(current_user, data.code))


@connections_router.get("/outlook/connect", response_model=OAuthConnectResponse)
async def connect_outlook(
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return OAuthConnectResponse(authorizationUrl=service.outlook_authorization_url(current_user))


@connections_router.post("/outlook/callback", response_model=ConnectionResponse)
async def outlook_callback(
    data: OAuthCallbackRequest,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return _connection_response(await service.complete_outlook_oauth(current_user, data.code))


@connections_router.put("/{connection_id}", response_model=ConnectionResponse)
async def update_connection(
    connection_id: int,
    data: ConnectionUpdate,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return _connection_response(service.update_connection(current_user.id, connection_id, data))


@connections_router.delete("/{connection_id}")
async def delete_connection(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return await service.delete_connection(current_user.id, connection_id)


@connections_router.post("/{connection_id}/test", response_model=ConnectionTestResponse)
async def test_connection(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    return await service.test_connection(current_user.id, connection_id)


# ============================================================================
# ADMIN UNIFIED CALENDAR
# ============================================================================


@admin_router.get("/unified", response_model=list[UnifiedEventResponse])
async def get_unified_calendar(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    sources: Optional[str] = Query(None, description="Comma separated calendar sources"),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    start, end = _date_range(start, end)
    events = await UnifiedCalendarService(db).get_unified_events(current_user.id, start, end, _parse_sources(sources))
    return [_event_response(e) for e in events]


@admin_router.get("/conflicts", response_model=list[ConflictResponse])
async def list_conflicts(
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [_conflict_response(c, events) for c, events in ConflictResolver(db).get_unresolved()]


@admin_router.post("/conflicts/detect", response_model=list[ConflictResponse])
async def detect_conflicts(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    start, end = _date_range(start, end)
    conflicts = await UnifiedCalendarService(db).detect_conflicts(current_user.id, start, end)
    resolver = ConflictResolver(db)
    return [_conflict_response(c, resolver.events_for(c)) for c in conflicts]


@admin_router.post("/conflicts/auto-resolve", response_model=AutoResolveResult)
async def auto_resolve_conflicts(
    data: AutoResolveRequest,
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return ConflictResolver(db).auto_resolve(data.strategy)


@admin_router.post("/conflicts/{conflict_id}/resolve", response_model=ConflictResponse)
async def resolve_conflict(
    conflict_id: int,
    data: ResolveConflictRequest,
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    resolver = ConflictResolver(db)
    conflict = resolver.resolve(conflict_id, data.resolution, current_user.email)
    return _conflict_response(conflict, resolver.events_for(conflict))


@admin_router.post("/sync", response_model=list[SyncSourceResult])
async def sync_calendars(
    data: SyncRequest,
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return await CalendarSyncScheduler(db).sync_user(current_user.id, data.source)


@admin_router.get("/sync/status", response_model=list[SyncStatusResponse])
async def get_sync_status(
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [
        SyncStatusResponse(
            source=s.source,
            status=s.status,
            lastSyncAt=s.last_sync_at,
            errorMessage=s.error_message,
            eventsSynced=s.events_synced or 0,
        )
        for s in CalendarSyncScheduler(db).get_status(current_user.id)
    ]


@admin_router.get("/sync/logs", response_model=list[SyncLogResponse])
async def get_sync_logs(
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return [
        SyncLogResponse(
            id=log.id,
            source=log.source,
            operation=log.operation,
            status=log.status,
            eventsProcessed=log.events_processed or 0,
            errors=log.errors,
            durationMs=log.duration_ms or 0,
            createdAt=log.created_at,
        )
        for log in CalendarSyncScheduler(db).get_logs(current_user.id, limit)
    ]


@admin_router.get("/analytics", response_model=CalendarAnalytics)
async def get_calendar_analytics(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    start, end = _date_range(start, end)
    return UnifiedCalendarService(db).get_analytics(start, end)


__all__ = ["operations_router", "connections_router", "admin_router"]
