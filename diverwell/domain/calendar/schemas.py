"""Calendar domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...models_calendar import OPERATION_STATUSES, OPERATION_TYPES, SYNC_SOURCES
from ...shared.validators import validate_choice, validate_hex_color, validate_hhmm
from .conflict_resolver import CONFLICT_RESOLUTIONS
from .providers import provider_registry

# ============================================================================
# OPERATIONS CALENDAR
# ============================================================================


class OperationBase(BaseModel):
    @field_validator("startTime", "endTime", check_fields=False)
    @classmethod
    def validate_times(cls, v):
        return validate_hhmm(v)

    @field_validator("type", check_fields=False)
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, OPERATION_TYPES, "type")

    @field_validator("status", check_fields=False)
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, OPERATION_STATUSES, "status")

    @field_validator("color", check_fields=False)
    @classmethod
    def validate_color(cls, v):
        return validate_hex_color(v)


class OperationCreate(OperationBase):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    operationDate: datetime
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    type: str = "OTHER"
    status: str = "SCHEDULED"
    color: Optional[str] = None


class OperationUpdate(OperationBase):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    operationDate: Optional[datetime] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    type: Optional[str] = None
    status: Optional[str] = None
    color: Optional[str] = None


class OperationResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    operationDate: datetime
    startTime: Optional[str]
    endTime: Optional[str]
    location: Optional[str]
    type: str
    status: str
    color: Optional[str]
    externalId: Optional[str]
    createdBy: Optional[int]
    createdAt: Optional[datetime] = None


class ImportResult(BaseModel):
    imported: int
    skipped: int
    events: list[OperationResponse]


# ============================================================================
# CONNECTIONS
# ============================================================================


class ProviderConfig(BaseModel):
    provider: str
    name: str
    description: str
    requiresOAuth: bool
    requiredFields: list[str]
    optionalFields: list[str]


class ConnectionCreate(BaseModel):
    provider: str
    name: Optional[str] = Field(None, max_length=255)
    config: dict[str, Any] = {}
    syncEnabled: bool = True

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v):
        return validate_choice(v, tuple(provider_registry.names()), "provider")


class ConnectionUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    config: Optional[dict[str, Any]] = None
    syncEnabled: Optional[bool] = None
    isActive: Optional[bool] = None


class ConnectionResponse(BaseModel):
    id: int
    provider: str
    name: Optional[str]
    externalAccountEmail: Optional[str]
    externalCalendarId: Optional[str]
    syncEnabled: bool
    isActive: bool
    lastSyncAt: Optional[datetime]
    configuredFields: list[str]
    createdAt: Optional[datetime] = None


class ConnectionTestResponse(BaseModel):
    provider: str
    success: bool
    message: str


class OAuthConnectResponse(BaseModel):
    authorizationUrl: str


class OAuthCallbackRequest(BaseModel):
    code: str = Field(..., min_length=1)


# ============================================================================
# UNIFIED CALENDAR
# ============================================================================


class Attendee(BaseModel):
    email: str
    name: Optional[str] = None


class UnifiedEventResponse(BaseModel):
    id: str
    source: str
    sourceId: str
    title: str
    startTime: datetime
    endTime: datetime
    description: Optional[str]
    location: Optional[str]
    attendees: list[Attendee]
    eventType: Optional[str]
    status: Optional[str]
    color: Optional[str]
    allDay: bool
    syncStatus: str
    lastSyncedAt: Optional[datetime]
    userId: Optional[int]
    metadata: dict[str, Any] = {}


class ConflictResponse(BaseModel):
    id: int
    type: str
    severity: str
    eventIds: list[str]
    events: list[UnifiedEventResponse] = []
    description: Optional[str]
    suggestedResolution: Optional[str]
    resolved: bool
    resolution: Optional[str]
    resolvedBy: Optional[str]
    resolvedAt: Optional[datetime]
    detectedAt: datetime


class ResolveConflictRequest(BaseModel):
    resolution: str

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v):
        return validate_choice(v, CONFLICT_RESOLUTIONS, "resolution")


class AutoResolveRequest(BaseModel):
    strategy: str = "newest_wins"

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, v):
        return validate_choice(v, CONFLICT_RESOLUTIONS, "strategy")


class AutoResolveResult(BaseModel):
    resolved: int
    skipped: int
    strategy: str


class SyncRequest(BaseModel):
    source: Optional[str] = None

    @field_validator("source")
    @classmethod
    def validate_source(cls, v):
        return validate_choice(v, SYNC_SOURCES, "source")


class SyncSourceResult(BaseModel):
    source: str
    success: bool
    eventsSynced: int
    errors: list[str]
    note: Optional[str] = None


class SyncStatusResponse(BaseModel):
    source: str
    status: str
    lastSyncAt: Optional[datetime]
    errorMessage: Optional[str]
    eventsSynced: int


class SyncLogResponse(BaseModel):
    id: int
    source: str
    operation: str
    status: str
    eventsProcessed: int
    errors: Optional[list[str]]
    durationMs: int
    createdAt: Optional[datetime] = None


class CalendarAnalytics(BaseModel):
    totalEvents: int
    bySource: dict[str, int]
    byType: dict[str, int]
    byWeekday: dict[str, int]
    busiestDay: Optional[str]
    conflicts: dict[str, Any]

