"""Calendar service - Business logic for the operations calendar and provider connections"""

import logging
from datetime import datetime, timedelta, time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_calendar import CalendarSyncCredential, OperationsCalendarEvent
from ...services import google_calendar_service, outlook_calendar_service
from ...shared.crypto import decrypt_config, encrypt_config, encrypt_token
from ...shared.serialization import schema_to_columns
from .ical import ICalParseError, generate_ical, parse_ical
from .providers import CalendarProviderError, provider_registry
from .repository import CalendarRepository
from .schemas import ConnectionCreate, ConnectionUpdate, OperationCreate, OperationUpdate

logger = logging.getLogger(__name__)


def _midnight(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


class OperationsCalendarService:
    """Service layer for internal operations scheduling"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def get_operations(self, start: Optional[datetime] = None, end: Optional[datetime] = None):
        return self.repo.get_operations(self.db, start, end)

    def get_operation(self, operation_id: int) -> OperationsCalendarEvent:
        operation = self.repo.get_operation(self.db, operation_id)
        if not operation:
            raise HTTPException(status_code=404, detail="Operation not found")
        return operation

    def create_operation(self, data: OperationCreate, user_id: Optional[int]) -> OperationsCalendarEvent:
        columns = schema_to_columns(data)
        columns["operation_date"] = _midnight(columns["operation_date"])
        operation = self.repo.save(self.db, OperationsCalendarEvent(created_by=user_id, **columns))
        logger.info(f"📅 Operation scheduled: {operation.title} on {operation.operation_date.date()}")
        return operation

    def update_operation(self, operation_id: int, data: OperationUpdate) -> OperationsCalendarEvent:
        operation = self.get_operation(operation_id)
        columns = schema_to_columns(data, exclude_unset=True)
        if columns.get("operation_date"):
            columns["operation_date"] = _midnight(columns["operation_date"])
        return self.repo.update(self.db, operation, **columns)

    def delete_operation(self, operation_id: int) -> dict:
        self.repo.delete(self.db, self.get_operation(operation_id))
        return {"message": "Operation deleted"}

    def export_ical(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> bytes:
        return generate_ical(self.get_operations(start, end))

    def import_ical(self, content: bytes, user_id: Optional[int]) -> dict:
        """Create operations from an uploaded file; events imported before are skipped"""
        try:
            parsed = parse_ical(content)
        except ICalParseError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        created = []
        skipped = 0
        seen = set()
        for event in parsed:
            external_id = event["external_id"]
            if external_id and (external_id in seen or self.repo.external_id_exists(self.db, external_id)):
                skipped += 1
                continue
            seen.add(external_id)

            operation = OperationsCalendarEvent(
                title=event["title"][:255],
                description=event["description"],
                operation_date=_midnight(event["start"]),
                start_time=None if event["all_day"] else event["start"].strftime("%H:%M"),
                end_time=None if event["all_day"] else event["end"].strftime("%H:%M"),
                location=event["location"],
                type=event["type"],
                status="SCHEDULED",
                external_id=external_id,
                created_by=user_id,
            )
            self.db.add(operation)
            created.append(operation)

        self.db.commit()
        for operation in created:
            self.db.refresh(operation)
        logger.info(f"📥 iCal import: {len(created)} created, {skipped} skipped")
        return {"imported": len(created), "skipped": skipped, "events": created}


class CalendarConnectionService:
    """Service layer for external calendar credentials"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def get_connections(self, user_id: int) -> list[CalendarSyncCredential]:
        return self.repo.get_credentials(self.db, user_id)

    def get_connection(self, user_id: int, connection_id: int) -> CalendarSyncCredential:
        credential = self.repo.get_credential_by_id(self.db, connection_id)
        if not credential or credential.user_id != user_id:
            raise HTTPException(status_code=404, detail="Calendar connection not found")
        return credential

    def _validate(self, provider: str, config: dict) -> None:
        valid, errors = provider_registry.validate_config(provider, config)
        if not valid:
            raise HTTPException(status_code=400, detail="; ".join(errors))

    def create_connection(self, user_id: int, data: ConnectionCreate) -> CalendarSyncCredential:
        if provider_registry.get(data.provider).requires_oauth:
            raise HTTPException(status_code=400, detail=f"{data.provider} connects through OAuth")
        if self.repo.get_credential(self.db, user_id, data.provider):
            raise HTTPException(status_code=409, detail=f"A {data.provider} connection already exists")
        self._validate(data.provider, data.config)

        credential = CalendarSyncCredential(
            user_id=user_id,
            provider=data.provider,
            name=data.name or provider_registry.get(data.provider).name,
            config_encrypted=encrypt_config(data.config),
            external_calendar_id=data.config.get("calendarId"),
            sync_enabled=data.syncEnabled,
            is_active=True,
        )
        credential = self.repo.save(self.db, credential)
        logger.info(f"✅ {data.provider} calendar connected for user {user_id}")
        return credential

    def update_connection(self, user_id: int, connection_id: int, data: ConnectionUpdate) -> CalendarSyncCredential:
        credential = self.get_connection(user_id, connection_id)
        if data.config is not None:
            config = {**decrypt_config(credential.config_encrypted), **data.config}
            self._validate(credential.provider, config)
            credential.config_encrypted = encrypt_config(config)
            credential.external_calendar_id = config.get("calendarId") or credential.external_calendar_id
        return self.repo.update(
            self.db, credential, name=data.name, sync_enabled=data.syncEnabled, is_active=data.isActive
        )

    async def delete_connection(self, user_id: int, connection_id: int) -> dict:
        credential = self.get_connection(user_id, connection_id)
        await provider_registry.get(credential.provider).disconnect(self.db, user_id)
        return {"message": "Calendar connection removed"}

    async def test_connection(self, user_id: int, connection_id: int) -> dict:
        credential = self.get_connection(user_id, connection_id)
        provider = provider_registry.get(credential.provider)
        try:
            success = await provider.authenticate(self.db, user_id)
        except CalendarProviderError as e:
            return {"provider": credential.provider, "success": False, "message": str(e)}
        message = "Connection verified" if success else f"{provider.name} rejected the credentials"
        return {"provider": credential.provider, "success": success, "message": message}

    def google_authorization_url(self, user: User) -> str:
        if not google_calendar_service.is_google_configured():
            raise HTTPException(status_code=500, detail="Google Calendar not configured")
        logger.info(f"Google Calendar OAuth initiated for user: {user.email}")
        return google_calendar_service.build_authorization_url(user.firebase_uid or str(user.id))

    async def complete_google_oauth(self, user: User, code: str) -> CalendarSyncCredential:
        tokens = await google_calendar_service.exchange_code(code)
        return self._store_oauth_tokens(user, "google", tokens)

    def outlook_authorization_url(self, user: User) -> str:
        if not outlook_calendar_service.is_outlook_configured():
            raise HTTPException(status_code=500, detail="Outlook Calendar not configured")
        logger.info(f"Outlook Calendar OAuth initiated for user: {user.email}")
        return outlook_calendar_service.build_authorization_url(user.firebase_uid or str(user.id))

    async def complete_outlook_oauth(self, user: User, code: str) -> CalendarSyncCredential:
        tokens = await outlook_calendar_service.exchange_code(code)
        return self._store_oauth_tokens(user, "outlook", tokens)

    def _store_oauth_tokens(self, user: User, provider: str, tokens: dict) -> CalendarSyncCredential:
        name = provider_registry.get(provider).name
        credential = self.repo.get_credential(self.db, user.id, provider)
        if not credential:
            credential = CalendarSyncCredential(user_id=user.id, provider=provider, name=name)
            self.db.add(credential)
        credential.access_token = encrypt_token(tokens["access_token"])
        credential.refresh_token = encrypt_token(tokens["refresh_token"])
        credential.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens["expires_in"])
        credential.external_account_email = tokens["email"]
        if tokens.get("calendar_id"):
            credential.external_calendar_id = tokens["calendar_id"]
        credential.sync_enabled = True
        credential.is_active = True
        self.db.commit()
        self.db.refresh(credential)

        logger.info(f"✅ {name} connected for user: {user.email}")
        return credential
