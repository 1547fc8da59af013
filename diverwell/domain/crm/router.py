"""CRM router - FastAPI endpoints for client management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import User
from .schemas import (
    ClientCreate,
    ClientResponse,
    ClientStats,
    ClientUpdate,
    CommunicationCreate,
    CommunicationResponse,
    HighLevelSyncResponse,
    TagRequest,
)
from .service import CrmService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crm", tags=["CRM"])


def get_crm_service(db: Session = Depends(get_db)) -> CrmService:
    """Dependency injection for CrmService"""
    return CrmService(db)


def _client_response(c) -> ClientResponse:
    return ClientResponse(
        id=c.id,
        userId=c.user_id,
        name=c.name,
        email=c.email,
        phone=c.phone,
        subscriptionType=c.subscription_type,
        status=c.status,
        subscriptionDate=c.subscription_date,
        monthlyRevenue=c.monthly_revenue or 0,
        partnerStatus=c.partner_status,
        tags=c.tags or [],
        notes=c.notes,
        highlevelContactId=c.highlevel_contact_id,
        highlevelSyncedAt=c.highlevel_synced_at,
        calendlyEventName=c.calendly_event_name,
        lastBookingTime=c.last_booking_time,
        bookingCount=c.booking_count or 0,
        createdAt=c.created_at,
    )


def _communication_response(m) -> CommunicationResponse:
    return CommunicationResponse(
        id=m.id,
        clientId=m.client_id,
        channel=m.channel,
        direction=m.direction,
        subject=m.subject,
        body=m.body,
        createdBy=m.created_by,
        createdAt=m.created_at,
    )


# ============================================================================
# CLIENTS
# ============================================================================


@router.get("/clients", response_model=list[ClientResponse])
async def list_clients(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return [_client_response(c) for c in service.get_clients(search, status, skip, limit)]


@router.get("/clients/stats", response_model=ClientStats)
async def get_client_stats(
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return service.get_stats()


@router.post("/clients", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.create_client(data))


@router.post("/clients/sync-user/{user_id}", response_model=ClientResponse)
async def sync_user_to_client(
    user_id: int,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.sync_user(user_id))


@router.get("/clients/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.get_client(client_id))


@router.put("/clients/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    data: ClientUpdate,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.update_client(client_id, data))


@router.delete("/clients/{client_id}")
async def delete_client(
    client_id: int,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return service.delete_client(client_id)


# ============================================================================
# TAGS AND COMMUNICATIONS
# ============================================================================


@router.post("/clients/{client_id}/tags", response_model=ClientResponse)
async def add_tag(
    client_id: int,
    data: TagRequest,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.add_tag(client_id, data.tag))


@router.delete("/clients/{client_id}/tags/{tag}", response_model=ClientResponse)
async def remove_tag(
    client_id: int,
    tag: str,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _client_response(service.remove_tag(client_id, tag))


@router.get("/clients/{client_id}/communications", response_model=list[CommunicationResponse])
async def list_communications(
    client_id: int,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return [_communication_response(m) for m in service.get_communications(client_id)]


@router.post("/clients/{client_id}/communications", response_model=CommunicationResponse, status_code=201)
async def add_communication(
    client_id: int,
    data: CommunicationCreate,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return _communication_response(service.add_communication(client_id, data, current_user.id))


# ============================================================================
# GOHIGHLEVEL
# ============================================================================


@router.post("/clients/{client_id}/highlevel-sync", response_model=HighLevelSyncResponse)
async def sync_client_to_highlevel(
    client_id: int,
    current_user: User = Depends(get_current_admin),
    service: CrmService = Depends(get_crm_service),
):
    return await service.push_to_highlevel(client_id)


__all__ = ["router"]
