"""CRM service - Business logic for client records and GoHighLevel sync"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import ROLE_AFFILIATE, SUBSCRIPTION_MONTHLY_VALUE, User
from ...models_crm import CLIENT_STATUSES, ClientCommunication, CrmClient
from ...services import highlevel_service
from ...shared.serialization import parse_datetime, schema_to_columns
from .repository import CrmRepository
from .schemas import PARTNER_STATUSES, ClientCreate, ClientUpdate, CommunicationCreate

logger = logging.getLogger(__name__)


def monthly_revenue_for(subscription_type: Optional[str]) -> int:
    return SUBSCRIPTION_MONTHLY_VALUE.get(subscription_type or "", 0)


def client_sync_payload(client: CrmClient) -> dict:
    return {
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "subscription_type": client.subscription_type,
        "status": client.status,
        "partner_status": client.partner_status,
        "monthly_revenue": client.monthly_revenue,
        "highlevel_contact_id": client.highlevel_contact_id,
    }


class CrmService:
    """Service layer for CRM operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CrmRepository()

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def get_clients(self, search: Optional[str] = None, status: Optional[str] = None, skip: int = 0, limit: int = 100):
        return self.repo.get_clients(self.db, search, status, skip, limit)

    def get_client(self, client_id: int) -> CrmClient:
        client = self.repo.get_client(self.db, client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def create_client(self, data: ClientCreate) -> CrmClient:
        if self.repo.get_by_email(self.db, data.email):
            raise HTTPException(status_code=409, detail="A client with this email already exists")
        columns = schema_to_columns(data)
        if columns["monthly_revenue"] is None:
            columns["monthly_revenue"] = monthly_revenue_for(data.subscriptionType)
        client = self.repo.save(self.db, CrmClient(**columns))
        logger.info(f"✅ CRM client created: {client.email}")
        return client

    def update_client(self, client_id: int, data: ClientUpdate) -> CrmClient:
        client = self.get_client(client_id)
        if data.email and data.email != client.email:
            existing = self.repo.get_by_email(self.db, data.email)
            if existing and existing.id != client.id:
                raise HTTPException(status_code=409, detail="A client with this email already exists")
        columns = schema_to_columns(data, exclude_unset=True)
        if data.subscriptionType and data.monthlyRevenue is None:
            columns["monthly_revenue"] = monthly_revenue_for(data.subscriptionType)
        return self.repo.update(self.db, client, **columns)

    def delete_client(self, client_id: int) -> dict:
        self.repo.delete(self.db, self.get_client(client_id))
        return {"message": "Client deleted"}

    def get_stats(self) -> dict:
        by_status = {status: 0 for status in CLIENT_STATUSES}
        by_status.update(self.repo.count_by(self.db, CrmClient.status))
        by_subscription = self.repo.count_by(self.db, CrmClient.subscription_type)
        return {
            "total": sum(by_status.values()),
            "byStatus": by_status,
            "bySubscription": by_subscription,
            "totalMonthlyRevenue": int(self.repo.total_revenue(self.db)),
        }

    def sync_user(self, user_id: int) -> CrmClient:
        """Create or refresh the client record for a platform user"""
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        status = user.subscription_status if user.subscription_status in CLIENT_STATUSES else "ACTIVE"
        values = {
            "user_id": user.id,
            "name": user.full_name or user.email,
            "email": user.email.lower(),
            "phone": user.phone_number,
            "subscription_type": user.subscription_type,
            "status": status,
            "monthly_revenue": monthly_revenue_for(user.subscription_type),
        }

        client = self.repo.get_by_user_or_email(self.db, user.id, user.email)
        if client:
            for key, value in values.items():
                if value is not None:
                    setattr(client, key, value)
            if user.role == ROLE_AFFILIATE and client.partner_status == "NONE":
                client.partner_status = "AFFILIATE"
            self.db.commit()
            self.db.refresh(client)
            logger.info(f"🔄 CRM client {client.id} refreshed from user {user.id}")
            return client

        client = CrmClient(
            **values,
            subscription_date=user.subscription_date or datetime.utcnow(),
            partner_status="AFFILIATE" if user.role == ROLE_AFFILIATE else "NONE",
            tags=[],
        )
        client = self.repo.save(self.db, client)
        logger.info(f"✅ CRM client {client.id} created from user {user.id}")
        return client

    # ------------------------------------------------------------------
    # Tags and communications
    # ------------------------------------------------------------------

    def add_tag(self, client_id: int, tag: str) -> CrmClient:
        client = self.get_client(client_id)
        tag = tag.strip()
        if tag not in (client.tags or []):
            client.tags = [*(client.tags or []), tag]
            self.db.commit()
            self.db.refresh(client)
        return client

    def remove_tag(self, client_id: int, tag: str) -> CrmClient:
        client = self.get_client(client_id)
        if tag not in (client.tags or []):
            raise HTTPException(status_code=404, detail="Tag not found on client")
        client.tags = [t for t in client.tags if t != tag]
        self.db.commit()
        self.db.refresh(client)
        return client

    def get_communications(self, client_id: int) -> list[ClientCommunication]:
        self.get_client(client_id)
        return self.repo.get_communications(self.db, client_id)

    def add_communication(self, client_id: int, data: CommunicationCreate, user_id: Optional[int]) -> ClientCommunication:
        client = self.get_client(client_id)
        communication = ClientCommunication(client_id=client.id, created_by=user_id, **schema_to_columns(data))
        return self.repo.save(self.db, communication)

    # ------------------------------------------------------------------
    # GoHighLevel
    # ------------------------------------------------------------------

    async def push_to_highlevel(self, client_id: int) -> dict:
        client = self.get_client(client_id)
        contact_id = await highlevel_service.sync_contact(client_sync_payload(client))
        if contact_id:
            client.highlevel_contact_id = contact_id
            client.highlevel_synced_at = datetime.utcnow()
            self.db.commit()
            logger.info(f"✅ CRM client {client.id} synced to HighLevel contact {contact_id}")
        return {"synced": contact_id is not None, "highlevelContactId": client.highlevel_contact_id}

    def upsert_from_highlevel(self, contact: dict) -> Optional[CrmClient]:
        """Apply a HighLevel contact to the matching client (by contact id, then email)"""
        contact_id = contact.get("id") or contact.get("contact_id")
        fields = highlevel_service.extract_contact_fields(contact)
        if fields.get("subscription_type") not in SUBSCRIPTION_MONTHLY_VALUE:
            fields.pop("subscription_type", None)
        if fields.get("status") not in CLIENT_STATUSES:
            fields.pop("status", None)
        if fields.get("partner_status") not in PARTNER_STATUSES:
            fields.pop("partner_status", None)

        client = self.repo.get_by_highlevel_id(self.db, contact_id) if contact_id else None
        if not client and fields.get("email"):
            client = self.repo.get_by_email(self.db, fields["email"])

        if not client:
            if not fields.get("email"):
                logger.info(f"ℹ️ HighLevel contact {contact_id} has no email, skipping")
                return None
            fields.setdefault("status", "LEAD")
            client = CrmClient(**fields)
            if client.subscription_type:
                client.monthly_revenue = monthly_revenue_for(client.subscription_type)
            self.db.add(client)
        else:
            for key, value in fields.items():
                setattr(client, key, value)
            if "subscription_type" in fields:
                client.monthly_revenue = monthly_revenue_for(fields["subscription_type"])

        if contact_id:
            client.highlevel_contact_id = contact_id
        client.highlevel_synced_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"🔄 CRM client {client.id} updated from HighLevel contact {contact_id}")
        return client

    def record_booking(self, appointment: dict) -> Optional[CrmClient]:
        """Track an appointment booked through HighLevel against the client"""
        contact = appointment.get("contact") or {}
        contact_id = appointment.get("contactId") or contact.get("id")
        email = (appointment.get("email") or contact.get("email") or "").strip().lower()

        client = self.repo.get_by_highlevel_id(self.db, contact_id) if contact_id else None
        if not client and email:
            client = self.repo.get_by_email(self.db, email)
        if not client:
            if not email:
                logger.info("ℹ️ Appointment without a known contact, skipping")
                return None
            name = appointment.get("name") or contact.get("name") or email
            client = CrmClient(name=name, email=email, status="LEAD", highlevel_contact_id=contact_id, tags=[])
            self.db.add(client)

        appointment_id = appointment.get("id") or appointment.get("appointmentId")
        client.calendly_event_uri = f"highlevel://appointments/{appointment_id}" if appointment_id else None
        client.calendly_event_name = appointment.get("title") or appointment.get("calendarName") or "Appointment"
        client.last_booking_time = parse_datetime(appointment.get("startTime")) or datetime.utcnow()
        client.booking_count = (client.booking_count or 0) + 1
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"📅 Booking recorded for CRM client {client.id}")
        return client
