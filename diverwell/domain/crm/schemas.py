"""CRM domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import SUBSCRIPTION_MONTHLY_VALUE
from ...models_crm import CLIENT_STATUSES, COMMUNICATION_CHANNELS
from ...shared.validators import validate_choice, validate_email, validate_phone

PARTNER_STATUSES = ("NONE", "AFFILIATE", "PARTNER")
SUBSCRIPTION_TYPES = tuple(SUBSCRIPTION_MONTHLY_VALUE)


class ClientBase(BaseModel):
    @field_validator("email", check_fields=False)
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("phone", check_fields=False)
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)

    @field_validator("subscriptionType", check_fields=False)
    @classmethod
    def validate_subscription_type(cls, v):
        return validate_choice(v, SUBSCRIPTION_TYPES, "subscription type")

    @field_validator("status", check_fields=False)
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, CLIENT_STATUSES, "status")

    @field_validator("partnerStatus", check_fields=False)
    @classmethod
    def validate_partner_status(cls, v):
        return validate_choice(v, PARTNER_STATUSES, "partner status")


class ClientCreate(ClientBase):
    name: str = Field(..., min_length=1, max_length=255)
    email: str
    phone: Optional[str] = None
    subscriptionType: str = "TRIAL"
    status: str = "LEAD"
    subscriptionDate: Optional[datetime] = None
    monthlyRevenue: Optional[int] = Field(None, ge=0)
    partnerStatus: str = "NONE"
    tags: list[str] = []
    notes: Optional[str] = None


class ClientUpdate(ClientBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    subscriptionType: Optional[str] = None
    status: Optional[str] = None
    subscriptionDate: Optional[datetime] = None
    monthlyRevenue: Optional[int] = Field(None, ge=0)
    partnerStatus: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = None


class ClientResponse(BaseModel):
    id: int
    userId: Optional[int]
    name: str
    email: str
    phone: Optional[str]
    subscriptionType: str
    status: str
    subscriptionDate: Optional[datetime]
    monthlyRevenue: int
    partnerStatus: str
    tags: list[str]
    notes: Optional[str]
    highlevelContactId: Optional[str]
    highlevelSyncedAt: Optional[datetime]
    calendlyEventName: Optional[str]
    lastBookingTime: Optional[datetime]
    bookingCount: int
    createdAt: Optional[datetime] = None


class ClientStats(BaseModel):
    total: int
    byStatus: dict[str, int]
    bySubscription: dict[str, int]
    totalMonthlyRevenue: int


class TagRequest(BaseModel):
    tag: str = Field(..., min_length=1, max_length=50)


class CommunicationCreate(BaseModel):
    channel: str
    direction: str = "outbound"
    subject: Optional[str] = Field(None, max_length=255)
    body: Optional[str] = Field(None, max_length=10000)

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v):
        return validate_choice(v, COMMUNICATION_CHANNELS, "channel")

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v):
        return validate_choice(v, ("inbound", "outbound"), "direction")


class CommunicationResponse(BaseModel):
    id: int
    clientId: int
    channel: str
    direction: str
    subject: Optional[str]
    body: Optional[str]
    createdBy: Optional[int]
    createdAt: Optional[datetime] = None


class HighLevelSyncResponse(BaseModel):
    synced: bool
    highlevelContactId: Optional[str]
