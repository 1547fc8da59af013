"""Sponsor domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models_sponsor import (
    EVENT_TYPES,
    INQUIRY_STATUSES,
    PLACEMENT_TYPES,
    SPONSOR_STATUSES,
    SPONSOR_TIERS,
)
from ...shared.validators import validate_choice, validate_email, validate_report_month


class SponsorCreate(BaseModel):
    companyName: str = Field(..., min_length=1, max_length=255)
    contactName: Optional[str] = None
    contactEmail: str
    contactPhone: Optional[str] = None
    category: Optional[str] = None
    tier: str = "BRONZE"
    status: str = "PENDING"
    exclusivityCategory: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    monthlyFee: int = Field(0, ge=0)
    landingUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    description: Optional[str] = None
    promoCode: Optional[str] = None
    ctaText: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("contactEmail")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v):
        return validate_choice(v, SPONSOR_TIERS, "tier")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, SPONSOR_STATUSES, "status")


class SponsorUpdate(BaseModel):
    companyName: Optional[str] = Field(None, min_length=1, max_length=255)
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    contactPhone: Optional[str] = None
    category: Optional[str] = None
    tier: Optional[str] = None
    status: Optional[str] = None
    exclusivityCategory: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    monthlyFee: Optional[int] = Field(None, ge=0)
    landingUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    description: Optional[str] = None
    promoCode: Optional[str] = None
    ctaText: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("contactEmail")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v):
        return validate_choice(v, SPONSOR_TIERS, "tier")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, SPONSOR_STATUSES, "status")


class PlacementCreate(BaseModel):
    placementType: str
    location: Optional[str] = None
    order: int = Field(0, ge=0)
    isActive: bool = True
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    metadata: Optional[dict] = None

    @field_validator("placementType")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, PLACEMENT_TYPES, "placement type")


class PlacementUpdate(BaseModel):
    placementType: Optional[str] = None
    location: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)
    isActive: Optional[bool] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    metadata: Optional[dict] = None

    @field_validator("placementType")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, PLACEMENT_TYPES, "placement type")


class PlacementResponse(BaseModel):
    id: int
    sponsorId: int
    placementType: str
    location: Optional[str]
    order: int
    isActive: bool
    startDate: Optional[datetime]
    endDate: Optional[datetime]
    metadata: Optional[dict]


class SponsorResponse(BaseModel):
    id: int
    companyName: str
    contactName: Optional[str]
    contactEmail: str
    contactPhone: Optional[str]
    category: Optional[str]
    tier: str
    status: str
    exclusivityCategory: Optional[str]
    startDate: Optional[datetime]
    endDate: Optional[datetime]
    monthlyFee: int
    landingUrl: Optional[str]
    logoUrl: Optional[str]
    description: Optional[str]
    promoCode: Optional[str]
    ctaText: Optional[str]
    notes: Optional[str]
    placements: list[PlacementResponse] = []


class PublicSponsor(BaseModel):
    """Public view - no contact details, fees or notes"""

    id: int
    companyName: str
    tier: str
    category: Optional[str]
    landingUrl: Optional[str]
    logoUrl: Optional[str]
    description: Optional[str]
    promoCode: Optional[str]
    ctaText: Optional[str]


class ActivePlacement(BaseModel):
    placementId: int
    placementType: str
    location: Optional[str]
    order: int
    metadata: Optional[dict]
    sponsor: PublicSponsor


class TrackEventRequest(BaseModel):
    sponsorId: int
    placementId: Optional[int] = None
    eventType: str
    userId: Optional[int] = None
    utmSource: Optional[str] = Field(None, max_length=100)
    utmMedium: Optional[str] = Field(None, max_length=100)
    utmCampaign: Optional[str] = Field(None, max_length=100)
    metadata: Optional[dict] = None

    @field_validator("eventType")
    @classmethod
    def validate_event_type(cls, v):
        return validate_choice(v, EVENT_TYPES, "event type")


class InquiryCreate(BaseModel):
    companyName: str = Field(..., min_length=1, max_length=255)
    contactName: str = Field(..., min_length=1, max_length=255)
    contactEmail: str
    contactPhone: Optional[str] = None
    interestedTier: Optional[str] = None
    message: Optional[str] = Field(None, max_length=5000)

    @field_validator("contactEmail")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("interestedTier")
    @classmethod
    def validate_tier(cls, v):
        return validate_choice(v, SPONSOR_TIERS, "tier")


class InquiryUpdate(BaseModel):
    status: str
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, INQUIRY_STATUSES, "status")


class InquiryResponse(BaseModel):
    id: int
    companyName: str
    contactName: str
    contactEmail: str
    contactPhone: Optional[str]
    interestedTier: Optional[str]
    message: Optional[str]
    status: str
    notes: Optional[str]
    createdAt: Optional[datetime] = None


class GenerateReportRequest(BaseModel):
    reportMonth: str

    @field_validator("reportMonth")
    @classmethod
    def validate_month(cls, v):
        return validate_report_month(v)


class PlacementStats(BaseModel):
    impressions: int
    clicks: int
    conversions: int
    ctr: float


class SponsorAnalytics(BaseModel):
    sponsorId: int
    impressions: int
    clicks: int
    conversions: int
    ctr: float
    placementBreakdown: dict[str, PlacementStats]


class SponsorReportResponse(BaseModel):
    id: int
    sponsorId: int
    reportMonth: str
    impressions: int
    clicks: int
    ctr: float
    ctaConversions: int
    placementBreakdown: dict
    sentAt: Optional[datetime]
