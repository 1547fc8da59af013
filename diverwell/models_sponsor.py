"""
Sponsor Program Models
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

SPONSOR_TIERS = ("BRONZE", "SILVER", "GOLD", "TITLE", "FOUNDING")
SPONSOR_STATUSES = ("PENDING", "ACTIVE", "INACTIVE", "CANCELLED")
PLACEMENT_TYPES = (
    "HOMEPAGE_STRIP",
    "ABOVE_FOLD",
    "IN_APP_TILE",
    "RESOURCE_PAGE",
    "PARTNER_DIRECTORY",
    "FEATURED_PARTNER",
)
EVENT_TYPES = ("IMPRESSION", "CLICK", "CTA_CLICK", "CONVERSION")
INQUIRY_STATUSES = ("PENDING", "CONTACTED", "CONVERTED", "REJECTED")


class Sponsor(Base):
    __tablename__ = "sponsors"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    category = Column(String(100), nullable=True)  # e.g. equipment, training, insurance
    tier = Column(String(20), default="BRONZE", nullable=False)
    status = Column(String(20), default="PENDING", nullable=False, index=True)
    exclusivity_category = Column(String(100), nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    monthly_fee = Column(Integer, default=0, nullable=False)  # cents
    landing_url = Column(String(500), nullable=True)
    logo_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    promo_code = Column(String(50), nullable=True)
    cta_text = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    placements = relationship(
        "SponsorPlacement",
        back_populates="sponsor",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SponsorPlacement.order",
    )


class SponsorPlacement(Base):
    __tablename__ = "sponsor_placements"

    id = Column(Integer, primary_key=True, index=True)
    sponsor_id = Column(Integer, ForeignKey("sponsors.id", ondelete="CASCADE"), nullable=False, index=True)
    placement_type = Column(String(30), nullable=False)
    location = Column(String(255), nullable=True)  # page or route where shown
    order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    placement_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    sponsor = relationship("Sponsor", back_populates="placements")


class SponsorEvent(Base):
    __tablename__ = "sponsor_events"

    id = Column(Integer, primary_key=True, index=True)
    sponsor_id = Column(Integer, ForeignKey("sponsors.id", ondelete="CASCADE"), nullable=False, index=True)
    placement_id = Column(
        Integer, ForeignKey("sponsor_placements.id", ondelete="SET NULL"), nullable=True
    )
    event_type = Column(String(20), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    utm_source = Column(String(100), nullable=True)
    utm_medium = Column(String(100), nullable=True)
    utm_campaign = Column(String(100), nullable=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)


class SponsorReport(Base):
    __tablename__ = "sponsor_reports"

    id = Column(Integer, primary_key=True, index=True)
    sponsor_id = Column(Integer, ForeignKey("sponsors.id", ondelete="CASCADE"), nullable=False, index=True)
    report_month = Column(String(7), nullable=False)  # YYYY-MM
    impressions = Column(Integer, default=0, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)
    ctr = Column(Float, default=0.0, nullable=False)
    cta_conversions = Column(Integer, default=0, nullable=False)
    placement_breakdown = Column(JSON, default=dict)
    sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class SponsorInquiry(Base):
    __tablename__ = "sponsor_inquiries"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    interested_tier = Column(String(20), nullable=True)
    message = Column(Text, nullable=True)
    status = Column(String(20), default="PENDING", nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
