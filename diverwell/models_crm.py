"""
CRM Models
Client records synced from platform users and GoHighLevel contacts.
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

CLIENT_STATUSES = ("ACTIVE", "PAUSED", "CANCELLED", "LEAD")
COMMUNICATION_CHANNELS = ("email", "sms", "call", "note")


class CrmClient(Base):
    __tablename__ = "crm_clients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    subscription_type = Column(String(20), default="TRIAL", nullable=False)
    status = Column(String(20), default="ACTIVE", nullable=False, index=True)
    subscription_date = Column(DateTime, nullable=True)
    monthly_revenue = Column(Integer, default=0, nullable=False)  # cents
    partner_status = Column(String(20), default="NONE", nullable=False)  # NONE, AFFILIATE, PARTNER
    tags = Column(JSON, default=list)
    notes = Column(Text, nullable=True)

    # GoHighLevel linkage
    highlevel_contact_id = Column(String(100), nullable=True, index=True)
    highlevel_synced_at = Column(DateTime, nullable=True)

    # Booking activity (Calendly / HighLevel appointments)
    calendly_event_uri = Column(String(500), nullable=True)
    calendly_event_name = Column(String(255), nullable=True)
    last_booking_time = Column(DateTime, nullable=True)
    booking_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    communications = relationship(
        "ClientCommunication",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClientCommunication.id.desc()",
    )


class ClientCommunication(Base):
    __tablename__ = "client_communications"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("crm_clients.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(String(20), nullable=False)
    direction = Column(String(10), default="outbound", nullable=False)  # inbound, outbound
    subject = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    client = relationship("CrmClient", back_populates="communications")
