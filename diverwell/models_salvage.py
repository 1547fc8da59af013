"""
Salvage Operations Models
Wrecks, vessels, crew, projects and the dive operations performed on wrecks.
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

HULL_TYPES = ("metal", "fiberglass")
WRECK_STATUSES = ("pending", "in-progress", "completed", "on-hold")
HULL_CLEANING_STATUSES = ("scheduled", "in-progress", "completed", "cancelled")
CREW_ROLES = ("diver", "barge-operator", "boat-operator", "supervisor")
PROJECT_STATUSES = ("bid", "pending", "active", "completed", "cancelled")


class SalvageWreck(Base):
    __tablename__ = "salvage_wrecks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(JSON, nullable=False)  # {"lat": float, "lng": float}
    hull_type = Column(String(20), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    estimated_value = Column(Integer, nullable=True)  # cents
    actual_cost = Column(Integer, nullable=True)  # cents
    estimated_duration = Column(Integer, nullable=True)  # days
    start_date = Column(DateTime, nullable=True)
    completion_date = Column(DateTime, nullable=True)
    assigned_crew_id = Column(Integer, nullable=True)  # primary crew member
    equipment_required = Column(JSON, default=list)
    notes = Column(Text, nullable=True)
    photos = Column(JSON, default=list)
    progress_percentage = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    operations = relationship(
        "SalvageOperation",
        back_populates="wreck",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SalvageOperation.id.desc()",
    )
    crew_members = relationship("CrewMember", back_populates="assigned_wreck")


class Vessel(Base):
    __tablename__ = "vessels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    imo_number = Column(String(20), unique=True, nullable=True)
    vessel_type = Column(String(100), nullable=False)
    arrival_date = Column(DateTime, nullable=True)
    departure_date = Column(DateTime, nullable=True)
    location = Column(String(255), nullable=True)
    hull_cleaning_status = Column(String(20), default="scheduled", nullable=False)
    assigned_divers = Column(JSON, default=list)  # crew member ids
    client_name = Column(String(255), nullable=True)
    contact_info = Column(JSON, nullable=True)  # {"email", "phone", "contact"}
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CrewMember(Base):
    __tablename__ = "crew_members"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False)
    qualifications = Column(JSON, default=list)
    certifications = Column(JSON, default=list)  # [{"name": str, "expires_at": "YYYY-MM-DD"}]
    availability = Column(Boolean, default=True, nullable=False)
    assigned_to_wreck_id = Column(
        Integer, ForeignKey("salvage_wrecks.id", ondelete="SET NULL"), nullable=True
    )
    phone_number = Column(String(50), nullable=True)
    emergency_contact = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assigned_wreck = relationship("SalvageWreck", back_populates="crew_members")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    client = Column(String(255), nullable=False)
    value = Column(Integer, nullable=False)  # cents
    currency = Column(String(3), default="USD", nullable=False)
    status = Column(String(20), default="bid", nullable=False, index=True)
    bid_date = Column(DateTime, nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    documents = Column(JSON, default=list)
    compliance_records = Column(JSON, default=list)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class SalvageOperation(Base):
    __tablename__ = "salvage_operations"

    id = Column(Integer, primary_key=True, index=True)
    wreck_id = Column(
        Integer, ForeignKey("salvage_wrecks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    operation_type = Column(String(100), nullable=False)  # e.g. survey, cutting, lifting
    description = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    crew_members = Column(JSON, default=list)
    equipment_used = Column(JSON, default=list)
    weather_conditions = Column(String(255), nullable=True)
    progress_percentage = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    photos = Column(JSON, default=list)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    wreck = relationship("SalvageWreck", back_populates="operations")
