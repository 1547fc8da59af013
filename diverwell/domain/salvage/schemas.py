"""Salvage domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models_salvage import (
    CREW_ROLES,
    HULL_CLEANING_STATUSES,
    HULL_TYPES,
    PROJECT_STATUSES,
    WRECK_STATUSES,
)
from ...shared.validators import (
    validate_choice,
    validate_coordinates,
    validate_email,
    validate_percentage,
    validate_phone,
)

# ============================================================================
# WRECKS
# ============================================================================


class WreckBase(BaseModel):
    estimatedValue: Optional[int] = Field(None, gt=0)
    actualCost: Optional[int] = Field(None, gt=0)
    estimatedDuration: Optional[int] = Field(None, gt=0)
    startDate: Optional[datetime] = None
    completionDate: Optional[datetime] = None
    assignedCrewId: Optional[int] = None
    equipmentRequired: Optional[list[str]] = None
    notes: Optional[str] = None
    photos: Optional[list[str]] = None
    progressPercentage: Optional[int] = None

    @field_validator("progressPercentage")
    @classmethod
    def validate_progress(cls, v):
        return validate_percentage(v)


class WreckCreate(WreckBase):
    """Schema for registering a new wreck"""

    name: str = Field(..., min_length=1, max_length=255)
    location: dict
    hullType: str
    status: str = "pending"

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return validate_coordinates(v)

    @field_validator("hullType")
    @classmethod
    def validate_hull_type(cls, v):
        return validate_choice(v, HULL_TYPES, "hull type")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, WRECK_STATUSES, "status")


class WreckUpdate(WreckBase):
    """Partial update - only provided fields change"""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[dict] = None
    hullType: Optional[str] = None
    status: Optional[str] = None

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        return validate_coordinates(v)

    @field_validator("hullType")
    @classmethod
    def validate_hull_type(cls, v):
        return validate_choice(v, HULL_TYPES, "hull type")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, WRECK_STATUSES, "status")


class OperationCreate(BaseModel):
    operationType: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    startTime: datetime
    endTime: Optional[datetime] = None
    crewMembers: list[int] = []
    equipmentUsed: list[str] = []
    weatherConditions: Optional[str] = None
    progressPercentage: int = 0
    notes: Optional[str] = None
    photos: list[str] = []

    @field_validator("progressPercentage")
    @classmethod
    def validate_progress(cls, v):
        return validate_percentage(v)


class OperationResponse(BaseModel):
    id: int
    wreckId: int
    operationType: str
    description: Optional[str]
    startTime: datetime
    endTime: Optional[datetime]
    crewMembers: list
    equipmentUsed: list
    weatherConditions: Optional[str]
    progressPercentage: int
    notes: Optional[str]
    photos: list
    createdAt: Optional[datetime] = None


class WreckResponse(BaseModel):
    id: int
    name: str
    location: dict
    hullType: str
    status: str
    estimatedValue: Optional[int]
    actualCost: Optional[int]
    estimatedDuration: Optional[int]
    startDate: Optional[datetime]
    completionDate: Optional[datetime]
    assignedCrewId: Optional[int]
    equipmentRequired: list
    notes: Optional[str]
    photos: list
    progressPercentage: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    operations: Optional[list[OperationResponse]] = None


class WreckProgress(BaseModel):
    wreckProgress: int
    operationsProgress: float
    totalOperations: int
    completedOperations: int


class AssignCrewRequest(BaseModel):
    crewMemberIds: list[int] = Field(..., min_length=1)


class DashboardStats(BaseModel):
    total: int
    pending: int
    inProgress: int
    completed: int
    onHold: int
    totalEstimatedValue: int
    totalActualCost: int
    averageProgress: float


# ============================================================================
# VESSELS
# ============================================================================


class VesselCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    imoNumber: Optional[str] = Field(None, max_length=20)
    vesselType: str = Field(..., min_length=1, max_length=100)
    arrivalDate: Optional[datetime] = None
    departureDate: Optional[datetime] = None
    location: Optional[str] = None
    hullCleaningStatus: str = "scheduled"
    assignedDivers: list[int] = []
    clientName: Optional[str] = None
    contactInfo: Optional[dict] = None
    notes: Optional[str] = None

    @field_validator("hullCleaningStatus")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, HULL_CLEANING_STATUSES, "hull cleaning status")


class VesselUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    imoNumber: Optional[str] = Field(None, max_length=20)
    vesselType: Optional[str] = None
    arrivalDate: Optional[datetime] = None
    departureDate: Optional[datetime] = None
    location: Optional[str] = None
    hullCleaningStatus: Optional[str] = None
    assignedDivers: Optional[list[int]] = None
    clientName: Optional[str] = None
    contactInfo: Optional[dict] = None
    notes: Optional[str] = None

    @field_validator("hullCleaningStatus")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, HULL_CLEANING_STATUSES, "hull cleaning status")


class VesselResponse(BaseModel):
    id: int
    name: str
    imoNumber: Optional[str]
    vesselType: str
    arrivalDate: Optional[datetime]
    departureDate: Optional[datetime]
    location: Optional[str]
    hullCleaningStatus: str
    assignedDivers: list
    clientName: Optional[str]
    contactInfo: Optional[dict]
    notes: Optional[str]


# ============================================================================
# CREW
# ============================================================================


class Certification(BaseModel):
    name: str
    expiresAt: Optional[str] = None  # YYYY-MM-DD


class CrewCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str
    role: str
    qualifications: list[str] = []
    certifications: list[Certification] = []
    availability: bool = True
    phoneNumber: Optional[str] = None
    emergencyContact: Optional[dict] = None
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return validate_choice(v, CREW_ROLES, "role")

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)


class CrewUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    role: Optional[str] = None
    qualifications: Optional[list[str]] = None
    certifications: Optional[list[Certification]] = None
    availability: Optional[bool] = None
    phoneNumber: Optional[str] = None
    emergencyContact: Optional[dict] = None
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return validate_choice(v, CREW_ROLES, "role")

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)


class CrewResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    qualifications: list
    certifications: list
    availability: bool
    assignedToWreckId: Optional[int]
    phoneNumber: Optional[str]
    emergencyContact: Optional[dict]
    notes: Optional[str]


# ============================================================================
# PROJECTS
# ============================================================================


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    client: str = Field(..., min_length=1, max_length=255)
    value: int = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    status: str = "bid"
    bidDate: Optional[datetime] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    documents: list[str] = []
    complianceRecords: list[dict] = []
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, PROJECT_STATUSES, "status")


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    client: Optional[str] = None
    value: Optional[int] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[str] = None
    bidDate: Optional[datetime] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    documents: Optional[list[str]] = None
    complianceRecords: Optional[list[dict]] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, PROJECT_STATUSES, "status")


class ProjectResponse(BaseModel):
    id: int
    name: str
    client: str
    value: int
    currency: str
    status: str
    bidDate: Optional[datetime]
    startDate: Optional[datetime]
    endDate: Optional[datetime]
    documents: list
    complianceRecords: list
    description: Optional[str]
    notes: Optional[str]
