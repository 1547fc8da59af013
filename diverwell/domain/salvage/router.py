"""Salvage router - FastAPI endpoints for wrecks, vessels, crew and projects"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AssignCrewRequest,
    CrewCreate,
    CrewResponse,
    CrewUpdate,
    DashboardStats,
    OperationCreate,
    OperationResponse,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    VesselCreate,
    VesselResponse,
    VesselUpdate,
    WreckCreate,
    WreckProgress,
    WreckResponse,
    WreckUpdate,
)
from .service import SalvageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/salvage", tags=["Salvage"])


def get_salvage_service(db: Session = Depends(get_db)) -> SalvageService:
    """Dependency injection for SalvageService"""
    return SalvageService(db)


def _operation_response(op) -> OperationResponse:
    return OperationResponse(
        id=op.id,
        wreckId=op.wreck_id,
        operationType=op.operation_type,
        description=op.description,
        startTime=op.start_time,
        endTime=op.end_time,
        crewMembers=op.crew_members or [],
        equipmentUsed=op.equipment_used or [],
        weatherConditions=op.weather_conditions,
        progressPercentage=op.progress_percentage,
        notes=op.notes,
        photos=op.photos or [],
        createdAt=op.created_at,
    )


def _wreck_response(wreck, operations=None) -> WreckResponse:
    return WreckResponse(
        id=wreck.id,
        name=wreck.name,
        location=wreck.location,
        hullType=wreck.hull_type,
        status=wreck.status,
        estimatedValue=wreck.estimated_value,
        actualCost=wreck.actual_cost,
        estimatedDuration=wreck.estimated_duration,
        startDate=wreck.start_date,
        completionDate=wreck.completion_date,
        assignedCrewId=wreck.assigned_crew_id,
        equipmentRequired=wreck.equipment_required or [],
        notes=wreck.notes,
        photos=wreck.photos or [],
        progressPercentage=wreck.progress_percentage,
        createdAt=wreck.created_at,
        updatedAt=wreck.updated_at,
        operations=[_operation_response(op) for op in operations] if operations is not None else None,
    )


def _vessel_response(vessel) -> VesselResponse:
    return VesselResponse(
        id=vessel.id,
        name=vessel.name,
        imoNumber=vessel.imo_number,
        vesselType=vessel.vessel_type,
        arrivalDate=vessel.arrival_date,
        departureDate=vessel.departure_date,
        location=vessel.location,
        hullCleaningStatus=vessel.hull_cleaning_status,
        assignedDivers=vessel.assigned_divers or [],
        clientName=vessel.client_name,
        contactInfo=vessel.contact_info,
        notes=vessel.notes,
    )


def _crew_response(member) -> CrewResponse:
    return CrewResponse(
        id=member.id,
        name=member.name,
        email=member.email,
        role=member.role,
        qualifications=member.qualifications or [],
        certifications=member.certifications or [],
        availability=member.availability,
        assignedToWreckId=member.assigned_to_wreck_id,
        phoneNumber=member.phone_number,
        emergencyContact=member.emergency_contact,
        notes=member.notes,
    )


def _project_response(project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        client=project.client,
        value=project.value,
        currency=project.currency,
        status=project.status,
        bidDate=project.bid_date,
        startDate=project.start_date,
        endDate=project.end_date,
        documents=project.documents or [],
        complianceRecords=project.compliance_records or [],
        description=project.description,
        notes=project.notes,
    )


# ============================================================================
# WRECKS
# ============================================================================


@router.get("/wrecks", response_model=list[WreckResponse])
async def list_wrecks(
    status: Optional[str] = Query(None),
    hull_type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    """List wrecks, newest first, optionally filtered by status and hull type"""
    return [_wreck_response(w) for w in service.get_wrecks(status, hull_type)]


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.get_dashboard_stats()


@router.get("/wrecks/{wreck_id}", response_model=WreckResponse)
async def get_wreck(
    wreck_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    """Get a wreck together with its operations"""
    wreck = service.get_wreck(wreck_id)
    return _wreck_response(wreck, service.get_operations(wreck_id))


@router.post("/wrecks", response_model=WreckResponse, status_code=201)
async def create_wreck(
    data: WreckCreate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _wreck_response(service.create_wreck(data))


@router.put("/wrecks/{wreck_id}", response_model=WreckResponse)
async def update_wreck(
    wreck_id: int,
    data: WreckUpdate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _wreck_response(service.update_wreck(wreck_id, data))


@router.delete("/wrecks/{wreck_id}", response_model=WreckResponse)
async def delete_wreck(
    wreck_id: int,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    """Soft delete - the wreck is moved to on-hold"""
    return _wreck_response(service.delete_wreck(wreck_id))


@router.get("/wrecks/{wreck_id}/progress", response_model=WreckProgress)
async def get_wreck_progress(
    wreck_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.get_wreck_progress(wreck_id)


@router.post("/wrecks/{wreck_id}/assign-crew", response_model=WreckResponse)
async def assign_crew(
    wreck_id: int,
    data: AssignCrewRequest,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _wreck_response(service.assign_crew(wreck_id, data))


@router.get("/wrecks/{wreck_id}/operations", response_model=list[OperationResponse])
async def list_operations(
    wreck_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return [_operation_response(op) for op in service.get_operations(wreck_id)]


@router.post("/wrecks/{wreck_id}/operations", response_model=OperationResponse, status_code=201)
async def create_operation(
    wreck_id: int,
    data: OperationCreate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _operation_response(service.create_operation(wreck_id, data))


# ============================================================================
# VESSELS
# ============================================================================


@router.get("/vessels", response_model=list[VesselResponse])
async def list_vessels(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return [_vessel_response(v) for v in service.get_vessels(status)]


@router.get("/vessels/{vessel_id}", response_model=VesselResponse)
async def get_vessel(
    vessel_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return _vessel_response(service.get_vessel(vessel_id))


@router.post("/vessels", response_model=VesselResponse, status_code=201)
async def create_vessel(
    data: VesselCreate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _vessel_response(service.create_vessel(data))


@router.put("/vessels/{vessel_id}", response_model=VesselResponse)
async def update_vessel(
    vessel_id: int,
    data: VesselUpdate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _vessel_response(service.update_vessel(vessel_id, data))


@router.delete("/vessels/{vessel_id}")
async def delete_vessel(
    vessel_id: int,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.delete_vessel(vessel_id)


# ============================================================================
# CREW
# ============================================================================


@router.get("/crew", response_model=list[CrewResponse])
async def list_crew(
    role: Optional[str] = Query(None),
    available: Optional[bool] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return [_crew_response(m) for m in service.get_crew(role, available)]


@router.get("/crew/expiring-certifications")
async def expiring_certifications(
    days: int = Query(30, ge=0, le=365),
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    """Certifications expiring within the window (expired ones included)"""
    return service.get_expiring_certifications(days)


@router.get("/crew/{crew_id}", response_model=CrewResponse)
async def get_crew_member(
    crew_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return _crew_response(service.get_crew_member(crew_id))


@router.post("/crew", response_model=CrewResponse, status_code=201)
async def create_crew_member(
    data: CrewCreate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _crew_response(service.create_crew_member(data))


@router.put("/crew/{crew_id}", response_model=CrewResponse)
async def update_crew_member(
    crew_id: int,
    data: CrewUpdate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _crew_response(service.update_crew_member(crew_id, data))


@router.delete("/crew/{crew_id}")
async def delete_crew_member(
    crew_id: int,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.delete_crew_member(crew_id)


# ============================================================================
# PROJECTS
# ============================================================================


@router.get("/projects", response_model=list[ProjectResponse])
async def list_projects(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return [_project_response(p) for p in service.get_projects(status)]


@router.get("/projects/pipeline")
async def project_pipeline(
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.get_pipeline()


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    service: SalvageService = Depends(get_salvage_service),
):
    return _project_response(service.get_project(project_id))


@router.post("/projects", response_model=ProjectResponse, status_code=201)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _project_response(service.create_project(data))


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return _project_response(service.update_project(project_id, data))


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_admin),
    service: SalvageService = Depends(get_salvage_service),
):
    return service.delete_project(project_id)


__all__ = ["router"]
