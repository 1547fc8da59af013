"""Salvage service - Business logic for wreck salvage and crew operations"""

import logging
from datetime import date, datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models_salvage import CrewMember, Project, SalvageOperation, SalvageWreck, Vessel
from ...shared.serialization import schema_to_columns
from .repository import SalvageRepository
from .schemas import (
    AssignCrewRequest,
    CrewCreate,
    CrewUpdate,
    OperationCreate,
    ProjectCreate,
    ProjectUpdate,
    VesselCreate,
    VesselUpdate,
    WreckCreate,
    WreckUpdate,
)

logger = logging.getLogger(__name__)


def _certifications_to_columns(certifications) -> list[dict]:
    return [{"name": c["name"], "expires_at": c.get("expiresAt")} for c in certifications]


class SalvageService:
    """Service layer for salvage business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SalvageRepository()

    # ------------------------------------------------------------------
    # Wrecks
    # ------------------------------------------------------------------

    def get_wrecks(self, status: str = None, hull_type: str = None) -> list[SalvageWreck]:
        return self.repo.get_wrecks(self.db, status, hull_type)

    def get_wreck(self, wreck_id: int) -> SalvageWreck:
        wreck = self.repo.get_wreck(self.db, wreck_id)
        if not wreck:
            raise HTTPException(status_code=404, detail="Wreck not found")
        return wreck

    def create_wreck(self, data: WreckCreate) -> SalvageWreck:
        columns = schema_to_columns(data)
        columns["equipment_required"] = columns["equipment_required"] or []
        columns["photos"] = columns["photos"] or []
        columns["progress_percentage"] = columns["progress_percentage"] or 0
        wreck = self.repo.create(self.db, SalvageWreck, **columns)
        logger.info(f"⚓ Wreck registered: {wreck.name} (id={wreck.id})")
        return wreck

    def update_wreck(self, wreck_id: int, data: WreckUpdate) -> SalvageWreck:
        wreck = self.get_wreck(wreck_id)
        return self.repo.update(self.db, wreck, **schema_to_columns(data, exclude_unset=True))

    def delete_wreck(self, wreck_id: int) -> SalvageWreck:
        """Soft delete: wrecks are parked on-hold rather than removed"""
        wreck = self.get_wreck(wreck_id)
        logger.info(f"🗄️ Wreck {wreck_id} moved to on-hold")
        return self.repo.update(self.db, wreck, status="on-hold")

    def get_wreck_progress(self, wreck_id: int) -> dict:
        wreck = self.get_wreck(wreck_id)
        operations = self.repo.get_operations(self.db, wreck_id)
        total = len(operations)
        operations_progress = (
            sum(op.progress_percentage for op in operations) / total if total else 0
        )
        return {
            "wreckProgress": wreck.progress_percentage,
            "operationsProgress": operations_progress,
            "totalOperations": total,
            "completedOperations": sum(1 for op in operations if op.progress_percentage == 100),
        }

    def assign_crew(self, wreck_id: int, data: AssignCrewRequest) -> SalvageWreck:
        wreck = self.get_wreck(wreck_id)
        crew_ids = list(dict.fromkeys(data.crewMemberIds))
        crew = self.repo.get_crew_by_ids(self.db, crew_ids)
        if len(crew) != len(crew_ids):
            raise HTTPException(status_code=400, detail="One or more crew members not found")

        for member in crew:
            member.assigned_to_wreck_id = wreck.id
        wreck.assigned_crew_id = crew_ids[0]
        self.db.commit()
        self.db.refresh(wreck)
        logger.info(f"👷 Assigned {len(crew_ids)} crew member(s) to wreck {wreck_id}")
        return wreck

    def get_dashboard_stats(self) -> dict:
        stats = self.repo.get_wreck_stats(self.db)
        counts = stats["counts"]
        return {
            "total": stats["total"],
            "pending": counts.get("pending", 0),
            "inProgress": counts.get("in-progress", 0),
            "completed": counts.get("completed", 0),
            "onHold": counts.get("on-hold", 0),
            "totalEstimatedValue": stats["total_estimated_value"],
            "totalActualCost": stats["total_actual_cost"],
            "averageProgress": stats["average_progress"],
        }

    def get_operations(self, wreck_id: int) -> list[SalvageOperation]:
        self.get_wreck(wreck_id)
        return self.repo.get_operations(self.db, wreck_id)

    def create_operation(self, wreck_id: int, data: OperationCreate) -> SalvageOperation:
        self.get_wreck(wreck_id)
        if data.endTime and data.endTime < data.startTime:
            raise HTTPException(status_code=400, detail="Operation end time is before start time")
        operation = self.repo.create(
            self.db, SalvageOperation, wreck_id=wreck_id, **schema_to_columns(data)
        )
        logger.info(f"🤿 Operation '{operation.operation_type}' logged for wreck {wreck_id}")
        return operation

    # ------------------------------------------------------------------
    # Vessels
    # ------------------------------------------------------------------

    def get_vessels(self, status: str = None) -> list[Vessel]:
        return self.repo.get_vessels(self.db, status)

    def get_vessel(self, vessel_id: int) -> Vessel:
        vessel = self.repo.get_vessel(self.db, vessel_id)
        if not vessel:
            raise HTTPException(status_code=404, detail="Vessel not found")
        return vessel

    def _check_imo_available(self, imo_number: str, vessel_id: int = None) -> None:
        if not imo_number:
            return
        existing = self.repo.get_vessel_by_imo(self.db, imo_number)
        if existing and existing.id != vessel_id:
            raise HTTPException(status_code=409, detail="A vessel with this IMO number already exists")

    def create_vessel(self, data: VesselCreate) -> Vessel:
        self._check_imo_available(data.imoNumber)
        return self.repo.create(self.db, Vessel, **schema_to_columns(data))

    def update_vessel(self, vessel_id: int, data: VesselUpdate) -> Vessel:
        vessel = self.get_vessel(vessel_id)
        self._check_imo_available(data.imoNumber, vessel_id)
        return self.repo.update(self.db, vessel, **schema_to_columns(data, exclude_unset=True))

    def delete_vessel(self, vessel_id: int) -> dict:
        self.repo.delete(self.db, self.get_vessel(vessel_id))
        return {"message": "Vessel deleted"}

    # ------------------------------------------------------------------
    # Crew
    # ------------------------------------------------------------------

    def get_crew(self, role: str = None, available: bool = None) -> list[CrewMember]:
        return self.repo.get_crew(self.db, role, available)

    def get_crew_member(self, crew_id: int) -> CrewMember:
        member = self.repo.get_crew_member(self.db, crew_id)
        if not member:
            raise HTTPException(status_code=404, detail="Crew member not found")
        return member

    def _check_email_available(self, email: str, crew_id: int = None) -> None:
        if not email:
            return
        existing = self.repo.get_crew_by_email(self.db, email)
        if existing and existing.id != crew_id:
            raise HTTPException(status_code=409, detail="A crew member with this email already exists")

    def create_crew_member(self, data: CrewCreate) -> CrewMember:
        self._check_email_available(data.email)
        columns = schema_to_columns(data)
        columns["certifications"] = _certifications_to_columns(columns["certifications"])
        member = self.repo.create(self.db, CrewMember, **columns)
        logger.info(f"👷 Crew member added: {member.name} ({member.role})")
        return member

    def update_crew_member(self, crew_id: int, data: CrewUpdate) -> CrewMember:
        member = self.get_crew_member(crew_id)
        self._check_email_available(data.email, crew_id)
        columns = schema_to_columns(data, exclude_unset=True)
        if columns.get("certifications") is not None:
            columns["certifications"] = _certifications_to_columns(columns["certifications"])
        return self.repo.update(self.db, member, **columns)

    def delete_crew_member(self, crew_id: int) -> dict:
        member = self.get_crew_member(crew_id)
        # Release the primary-crew slot on any wreck pointing at this member
        self.db.query(SalvageWreck).filter(SalvageWreck.assigned_crew_id == crew_id).update(
            {SalvageWreck.assigned_crew_id: None}, synchronize_session=False
        )
        self.repo.delete(self.db, member)
        return {"message": "Crew member deleted"}

    def get_expiring_certifications(self, days: int = 30, today: date = None) -> list[dict]:
        """Crew certifications that expire within `days` (already expired ones included)"""
        today = today or datetime.utcnow().date()
        cutoff = today + timedelta(days=days)
        expiring = []
        for member in self.repo.get_crew(self.db):
            for cert in member.certifications or []:
                expires_at = cert.get("expires_at")
                if not expires_at:
                    continue
                try:
                    expiry = date.fromisoformat(expires_at[:10])
                except ValueError:
                    logger.warning(f"⚠️ Unparseable certification expiry for crew {member.id}: {expires_at}")
                    continue
                if expiry <= cutoff:
                    expiring.append(
                        {
                            "crewMemberId": member.id,
                            "name": member.name,
                            "certification": cert.get("name"),
                            "expiresAt": expiry.isoformat(),
                            "expired": expiry < today,
                            "daysRemaining": (expiry - today).days,
                        }
                    )
        return sorted(expiring, key=lambda item: item["expiresAt"])

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_projects(self, status: str = None) -> list[Project]:
        return self.repo.get_projects(self.db, status)

    def get_project(self, project_id: int) -> Project:
        project = self.repo.get_project(self.db, project_id)
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        return project

    def create_project(self, data: ProjectCreate) -> Project:
        columns = schema_to_columns(data)
        columns["currency"] = columns["currency"].upper()
        return self.repo.create(self.db, Project, **columns)

    def update_project(self, project_id: int, data: ProjectUpdate) -> Project:
        project = self.get_project(project_id)
        columns = schema_to_columns(data, exclude_unset=True)
        if columns.get("currency"):
            columns["currency"] = columns["currency"].upper()
        return self.repo.update(self.db, project, **columns)

    def delete_project(self, project_id: int) -> dict:
        self.repo.delete(self.db, self.get_project(project_id))
        return {"message": "Project deleted"}

    def get_pipeline(self) -> dict:
        """Project count and value (cents) grouped by status"""
        pipeline = {
            status: {"count": count, "value": int(value)}
            for status, count, value in self.repo.get_project_pipeline(self.db)
        }
        open_value = sum(
            pipeline.get(status, {}).get("value", 0) for status in ("bid", "pending", "active")
        )
        return {"byStatus": pipeline, "openValue": open_value}
