"""Salvage repository - Database operations for wrecks, vessels, crew and projects"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_salvage import CrewMember, Project, SalvageOperation, SalvageWreck, Vessel


class SalvageRepository:
    """Repository for salvage database operations"""

    # Generic helpers shared by every salvage table
    @staticmethod
    def create(db: Session, model, **data):
        row = model(**data)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def update(db: Session, row, **updates):
        """Update a row with provided fields (None values are skipped)"""
        for key, value in updates.items():
            if value is not None and hasattr(row, key):
                setattr(row, key, value)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()

    # Wrecks
    @staticmethod
    def get_wrecks(
        db: Session, status: Optional[str] = None, hull_type: Optional[str] = None
    ) -> list[SalvageWreck]:
        query = db.query(SalvageWreck)
        if status:
            query = query.filter(SalvageWreck.status == status)
        if hull_type:
            query = query.filter(SalvageWreck.hull_type == hull_type)
        return query.order_by(SalvageWreck.created_at.desc(), SalvageWreck.id.desc()).all()

    @staticmethod
    def get_wreck(db: Session, wreck_id: int) -> Optional[SalvageWreck]:
        return db.query(SalvageWreck).filter(SalvageWreck.id == wreck_id).first()

    @staticmethod
    def get_operations(db: Session, wreck_id: int) -> list[SalvageOperation]:
        return (
            db.query(SalvageOperation)
            .filter(SalvageOperation.wreck_id == wreck_id)
            .order_by(SalvageOperation.created_at.desc(), SalvageOperation.id.desc())
            .all()
        )

    @staticmethod
    def get_wreck_stats(db: Session) -> dict:
        counts = dict(
            db.query(SalvageWreck.status, func.count(SalvageWreck.id))
            .group_by(SalvageWreck.status)
            .all()
        )
        totals = db.query(
            func.count(SalvageWreck.id),
            func.coalesce(func.sum(SalvageWreck.estimated_value), 0),
            func.coalesce(func.sum(SalvageWreck.actual_cost), 0),
            func.avg(SalvageWreck.progress_percentage),
        ).one()
        return {
            "counts": counts,
            "total": totals[0],
            "total_estimated_value": int(totals[1]),
            "total_actual_cost": int(totals[2]),
            "average_progress": float(totals[3] or 0),
        }

    # Crew
    @staticmethod
    def get_crew(
        db: Session, role: Optional[str] = None, available: Optional[bool] = None
    ) -> list[CrewMember]:
        query = db.query(CrewMember)
        if role:
            query = query.filter(CrewMember.role == role)
        if available is not None:
            query = query.filter(CrewMember.availability == available)
        return query.order_by(CrewMember.name).all()

    @staticmethod
    def get_crew_member(db: Session, crew_id: int) -> Optional[CrewMember]:
        return db.query(CrewMember).filter(CrewMember.id == crew_id).first()

    @staticmethod
    def get_crew_by_ids(db: Session, crew_ids: list[int]) -> list[CrewMember]:
        return db.query(CrewMember).filter(CrewMember.id.in_(crew_ids)).all()

    @staticmethod
    def get_crew_by_email(db: Session, email: str) -> Optional[CrewMember]:
        return db.query(CrewMember).filter(CrewMember.email == email).first()

    # Vessels
    @staticmethod
    def get_vessels(db: Session, status: Optional[str] = None) -> list[Vessel]:
        query = db.query(Vessel)
        if status:
            query = query.filter(Vessel.hull_cleaning_status == status)
        return query.order_by(Vessel.arrival_date.desc(), Vessel.id.desc()).all()

    @staticmethod
    def get_vessel(db: Session, vessel_id: int) -> Optional[Vessel]:
        return db.query(Vessel).filter(Vessel.id == vessel_id).first()

    @staticmethod
    def get_vessel_by_imo(db: Session, imo_number: str) -> Optional[Vessel]:
        return db.query(Vessel).filter(Vessel.imo_number == imo_number).first()

    # Projects
    @staticmethod
    def get_projects(db: Session, status: Optional[str] = None) -> list[Project]:
        query = db.query(Project)
        if status:
            query = query.filter(Project.status == status)
        return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    @staticmethod
    def get_project(db: Session, project_id: int) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_project_pipeline(db: Session) -> list[tuple]:
        return (
            db.query(Project.status, func.count(Project.id), func.coalesce(func.sum(Project.value), 0))
            .group_by(Project.status)
            .all()
        )
