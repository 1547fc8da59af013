"""Sponsor repository - Database operations for sponsors, placements and events"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models_sponsor import (
    Sponsor,
    SponsorEvent,
    SponsorInquiry,
    SponsorPlacement,
    SponsorReport,
)


def _within_window(model, now: datetime):
    return (
        or_(model.start_date.is_(None), model.start_date <= now),
        or_(model.end_date.is_(None), model.end_date >= now),
    )


class SponsorRepository:
    """Repository for sponsor database operations"""

    @staticmethod
    def save(db: Session, row):
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def update(db: Session, row, **updates):
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

    @staticmethod
    def get_sponsors(db: Session, status: Optional[str] = None, tier: Optional[str] = None) -> list[Sponsor]:
        query = db.query(Sponsor).options(selectinload(Sponsor.placements))
        if status:
            query = query.filter(Sponsor.status == status)
        if tier:
            query = query.filter(Sponsor.tier == tier)
        return query.order_by(Sponsor.company_name).all()

    @staticmethod
    def get_sponsor(db: Session, sponsor_id: int) -> Optional[Sponsor]:
        return db.query(Sponsor).filter(Sponsor.id == sponsor_id).first()

    @staticmethod
    def get_active_sponsors(db: Session, now: datetime) -> list[Sponsor]:
        return (
            db.query(Sponsor)
            .filter(Sponsor.status == "ACTIVE", *_within_window(Sponsor, now))
            .order_by(Sponsor.company_name)
            .all()
        )

    @staticmethod
    def get_active_exclusive(db: Session, category: str, exclude_id: Optional[int] = None) -> Optional[Sponsor]:
        query = db.query(Sponsor).filter(
            Sponsor.status == "ACTIVE", Sponsor.exclusivity_category == category
        )
        if exclude_id is not None:
            query = query.filter(Sponsor.id != exclude_id)
        return query.first()

    @staticmethod
    def get_active_placements(db: Session, now: datetime, placement_type: Optional[str] = None) -> list[SponsorPlacement]:
        query = (
            db.query(SponsorPlacement)
            .join(Sponsor)
            .filter(
                SponsorPlacement.is_active.is_(True),
                Sponsor.status == "ACTIVE",
                *_within_window(SponsorPlacement, now),
                *_within_window(Sponsor, now),
            )
        )
        if placement_type:
            query = query.filter(SponsorPlacement.placement_type == placement_type)
        return query.order_by(SponsorPlacement.order, SponsorPlacement.id).all()

    @staticmethod
    def get_placement(db: Session, placement_id: int) -> Optional[SponsorPlacement]:
        return db.query(SponsorPlacement).filter(SponsorPlacement.id == placement_id).first()

    @staticmethod
    def get_events(db: Session, sponsor_id: int, start: datetime, end: datetime) -> list[SponsorEvent]:
        return (
            db.query(SponsorEvent)
            .filter(
                SponsorEvent.sponsor_id == sponsor_id,
                SponsorEvent.timestamp >= start,
                SponsorEvent.timestamp < end,
            )
            .all()
        )

    @staticmethod
    def get_report(db: Session, sponsor_id: int, report_month: str) -> Optional[SponsorReport]:
        return (
            db.query(SponsorReport)
            .filter(SponsorReport.sponsor_id == sponsor_id, SponsorReport.report_month == report_month)
            .first()
        )

    @staticmethod
    def get_reports(db: Session, sponsor_id: int) -> list[SponsorReport]:
        return (
            db.query(SponsorReport)
            .filter(SponsorReport.sponsor_id == sponsor_id)
            .order_by(SponsorReport.report_month.desc())
            .all()
        )

    @staticmethod
    def get_inquiries(db: Session, status: Optional[str] = None) -> list[SponsorInquiry]:
        query = db.query(SponsorInquiry)
        if status:
            query = query.filter(SponsorInquiry.status == status)
        return query.order_by(SponsorInquiry.id.desc()).all()

    @staticmethod
    def get_inquiry(db: Session, inquiry_id: int) -> Optional[SponsorInquiry]:
        return db.query(SponsorInquiry).filter(SponsorInquiry.id == inquiry_id).first()
