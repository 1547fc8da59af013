"""CRM repository - Database operations for clients and communications"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models_crm import ClientCommunication, CrmClient


class CrmRepository:
    """Repository for CRM database operations"""

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
    def get_clients(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[CrmClient]:
        query = db.query(CrmClient)
        if status:
            query = query.filter(CrmClient.status == status)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(func.lower(CrmClient.name).like(pattern), func.lower(CrmClient.email).like(pattern))
            )
        return query.order_by(CrmClient.id.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[CrmClient]:
        return db.query(CrmClient).filter(CrmClient.id == client_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[CrmClient]:
        return db.query(CrmClient).filter(CrmClient.email == email.strip().lower()).first()

    @staticmethod
    def get_by_user_or_email(db: Session, user_id: int, email: str) -> Optional[CrmClient]:
        return (
            db.query(CrmClient)
            .filter(or_(CrmClient.user_id == user_id, CrmClient.email == email.strip().lower()))
            .order_by(CrmClient.id)
            .first()
        )

    @staticmethod
    def get_by_highlevel_id(db: Session, contact_id: str) -> Optional[CrmClient]:
        return db.query(CrmClient).filter(CrmClient.highlevel_contact_id == contact_id).first()

    @staticmethod
    def get_bookings(db: Session) -> list[CrmClient]:
        return db.query(CrmClient).filter(CrmClient.last_booking_time.isnot(None)).all()

    @staticmethod
    def count_by(db: Session, column) -> dict:
        return dict(db.query(column, func.count(CrmClient.id)).group_by(column).all())

    @staticmethod
    def total_revenue(db: Session) -> int:
        return db.query(func.coalesce(func.sum(CrmClient.monthly_revenue), 0)).scalar() or 0

    @staticmethod
    def get_communications(db: Session, client_id: int) -> list[ClientCommunication]:
        return (
            db.query(ClientCommunication)
            .filter(ClientCommunication.client_id == client_id)
            .order_by(ClientCommunication.id.desc())
            .all()
        )
