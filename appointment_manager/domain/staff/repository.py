"""Staff directory repository - read access to staff members"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Staff


class StaffRepository:
    """Repository for staff database reads"""

    @staticmethod
    def get_staff_by_id(db: Session, staff_id: int) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id).first()

    @staticmethod
    def get_staff_for_update(db: Session, staff_id: int) -> Optional[Staff]:
        """Load a staff row with a row lock held until the transaction ends"""
        return db.query(Staff).filter(Staff.id == staff_id).with_for_update().first()

    @staticmethod
    def list_staff(db: Session, service_type: Optional[str] = None) -> list[Staff]:
        query = db.query(Staff)
        if service_type:
            query = query.filter(Staff.service_type == service_type)
        return query.order_by(Staff.name).all()

    @staticmethod
    def get_service_types(db: Session) -> list[str]:
        rows = db.query(Staff.service_type).distinct().order_by(Staff.service_type).all()
        return [row[0] for row in rows]
