"""Service catalog repository - read access to bookable services"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service


class ServiceRepository:
    """Repository for service database reads"""

    @staticmethod
    def get_services(db: Session) -> list[Service]:
        return db.query(Service).order_by(Service.name).all()

    @staticmethod
    def get_service_by_id(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()
