"""Partner repository - Database operations for partners and their services"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Partner, PartnerService


class PartnerRepository:
    """Repository for partner database operations"""

    @staticmethod
    def list_services_for_partner(db: Session, partner_id: int) -> list[PartnerService]:
        return (
            db.query(PartnerService)
            .filter(PartnerService.partner_id == partner_id)
            .order_by(PartnerService.created_at.desc(), PartnerService.id.desc())
            .all()
        )

    @staticmethod
    def get_service(db: Session, service_id: int, partner_id: Optional[int] = None) -> Optional[PartnerService]:
        query = db.query(PartnerService).filter(PartnerService.id == service_id)
        if partner_id is not None:
            query = query.filter(PartnerService.partner_id == partner_id)
        return query.first()

    @staticmethod
    def create_service(db: Session, partner_id: int, **service_data) -> PartnerService:
        service = PartnerService(partner_id=partner_id, **service_data)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def update_service(db: Session, service: PartnerService, **updates) -> PartnerService:
        for key, value in updates.items():
            if value is not None and hasattr(service, key):
                setattr(service, key, value)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def delete_service(db: Session, service: PartnerService) -> None:
        db.delete(service)
        db.commit()

    @staticmethod
    def list_public_services(
        db: Session,
        category: Optional[str] = None,
        city: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> list[PartnerService]:
        """Active services from approved partners"""
        query = (
            db.query(PartnerService)
            .join(Partner, PartnerService.partner_id == Partner.id)
            .options(joinedload(PartnerService.partner))
            .filter(PartnerService.is_active == True, Partner.status == "approved")  # noqa: E712
        )
        if category:
            query = query.filter(PartnerService.category == category)
        if city:
            query = query.filter(
                or_(
                    func.lower(Partner.city) == city.lower(),
                    PartnerService.is_national == True,  # noqa: E712
                    Partner.nationwide_service == True,  # noqa: E712
                )
            )
        if featured is not None:
            query = query.filter(PartnerService.is_featured == featured)
        return query.order_by(PartnerService.is_featured.desc(), PartnerService.id.asc()).all()

    @staticmethod
    def get_public_service(db: Session, service_id: int) -> Optional[PartnerService]:
        return (
            db.query(PartnerService)
            .join(Partner, PartnerService.partner_id == Partner.id)
            .filter(
                PartnerService.id == service_id,
                PartnerService.is_active == True,  # noqa: E712
                Partner.status == "approved",
            )
            .first()
        )
