"""Partner service - partner profile and discounted service listings"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Partner, PartnerService
from .repository import PartnerRepository
from .schemas import PartnerUpdate, ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


def derive_discount_percentage(regular_price: int, discount_price: int) -> int:
    if regular_price <= 0:
        return 0
    return round((regular_price - discount_price) * 100 / regular_price)


def serialize_public_service(service: PartnerService) -> dict:
    partner = service.partner
    return {
        "id": service.id,
        "partner_id": service.partner_id,
        "name": service.name,
        "description": service.description,
        "category": service.category,
        "regular_price": service.regular_price,
        "discount_price": service.discount_price,
        "discount_percentage": service.discount_percentage,
        "is_featured": service.is_featured,
        "duration": service.duration,
        "is_active": service.is_active,
        "is_national": service.is_national,
        "service_image": service.service_image,
        "created_at": service.created_at,
        "partner_name": partner.trading_name or partner.business_name if partner else None,
        "partner_city": partner.city if partner else None,
        "partner_state": partner.state if partner else None,
    }


class PartnerServiceManager:
    """Service layer for partners and their listings"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PartnerRepository()

    def update_profile(self, partner: Partner, data: PartnerUpdate) -> Partner:
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(partner, key, value)
        self.db.commit()
        self.db.refresh(partner)
        return partner

    def list_my_services(self, partner: Partner) -> list[PartnerService]:
        return self.repo.list_services_for_partner(self.db, partner.id)

    def create_service(self, partner: Partner, data: ServiceCreate) -> PartnerService:
        service_data = data.model_dump()
        if service_data["discount_percentage"] is None:
            service_data["discount_percentage"] = derive_discount_percentage(data.regular_price, data.discount_price)

        service = self.repo.create_service(self.db, partner.id, **service_data)
        logger.info(f"✅ Partner {partner.id} created service {service.id}: {service.name}")
        return service

    def update_service(self, partner: Partner, service_id: int, data: ServiceUpdate) -> PartnerService:
        service = self._get_owned(partner, service_id)
        updates = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}

        regular = updates.get("regular_price", service.regular_price)
        discount = updates.get("discount_price", service.discount_price)
        if regular is not None and discount is not None and discount > regular:
            raise HTTPException(status_code=400, detail="discount_price cannot be higher than regular_price")

        prices_changed = "regular_price" in updates or "discount_price" in updates
        if prices_changed and updates.get("discount_percentage") is None:
            updates["discount_percentage"] = derive_discount_percentage(regular, discount)

        return self.repo.update_service(self.db, service, **updates)

    def delete_service(self, partner: Partner, service_id: int) -> dict:
        service = self._get_owned(partner, service_id)
        self.repo.delete_service(self.db, service)
        logger.info(f"🗑️ Partner {partner.id} deleted service {service_id}")
        return {"message": "Service deleted"}

    def _get_owned(self, partner: Partner, service_id: int) -> PartnerService:
        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if service.partner_id != partner.id:
            raise HTTPException(status_code=403, detail="This service belongs to another partner")
        return service

    # Public catalogue

    def list_public(self, category: Optional[str], city: Optional[str], featured: Optional[bool]) -> list[dict]:
        return [serialize_public_service(s) for s in self.repo.list_public_services(self.db, category, city, featured)]

    def get_public(self, service_id: int) -> dict:
        service = self.repo.get_public_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        return serialize_public_service(service)
