"""Partner router - partner self-service and the public service catalogue"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_partner
from ...database import get_db
from ...models import Partner
from .schemas import (
    PartnerResponse,
    PartnerUpdate,
    PublicServiceResponse,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from .service import PartnerServiceManager

router = APIRouter(prefix="/partners", tags=["Partners"])
services_router = APIRouter(prefix="/services", tags=["Services"])


def get_partner_manager(db: Session = Depends(get_db)) -> PartnerServiceManager:
    """Dependency injection for PartnerServiceManager"""
    return PartnerServiceManager(db)


# ============================================================================
# PARTNER SELF-SERVICE
# ============================================================================


@router.get("/me", response_model=PartnerResponse)
async def get_my_partner(partner: Partner = Depends(get_current_partner)):
    return partner


@router.put("/me", response_model=PartnerResponse)
async def update_my_partner(
    data: PartnerUpdate,
    partner: Partner = Depends(get_current_partner),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    return manager.update_profile(partner, data)


@router.get("/my-services", response_model=list[ServiceResponse])
async def my_services(
    partner: Partner = Depends(get_current_partner),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    return manager.list_my_services(partner)


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    partner: Partner = Depends(get_current_partner),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    return manager.create_service(partner, data)


@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    partner: Partner = Depends(get_current_partner),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    return manager.update_service(partner, service_id, data)


@router.delete("/services/{service_id}")
async def delete_service(
    service_id: int,
    partner: Partner = Depends(get_current_partner),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    return manager.delete_service(partner, service_id)


# ============================================================================
# PUBLIC CATALOGUE
# ============================================================================


@services_router.get("", response_model=list[PublicServiceResponse])
async def list_services(
    category: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    manager: PartnerServiceManager = Depends(get_partner_manager),
):
    """Active services of approved partners; a city filter also includes national services"""
    return manager.list_public(category, city, featured)


@services_router.get("/{service_id}", response_model=PublicServiceResponse)
async def get_service(service_id: int, manager: PartnerServiceManager = Depends(get_partner_manager)):
    return manager.get_public(service_id)
