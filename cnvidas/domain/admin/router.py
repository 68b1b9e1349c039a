"""Admin router - back office endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import User
from ..doctors.schemas import DoctorResponse
from ..partners.schemas import PartnerResponse
from ..users.schemas import UserResponse
from .schemas import AdminStatsResponse, QrAuthLogResponse, ReviewStatusUpdate, UserStatusUpdate
from .service import AdminService

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_stats()


# ============================================================================
# ACCOUNTS
# ============================================================================


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_users(role, search)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    request: Request,
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.set_user_active(user_id, data.is_active, admin, request)


@router.put("/doctors/{doctor_id}/status", response_model=DoctorResponse)
async def update_doctor_status(
    doctor_id: int,
    data: ReviewStatusUpdate,
    request: Request,
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.set_doctor_status(doctor_id, data.status, admin, request)


@router.put("/partners/{partner_id}/status", response_model=PartnerResponse)
async def update_partner_status(
    partner_id: int,
    data: ReviewStatusUpdate,
    request: Request,
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.set_partner_status(partner_id, data.status, admin, request)


@router.get("/qr-auth-logs", response_model=list[QrAuthLogResponse])
async def list_qr_auth_logs(
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_qr_auth_logs(limit)


# ============================================================================
# EMERGENCY MAINTENANCE
# ============================================================================


@router.get("/emergency/diagnostics")
async def emergency_diagnostics(
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.emergency_diagnostics()


@router.post("/emergency/expire-stale")
async def expire_stale(
    request: Request,
    admin: User = Depends(require_roles("admin")),
    service: AdminService = Depends(get_admin_service),
):
    return service.expire_stale_emergencies(admin, request)
