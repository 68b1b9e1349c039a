"""Claim router - patient claims and admin review"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...email_service import deliver_safely, send_claim_reviewed_email
from ...models import User
from .schemas import AdminClaimResponse, ClaimCreate, ClaimResponse, ClaimReview
from .service import ClaimService

router = APIRouter(prefix="/claims", tags=["Claims"])
admin_router = APIRouter(prefix="/admin/claims", tags=["Admin"])


def get_claim_service(db: Session = Depends(get_db)) -> ClaimService:
    """Dependency injection for ClaimService"""
    return ClaimService(db)


@router.get("", response_model=list[ClaimResponse])
async def list_claims(
    current_user: User = Depends(get_current_user),
    service: ClaimService = Depends(get_claim_service),
):
    return service.list_claims(current_user)


@router.post("", response_model=ClaimResponse, status_code=201)
async def create_claim(
    data: ClaimCreate,
    current_user: User = Depends(require_roles("patient")),
    service: ClaimService = Depends(get_claim_service),
):
    return service.create_claim(current_user, data)


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: int,
    current_user: User = Depends(get_current_user),
    service: ClaimService = Depends(get_claim_service),
):
    return service.get_claim(claim_id, current_user)


# ============================================================================
# ADMIN REVIEW
# ============================================================================


@admin_router.get("", response_model=list[AdminClaimResponse])
async def admin_list_claims(
    status: Optional[str] = Query(None),
    admin: User = Depends(require_roles("admin")),
    service: ClaimService = Depends(get_claim_service),
):
    return service.list_all(status)


@admin_router.put("/{claim_id}/review", response_model=ClaimResponse)
async def review_claim(
    claim_id: int,
    data: ClaimReview,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_roles("admin")),
    service: ClaimService = Depends(get_claim_service),
):
    claim = service.review(claim_id, data, admin)
    background_tasks.add_task(
        deliver_safely,
        send_claim_reviewed_email,
        claim.user.email,
        claim.user.full_name,
        claim.id,
        claim.status,
        claim.amount_approved,
        claim.review_notes,
    )
    return claim
