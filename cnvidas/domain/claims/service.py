"""Claim service - filing and reviewing insurance claims"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import create_audit_log
from ...models import Claim, User
from ..notifications.service import create_notification
from .repository import ClaimRepository
from .schemas import ClaimCreate, ClaimReview

logger = logging.getLogger(__name__)


def serialize_admin_claim(claim: Claim) -> dict:
    return {
        "id": claim.id,
        "user_id": claim.user_id,
        "type": claim.type,
        "occurrence_date": claim.occurrence_date,
        "description": claim.description,
        "documents": claim.documents or [],
        "status": claim.status,
        "review_notes": claim.review_notes,
        "reviewed_by": claim.reviewed_by,
        "reviewed_at": claim.reviewed_at,
        "amount_requested": claim.amount_requested,
        "amount_approved": claim.amount_approved,
        "created_at": claim.created_at,
        "user_name": claim.user.full_name if claim.user else None,
        "user_email": claim.user.email if claim.user else None,
    }


class ClaimService:
    """Service layer for claims"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClaimRepository()

    def list_claims(self, user: User) -> list[Claim]:
        return self.repo.list_for_user(self.db, user.id)

    def get_claim(self, claim_id: int, user: User) -> Claim:
        claim = self.repo.get_by_id(self.db, claim_id)
        if not claim:
            raise HTTPException(status_code=404, detail="Claim not found")
        if claim.user_id != user.id:
            raise HTTPException(status_code=403, detail="You do not have access to this claim")
        return claim

    def create_claim(self, user: User, data: ClaimCreate) -> Claim:
        logger.info(f"📥 Claim filed by user {user.id}: {data.type}")
        try:
            claim = Claim(
                user_id=user.id,
                type=data.type,
                occurrence_date=data.occurrence_date,
                description=data.description,
                amount_requested=data.amount_requested,
                documents=data.documents,
                status="pending",
            )
            self.db.add(claim)
            self.db.flush()

            for admin_id in self.repo.admin_ids(self.db):
                create_notification(
                    self.db,
                    user_id=admin_id,
                    title="Novo sinistro",
                    message=f"{user.full_name} abriu o sinistro #{claim.id} ({data.type}).",
                    type="claim",
                    related_id=claim.id,
                    link=f"/admin/claims/{claim.id}",
                )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to file claim for user {user.id}: {e}")
            raise

        self.db.refresh(claim)
        return claim

    # Admin

    def list_all(self, status: Optional[str] = None) -> list[dict]:
        return [serialize_admin_claim(c) for c in self.repo.list_all(self.db, status)]

    def review(self, claim_id: int, data: ClaimReview, admin: User) -> Claim:
        """Approve or reject a pending claim and tell the patient"""
        claim = self.repo.get_by_id(self.db, claim_id)
        if not claim:
            raise HTTPException(status_code=404, detail="Claim not found")
        if claim.status != "pending":
            raise HTTPException(status_code=409, detail=f"Claim already {claim.status}")

        if data.status == "approved":
            if claim.amount_requested is not None and data.amount_approved > claim.amount_requested:
                raise HTTPException(status_code=400, detail="amount_approved cannot exceed amount_requested")

        claim.status = data.status
        claim.review_notes = data.review_notes
        claim.reviewed_by = admin.id
        claim.reviewed_at = datetime.utcnow()
        claim.amount_approved = data.amount_approved if data.status == "approved" else None

        label = "aprovado" if data.status == "approved" else "recusado"
        create_notification(
            self.db,
            user_id=claim.user_id,
            title=f"Sinistro {label}",
            message=f"Seu sinistro #{claim.id} foi {label}.",
            type="claim",
            related_id=claim.id,
            link=f"/claims/{claim.id}",
        )
        create_audit_log(
            self.db,
            "claim_reviewed",
            user_id=admin.id,
            details={"claim_id": claim.id, "status": data.status, "amount_approved": claim.amount_approved},
        )
        self.db.commit()
        self.db.refresh(claim)

        logger.info(f"✅ Claim {claim.id} {data.status} by admin {admin.id}")
        return claim
