"""Claim repository - Database operations for insurance claims"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Claim, User


class ClaimRepository:
    """Repository for claim database operations"""

    @staticmethod
    def list_for_user(db: Session, user_id: int) -> list[Claim]:
        return (
            db.query(Claim)
            .filter(Claim.user_id == user_id)
            .order_by(Claim.created_at.desc(), Claim.id.desc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, claim_id: int) -> Optional[Claim]:
        return db.query(Claim).options(joinedload(Claim.user)).filter(Claim.id == claim_id).first()

    @staticmethod
    def list_all(db: Session, status: Optional[str] = None) -> list[Claim]:
        query = db.query(Claim).options(joinedload(Claim.user))
        if status:
            query = query.filter(Claim.status == status)
        return query.order_by(Claim.created_at.desc(), Claim.id.desc()).all()

    @staticmethod
    def admin_ids(db: Session) -> list[int]:
        return [
            row.id
            for row in db.query(User.id).filter(User.role == "admin", User.is_active == True).all()  # noqa: E712
        ]
