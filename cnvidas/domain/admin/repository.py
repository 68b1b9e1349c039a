"""Admin repository - aggregate queries for the back office"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Claim, Doctor, Partner, PartnerService, QrAuthLog, User


class AdminRepository:
    """Repository for admin queries"""

    @staticmethod
    def count_by(db: Session, column, *filters) -> dict[str, int]:
        query = db.query(column, func.count()).filter(*filters).group_by(column)
        return {key: count for key, count in query.all()}

    @staticmethod
    def count_waiting_emergencies(db: Session) -> int:
        return (
            db.query(Appointment)
            .filter(Appointment.is_emergency == True, Appointment.status == "waiting")  # noqa: E712
            .count()
        )

    @staticmethod
    def count_pending_claims(db: Session) -> int:
        return db.query(Claim).filter(Claim.status == "pending").count()

    @staticmethod
    def count_partners(db: Session) -> int:
        return db.query(Partner).count()

    @staticmethod
    def count_partner_services(db: Session) -> int:
        return db.query(PartnerService).count()

    @staticmethod
    def list_users(db: Session, role: Optional[str] = None, search: Optional[str] = None) -> list[User]:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(User.full_name.ilike(pattern), User.email.ilike(pattern), User.username.ilike(pattern))
            )
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Optional[Doctor]:
        return db.query(Doctor).options(joinedload(Doctor.user)).filter(Doctor.id == doctor_id).first()

    @staticmethod
    def get_partner(db: Session, partner_id: int) -> Optional[Partner]:
        return db.query(Partner).filter(Partner.id == partner_id).first()

    @staticmethod
    def list_qr_auth_logs(db: Session, limit: int = 100) -> list[QrAuthLog]:
        return (
            db.query(QrAuthLog)
            .options(joinedload(QrAuthLog.scanner), joinedload(QrAuthLog.token_user))
            .order_by(QrAuthLog.scanned_at.desc(), QrAuthLog.id.desc())
            .limit(limit)
            .all()
        )
