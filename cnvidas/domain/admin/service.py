"""Admin service - statistics, account moderation and emergency maintenance"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import create_audit_log
from ...cache import invalidate_available_doctors_cache
from ...models import Appointment, User
from ...services.emergency_reconciliation import diagnose_emergency_status, expire_stale_emergencies
from ..doctors.service import serialize_doctor
from ..notifications.service import create_notification
from .repository import AdminRepository

logger = logging.getLogger(__name__)

STATUS_LABELS = {"approved": "aprovado", "rejected": "recusado", "pending": "em análise"}


class AdminService:
    """Service layer for admin operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository()

    def get_stats(self) -> dict:
        return {
            "users_by_role": self.repo.count_by(self.db, User.role),
            "active_subscriptions_by_plan": self.repo.count_by(
                self.db, User.subscription_plan, User.subscription_status == "active"
            ),
            "appointments_by_status": self.repo.count_by(self.db, Appointment.status),
            "emergencies_waiting": self.repo.count_waiting_emergencies(self.db),
            "pending_claims": self.repo.count_pending_claims(self.db),
            "partners": self.repo.count_partners(self.db),
            "partner_services": self.repo.count_partner_services(self.db),
        }

    def list_users(self, role: Optional[str] = None, search: Optional[str] = None) -> list[User]:
        return self.repo.list_users(self.db, role, search)

    def set_user_active(self, user_id: int, is_active: bool, admin: User, request: Request) -> User:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user.id == admin.id and not is_active:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

        user.is_active = is_active
        user.status = "active" if is_active else "inactive"
        create_audit_log(
            self.db,
            "user_status_changed",
            user_id=admin.id,
            request=request,
            details={"target_user_id": user.id, "is_active": is_active},
        )
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"👤 Admin {admin.id} set user {user.id} is_active={is_active}")
        return user

    def set_doctor_status(self, doctor_id: int, status: str, admin: User, request: Request) -> dict:
        doctor = self.repo.get_doctor(self.db, doctor_id)
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found")

        previous = doctor.status
        doctor.status = status
        if status != "approved":
            doctor.available_for_emergency = False

        create_notification(
            self.db,
            user_id=doctor.user_id,
            title="Cadastro médico atualizado",
            message=f"Seu cadastro médico foi {STATUS_LABELS[status]}.",
            type="system",
            related_id=doctor.id,
        )
        create_audit_log(
            self.db,
            "doctor_status_changed",
            user_id=admin.id,
            request=request,
            details={"doctor_id": doctor.id, "from": previous, "to": status},
        )
        self.db.commit()
        self.db.refresh(doctor)
        invalidate_available_doctors_cache()

        logger.info(f"🩺 Doctor {doctor.id}: {previous} -> {status} by admin {admin.id}")
        return serialize_doctor(doctor)

    def set_partner_status(self, partner_id: int, status: str, admin: User, request: Request):
        partner = self.repo.get_partner(self.db, partner_id)
        if not partner:
            raise HTTPException(status_code=404, detail="Partner not found")

        previous = partner.status
        partner.status = status

        create_notification(
            self.db,
            user_id=partner.user_id,
            title="Cadastro de parceiro atualizado",
            message=f"O cadastro de {partner.business_name} foi {STATUS_LABELS[status]}.",
            type="system",
            related_id=partner.id,
        )
        create_audit_log(
            self.db,
            "partner_status_changed",
            user_id=admin.id,
            request=request,
            details={"partner_id": partner.id, "from": previous, "to": status},
        )
        self.db.commit()
        self.db.refresh(partner)

        logger.info(f"🤝 Partner {partner.id}: {previous} -> {status} by admin {admin.id}")
        return partner

    def list_qr_auth_logs(self, limit: int = 100) -> list[dict]:
        return [
            {
                "id": log.id,
                "scanner_user_id": log.scanner_user_id,
                "scanner_name": log.scanner.full_name if log.scanner else None,
                "token_user_id": log.token_user_id,
                "token_user_name": log.token_user.full_name if log.token_user else None,
                "scanned_at": log.scanned_at,
                "ip_address": log.ip_address,
                "success": log.success,
            }
            for log in self.repo.list_qr_auth_logs(self.db, limit)
        ]

    def emergency_diagnostics(self) -> dict:
        return diagnose_emergency_status(self.db)

    def expire_stale_emergencies(self, admin: User, request: Request) -> dict:
        summary = expire_stale_emergencies(self.db)
        create_audit_log(
            self.db,
            "emergency_expire_stale",
            user_id=admin.id,
            request=request,
            details={"expired": summary["expired"], "appointment_ids": summary["appointment_ids"]},
        )
        self.db.commit()
        return summary
