"""User service - registration, login, profile and QR identity checks"""

import base64
import io
import logging
from datetime import datetime, timedelta

import qrcode
from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...audit import client_ip, create_audit_log
from ...config import QR_TOKEN_TTL_MINUTES
from ...models import Doctor, Partner, QrToken, User
from ...security_utils import (
    check_password_strength,
    create_access_token,
    generate_hex_token,
    hash_password,
    mask_sensitive_data,
    verify_password,
)
from .repository import UserRepository
from .schemas import ChangePasswordRequest, LoginRequest, RegisterRequest, UserUpdate

logger = logging.getLogger(__name__)

QR_SCANNER_ROLES = ("admin", "partner")
QR_SUBJECT_ROLES = ("patient", "doctor")


def _require_strong_password(password: str) -> None:
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )


def render_qr_data_url(data: str) -> str:
    """Render `data` as a PNG QR code data URL"""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"


class UserService:
    """Service layer for accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, data: RegisterRequest) -> tuple[User, str]:
        logger.info(f"📥 Registering {data.role} account: {data.email}")
        _require_strong_password(data.password)

        conflict = self.repo.find_conflict(self.db, data.email, data.username, data.cpf)
        if conflict:
            raise HTTPException(status_code=409, detail=f"An account with this {conflict} already exists")
        if data.role == "doctor" and self.repo.license_taken(self.db, data.license_number):
            raise HTTPException(status_code=409, detail="A doctor with this license number already exists")

        try:
            user = User(
                email=data.email,
                username=data.username,
                password_hash=hash_password(data.password),
                full_name=data.full_name.strip(),
                role=data.role,
                cpf=data.cpf,
                phone=data.phone,
                subscription_plan="free",
                subscription_status="inactive",
                emergency_consultations_left=0,
                status="active",
            )
            self.db.add(user)
            self.db.flush()

            if data.role == "doctor":
                self.db.add(
                    Doctor(
                        user_id=user.id,
                        specialization=data.specialization,
                        license_number=data.license_number,
                        status="pending",
                    )
                )
            elif data.role == "partner":
                self.db.add(
                    Partner(
                        user_id=user.id,
                        business_name=data.business_name,
                        business_type=data.business_type,
                        phone=data.phone,
                        status="pending",
                    )
                )

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Registration failed for {data.email}: {e}")
            raise

        self.db.refresh(user)
        logger.info(f"✅ User {user.id} registered as {user.role}")
        return user, create_access_token(user.id, user.email, user.role)

    def login(self, data: LoginRequest, request: Request) -> tuple[User, str]:
        user = self.repo.get_by_login(self.db, data.email, data.username)
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning(f"⚠️ Failed login for {data.email or data.username} from {client_ip(request)}")
            raise HTTPException(status_code=401, detail="Invalid credentials")

        if not user.is_active:
            raise HTTPException(status_code=403, detail="Account is deactivated")

        user.last_login = datetime.utcnow()
        create_audit_log(self.db, "login", user_id=user.id, request=request)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"✅ User {user.id} logged in")
        return user, create_access_token(user.id, user.email, user.role)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(self, user: User, data: UserUpdate) -> User:
        updates = data.model_dump(exclude_unset=True)
        if updates.get("cpf") and self.repo.cpf_taken_by_other(self.db, updates["cpf"], user.id):
            raise HTTPException(status_code=409, detail="An account with this cpf already exists")

        for key, value in updates.items():
            if value is not None:
                setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        if "cpf" in updates:
            logger.info(f"📝 User {user.id} updated CPF to {mask_sensitive_data(user.cpf)}")
        return user

    def change_password(self, user: User, data: ChangePasswordRequest) -> dict:
        if not verify_password(data.current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        if data.current_password == data.new_password:
            raise HTTPException(status_code=400, detail="New password must be different")
        _require_strong_password(data.new_password)

        user.password_hash = hash_password(data.new_password)
        create_audit_log(self.db, "password_changed", user_id=user.id)
        self.db.commit()
        logger.info(f"🔐 Password changed for user {user.id}")
        return {"message": "Password updated"}

    # ------------------------------------------------------------------
    # QR identity
    # ------------------------------------------------------------------

    def generate_qr(self, user: User) -> dict:
        """Mint a short-lived single-use token and render it as a QR code"""
        token = generate_hex_token(32)
        expires_at = datetime.utcnow() + timedelta(minutes=QR_TOKEN_TTL_MINUTES)

        self.db.add(QrToken(user_id=user.id, token=token, expires_at=expires_at, used=False))
        self.db.commit()

        logger.info(f"🔳 QR token issued for user {user.id} (expires {expires_at.isoformat()})")
        return {"token": token, "expires_at": expires_at, "qr_code": render_qr_data_url(token)}

    def verify_qr(self, token: str, scanner: User, request: Request) -> dict:
        """
        Verify a scanned QR token. Only admins and partners may scan; every
        attempt on a known token is logged.
        """
        if scanner.role not in QR_SCANNER_ROLES:
            raise HTTPException(status_code=403, detail="Only partners and admins can verify QR codes")

        qr_token = self.repo.get_qr_token(self.db, token)
        now = datetime.utcnow()
        log_data = {
            "scanner_user_id": scanner.id,
            "ip_address": client_ip(request),
            "user_agent": request.headers.get("user-agent"),
        }

        if not qr_token or qr_token.used or qr_token.expires_at < now:
            if qr_token:
                self.repo.add_qr_log(
                    self.db, qr_token_id=qr_token.id, token_user_id=qr_token.user_id, success=False, **log_data
                )
                self.db.commit()
            logger.warning(f"⚠️ Invalid QR token scanned by user {scanner.id}")
            raise HTTPException(status_code=401, detail="Invalid or expired QR code")

        subject = qr_token.user
        if subject.role not in QR_SUBJECT_ROLES:
            self.repo.add_qr_log(self.db, qr_token_id=qr_token.id, token_user_id=subject.id, success=False, **log_data)
            self.db.commit()
            raise HTTPException(status_code=403, detail="QR code does not belong to a patient or doctor")

        qr_token.used = True
        self.repo.add_qr_log(self.db, qr_token_id=qr_token.id, token_user_id=subject.id, success=True, **log_data)
        self.db.commit()

        logger.info(f"✅ QR token of user {subject.id} verified by {scanner.role} {scanner.id}")
        return {
            "valid": True,
            "user": {
                "id": subject.id,
                "name": subject.full_name,
                "email": subject.email,
                "role": subject.role,
                "status": subject.status,
                "subscription_status": subject.subscription_status,
                "subscription_plan": subject.subscription_plan,
            },
        }
