import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import Doctor, Partner, User
from .security_utils import verify_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer access token to an active user"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    payload = verify_access_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as e:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        logger.warning(f"⚠️ Inactive user {user.id} attempted to authenticate")
        raise HTTPException(status_code=403, detail="Account is deactivated")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


def require_roles(*roles: str):
    """
    Create a dependency that only lets the given roles through

    Example usage:
        @router.get("/stats")
        async def stats(admin: User = Depends(require_roles("admin"))):
            ...
    """

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"⚠️ User {user.id} with role {user.role} denied (requires {roles})")
            raise HTTPException(status_code=403, detail=f"Access restricted to: {', '.join(roles)}")
        return user

    return role_checker


async def get_current_doctor(
    user: User = Depends(require_roles("doctor")),
    db: Session = Depends(get_db),
) -> Doctor:
    """Get the doctor profile of the authenticated doctor"""
    doctor = db.query(Doctor).filter(Doctor.user_id == user.id).first()
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor profile not found")
    return doctor


async def get_current_partner(
    user: User = Depends(require_roles("partner")),
    db: Session = Depends(get_db),
) -> Partner:
    """Get the partner profile of the authenticated partner"""
    partner = db.query(Partner).filter(Partner.user_id == user.id).first()
    if not partner:
        raise HTTPException(status_code=404, detail="Partner profile not found")
    return partner
