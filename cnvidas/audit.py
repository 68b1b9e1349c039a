"""Audit trail for logins and admin actions"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from .models import AuditLog

logger = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def create_audit_log(
    db: Session,
    action: str,
    user_id: Optional[int] = None,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Stage an audit log entry; it is committed with the caller's transaction"""
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
        details=details or {},
    )
    db.add(audit_log)
    logger.debug(f"📝 Audit: {action} by user {user_id}")
    return audit_log
