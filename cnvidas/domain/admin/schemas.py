"""Admin domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

REVIEW_STATUSES = ("approved", "rejected", "pending")


class UserStatusUpdate(BaseModel):
    is_active: bool


class ReviewStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in REVIEW_STATUSES:
            raise ValueError("status must be one of: approved, rejected, pending")
        return v


class AdminStatsResponse(BaseModel):
    users_by_role: dict[str, int]
    active_subscriptions_by_plan: dict[str, int]
    appointments_by_status: dict[str, int]
    emergencies_waiting: int
    pending_claims: int
    partners: int
    partner_services: int


class QrAuthLogResponse(BaseModel):
    id: int
    scanner_user_id: Optional[int] = None
    scanner_name: Optional[str] = None
    token_user_id: Optional[int] = None
    token_user_name: Optional[str] = None
    scanned_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    success: bool
