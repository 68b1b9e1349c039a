"""Billing domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PlanResponse(BaseModel):
    id: int
    name: str
    display_name: str
    price: int
    emergency_consultations: str
    specialist_discount: int
    insurance_coverage: bool
    features: Optional[list[str]] = None
    is_default: bool

    class Config:
        from_attributes = True


class CurrentSubscriptionResponse(BaseModel):
    plan: str
    plan_display_name: str
    subscription_status: Optional[str] = None
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    emergency_consultations_left: Optional[int] = None  # None on unlimited plans
    unlimited_emergencies: bool
    specialist_discount: int
    allowance_reset_date: Optional[datetime] = None


class CreateSessionRequest(BaseModel):
    plan_id: int


class CreateSessionResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount: int
    currency: str
    plan_name: str


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str


class PreauthorizeRequest(BaseModel):
    appointment_id: int


class PaymentStatusResponse(BaseModel):
    appointment_id: int
    payment_status: str
    payment_amount: Optional[int] = None
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    is_plan_included: bool = False
    message: Optional[str] = None
