"""Appointment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...security_utils import sanitize_text
from ...shared.validators import to_naive_utc

APPOINTMENT_TYPES = ("telemedicine", "presential")


class AppointmentCreate(BaseModel):
    """Schema for booking a regular consultation"""

    doctor_id: int
    date: datetime
    duration: int = Field(30, ge=10, le=240)
    type: str = "telemedicine"
    notes: Optional[str] = Field(None, max_length=2000)
    specialization: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in APPOINTMENT_TYPES:
            raise ValueError(f"type must be one of: {', '.join(APPOINTMENT_TYPES)}")
        return v

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_text(v) if v else v


class AppointmentUpdate(BaseModel):
    """Schema for rescheduling"""

    date: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=10, le=240)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_text(v) if v else v


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: Optional[int] = None
    preferred_doctor_id: Optional[int] = None
    is_emergency: bool
    status: str
    type: str
    date: datetime
    duration: int
    notes: Optional[str] = None
    specialization: Optional[str] = None
    telemed_provider: Optional[str] = None
    telemed_room_name: Optional[str] = None
    telemed_link: Optional[str] = None
    payment_status: str
    payment_amount: Optional[int] = None
    payment_captured_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
