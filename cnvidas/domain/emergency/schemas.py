"""Emergency domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...security_utils import sanitize_text


class EmergencyStartRequest(BaseModel):
    preferred_doctor_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_text(v) if v else v


class EmergencyCompleteRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=5000)
    duration: Optional[int] = Field(None, ge=1, le=480)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_text(v) if v else v


class EmergencyCaseResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: Optional[int] = None
    preferred_doctor_id: Optional[int] = None
    status: str
    is_emergency: bool
    type: str
    date: datetime
    duration: int
    notes: Optional[str] = None
    telemed_provider: Optional[str] = None
    telemed_room_name: Optional[str] = None
    telemed_link: Optional[str] = None
    payment_status: str
    cancellation_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmergencyStartResponse(BaseModel):
    appointment: EmergencyCaseResponse
    room_url: str
    emergency_consultations_left: Optional[int] = None  # None on unlimited plans


class WaitingCaseResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    notes: Optional[str] = None
    preferred_doctor_id: Optional[int] = None
    waiting_since: datetime
    waiting_minutes: int
    room_url: Optional[str] = None


class EmergencyAcceptResponse(BaseModel):
    appointment: EmergencyCaseResponse
    room_url: str
    token: Optional[str] = None


class MeetingTokenResponse(BaseModel):
    token: str
    room_name: str
    room_url: str
    is_owner: bool


class EmergencyStatusResponse(BaseModel):
    id: int
    status: str
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    room_name: Optional[str] = None
    room_url: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
