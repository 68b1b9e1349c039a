"""Doctor domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...security_utils import sanitize_text
from ...shared.validators import validate_hhmm


class DoctorResponse(BaseModel):
    id: int
    user_id: int
    full_name: str
    specialization: str
    license_number: str
    biography: Optional[str] = None
    education: Optional[str] = None
    experience_years: Optional[int] = None
    available_for_emergency: bool
    consultation_fee: Optional[int] = None
    profile_image: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class DoctorUpdate(BaseModel):
    specialization: Optional[str] = Field(None, min_length=2, max_length=255)
    biography: Optional[str] = Field(None, max_length=5000)
    education: Optional[str] = Field(None, max_length=5000)
    experience_years: Optional[int] = Field(None, ge=0, le=80)
    consultation_fee: Optional[int] = Field(None, ge=0)
    profile_image: Optional[str] = None

    @field_validator("biography", "education")
    @classmethod
    def clean_text(cls, v):
        return sanitize_text(v) if v else v


class ToggleAvailabilityRequest(BaseModel):
    # Omit to flip the current value
    available: Optional[bool] = None


class AvailabilitySlotIn(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilitySlotsReplace(BaseModel):
    slots: list[AvailabilitySlotIn]

    @model_validator(mode="after")
    def check_overlaps(self):
        by_day: dict[int, list[AvailabilitySlotIn]] = {}
        for slot in self.slots:
            by_day.setdefault(slot.day_of_week, []).append(slot)

        for day, slots in by_day.items():
            ordered = sorted(slots, key=lambda s: s.start_time)
            for previous, current in zip(ordered, ordered[1:]):
                # HH:MM strings compare chronologically
                if current.start_time < previous.end_time:
                    raise ValueError(
                        f"Slots overlap on day {day}: {previous.start_time}-{previous.end_time} "
                        f"and {current.start_time}-{current.end_time}"
                    )
        return self


class AvailabilitySlotResponse(BaseModel):
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True
