"""Claim domain schemas"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...security_utils import sanitize_text

REVIEW_STATUSES = ("approved", "rejected")


class ClaimCreate(BaseModel):
    type: str = Field(..., min_length=2, max_length=100)
    occurrence_date: date
    description: str = Field(..., min_length=10, max_length=5000)
    amount_requested: Optional[int] = Field(None, ge=0)
    documents: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("occurrence_date")
    @classmethod
    def not_in_future(cls, v):
        if v > date.today():
            raise ValueError("occurrence_date cannot be in the future")
        return v

    @field_validator("description")
    @classmethod
    def clean_description(cls, v):
        return sanitize_text(v)

    @field_validator("documents")
    @classmethod
    def check_documents(cls, v):
        for url in v:
            if not url.startswith(("https://", "http://")):
                raise ValueError("documents must be URLs")
        return v


class ClaimReview(BaseModel):
    status: str
    review_notes: Optional[str] = Field(None, max_length=5000)
    amount_approved: Optional[int] = Field(None, ge=0)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in REVIEW_STATUSES:
            raise ValueError("status must be 'approved' or 'rejected'")
        return v

    @field_validator("review_notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_text(v) if v else v

    @model_validator(mode="after")
    def amount_on_approval(self):
        if self.status == "approved" and self.amount_approved is None:
            raise ValueError("amount_approved is required when approving a claim")
        return self


class ClaimResponse(BaseModel):
    id: int
    user_id: int
    type: str
    occurrence_date: date
    description: str
    documents: Optional[list[str]] = None
    status: str
    review_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    amount_requested: Optional[int] = None
    amount_approved: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminClaimResponse(ClaimResponse):
    user_name: Optional[str] = None
    user_email: Optional[str] = None
