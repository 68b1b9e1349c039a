"""User domain schemas - registration, login, profile and QR"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_br_phone, validate_cpf, validate_email

REGISTRATION_ROLES = ("patient", "doctor", "partner")


class RegisterRequest(BaseModel):
    email: str
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=2, max_length=255)
    role: str = "patient"
    cpf: Optional[str] = None
    phone: Optional[str] = None
    # Doctor fields
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    # Partner fields
    business_name: Optional[str] = None
    business_type: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("username")
    @classmethod
    def check_username(cls, v):
        v = v.strip().lower()
        if not v.replace("_", "").replace(".", "").isalnum():
            raise ValueError("Username may only contain letters, numbers, '.' and '_'")
        return v

    @field_validator("cpf")
    @classmethod
    def check_cpf(cls, v):
        return validate_cpf(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_br_phone(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v not in REGISTRATION_ROLES:
            raise ValueError(f"role must be one of: {', '.join(REGISTRATION_ROLES)}")
        return v

    @model_validator(mode="after")
    def check_role_fields(self):
        if self.role == "doctor" and not (self.specialization and self.license_number):
            raise ValueError("Doctors must provide specialization and license_number")
        if self.role == "partner" and not (self.business_name and self.business_type):
            raise ValueError("Partners must provide business_name and business_type")
        return self


class LoginRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def check_identifier(self):
        if not self.email and not self.username:
            raise ValueError("Provide email or username")
        return self


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    full_name: str
    role: str
    cpf: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    birth_date: Optional[date] = None
    profile_image: Optional[str] = None
    is_active: bool
    status: Optional[str] = None
    email_verified: bool
    subscription_plan: str
    subscription_status: Optional[str] = None
    emergency_consultations_left: int
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    cpf: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    zipcode: Optional[str] = None
    birth_date: Optional[date] = None
    profile_image: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_br_phone(v)

    @field_validator("cpf")
    @classmethod
    def check_cpf(cls, v):
        return validate_cpf(v)

    @field_validator("state")
    @classmethod
    def upper_state(cls, v):
        return v.upper() if v else v

    @field_validator("zipcode")
    @classmethod
    def check_zipcode(cls, v):
        if not v:
            return v
        digits = "".join(ch for ch in v if ch.isdigit())
        if len(digits) != 8:
            raise ValueError("CEP must have 8 digits")
        return digits


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class QrGenerateResponse(BaseModel):
    token: str
    expires_at: datetime
    qr_code: str


class QrVerifyRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)


class QrUserInfo(BaseModel):
    id: int
    name: str
    email: str
    role: str
    status: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_plan: Optional[str] = None


class QrVerifyResponse(BaseModel):
    valid: bool
    user: QrUserInfo
