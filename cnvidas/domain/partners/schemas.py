"""Partner domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...security_utils import sanitize_text
from ...shared.validators import validate_br_phone


class PartnerResponse(BaseModel):
    id: int
    user_id: int
    business_name: str
    trading_name: Optional[str] = None
    business_type: str
    description: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    zipcode: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    cnpj: Optional[str] = None
    nationwide_service: bool
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PartnerUpdate(BaseModel):
    business_name: Optional[str] = Field(None, min_length=2, max_length=255)
    trading_name: Optional[str] = Field(None, max_length=255)
    business_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=5000)
    website: Optional[str] = Field(None, max_length=500)
    address: Optional[str] = Field(None, max_length=255)
    zipcode: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    phone: Optional[str] = None
    cnpj: Optional[str] = None
    nationwide_service: Optional[bool] = None

    @field_validator("description")
    @classmethod
    def clean_description(cls, v):
        return sanitize_text(v) if v else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_br_phone(v)

    @field_validator("cnpj")
    @classmethod
    def check_cnpj(cls, v):
        if not v:
            return v
        digits = "".join(ch for ch in v if ch.isdigit())
        if len(digits) != 14:
            raise ValueError("CNPJ must have 14 digits")
        return digits

    @field_validator("zipcode")
    @classmethod
    def check_zipcode(cls, v):
        if not v:
            return v
        digits = "".join(ch for ch in v if ch.isdigit())
        if len(digits) != 8:
            raise ValueError("CEP must have 8 digits")
        return digits

    @field_validator("state")
    @classmethod
    def upper_state(cls, v):
        return v.upper() if v else v


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category: str = Field(..., min_length=2, max_length=100)
    regular_price: int = Field(..., ge=0)
    discount_price: int = Field(..., ge=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    is_featured: bool = False
    duration: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    is_national: bool = False
    service_image: Optional[str] = None

    @field_validator("description")
    @classmethod
    def clean_description(cls, v):
        return sanitize_text(v) if v else v

    @model_validator(mode="after")
    def check_prices(self):
        if self.discount_price > self.regular_price:
            raise ValueError("discount_price cannot be higher than regular_price")
        return self


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = Field(None, min_length=2, max_length=100)
    regular_price: Optional[int] = Field(None, ge=0)
    discount_price: Optional[int] = Field(None, ge=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    is_featured: Optional[bool] = None
    duration: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    is_national: Optional[bool] = None
    service_image: Optional[str] = None

    @field_validator("description")
    @classmethod
    def clean_description(cls, v):
        return sanitize_text(v) if v else v


class ServiceResponse(BaseModel):
    id: int
    partner_id: int
    name: str
    description: Optional[str] = None
    category: str
    regular_price: int
    discount_price: int
    discount_percentage: Optional[int] = None
    is_featured: bool
    duration: Optional[int] = None
    is_active: bool
    is_national: bool
    service_image: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicServiceResponse(ServiceResponse):
    partner_name: Optional[str] = None
    partner_city: Optional[str] = None
    partner_state: Optional[str] = None
