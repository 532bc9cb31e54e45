"""Pydantic schemas for carriers and their licenses."""
from datetime import date, datetime
from typing import List, Optional
import uuid

from pydantic import Field, field_validator

from freightdocs.models.carrier import LicenseStatus
from freightdocs.schemas.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
    validate_country_code,
)


# ==================== LICENSE SCHEMAS ====================

class LicenseCreate(BaseCreateSchema):
    """One license entry of a carrier registration."""
    destination_country: str = Field(..., min_length=2, max_length=2)
    license_code: str = Field(..., min_length=1, max_length=50)
    expiry_date: date
    idoneidade_number: Optional[str] = Field(None, max_length=50)

    @field_validator("destination_country")
    @classmethod
    def check_destination(cls, v: str) -> str:
        return validate_country_code(v)


class LicenseResponse(BaseResponseSchema):
    """License with its status on the reference date."""
    id: uuid.UUID
    destination_country: str
    license_code: str
    idoneidade_number: Optional[str] = None
    expiry_date: date
    status: LicenseStatus
    days_to_expiry: int
    within_advisory_window: bool


# ==================== CARRIER SCHEMAS ====================

class CarrierCreate(BaseCreateSchema):
    """Carrier registration schema."""
    name: str = Field(..., min_length=2, max_length=200)
    home_country: str = Field(..., min_length=2, max_length=2)
    registration_number: str = Field(..., min_length=1, max_length=50)
    initial_crt_number: int = Field(1, ge=1)
    initial_mic_dta_number: int = Field(1, ge=1)
    licenses: List[LicenseCreate] = Field(default_factory=list)

    @field_validator("home_country")
    @classmethod
    def check_home_country(cls, v: Optional[str]) -> Optional[str]:
        return validate_country_code(v)


class CarrierUpdate(BaseUpdateSchema):
    """
    Carrier update schema.

    When ``licenses`` is given the whole license set is replaced.
    """
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    home_country: Optional[str] = Field(None, min_length=2, max_length=2)
    registration_number: Optional[str] = Field(None, min_length=1, max_length=50)
    initial_crt_number: Optional[int] = Field(None, ge=1)
    initial_mic_dta_number: Optional[int] = Field(None, ge=1)
    licenses: Optional[List[LicenseCreate]] = None

    @field_validator("home_country")
    @classmethod
    def check_home_country(cls, v: Optional[str]) -> Optional[str]:
        return validate_country_code(v)


class CarrierResponse(BaseResponseSchema):
    """Carrier response schema."""
    id: uuid.UUID
    name: str
    home_country: str
    registration_number: str
    initial_crt_number: int
    initial_mic_dta_number: int
    licenses: List[LicenseResponse] = []
    created_at: datetime
    updated_at: datetime


class CarrierBrief(BaseResponseSchema):
    """Carrier row for list views."""
    id: uuid.UUID
    name: str
    home_country: str
    registration_number: str
    destination_countries: List[str] = []


class CarrierListResponse(BaseResponseSchema):
    """Paginated carrier list."""
    items: List[CarrierBrief]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== ELIGIBILITY ====================

class AllowedCountriesResponse(BaseResponseSchema):
    carrier_id: uuid.UUID
    home_country: str
    countries: List[str]


class EligibilityResponse(BaseResponseSchema):
    carrier_id: uuid.UUID
    origin: str
    destination: str
    eligible: bool
    license_code: Optional[str] = None
    license_status: Optional[LicenseStatus] = None
