"""Pydantic schemas for CRT documents."""
from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field, field_validator

from freightdocs.schemas.base import BaseCreateSchema, BaseResponseSchema, validate_country_code


class CrtCreate(BaseCreateSchema):
    """CRT batch request. Every CRT of the batch gets the same shipment data."""
    carrier_id: uuid.UUID
    origin_country: str = Field(..., min_length=2, max_length=2)
    destination_country: str = Field(..., min_length=2, max_length=2)
    count: int = Field(1, ge=1, description="Number of CRTs to issue")
    commercial_invoice: str = Field(..., min_length=1, max_length=100)
    exporter: str = Field(..., min_length=1, max_length=200)
    importer: str = Field(..., min_length=1, max_length=200)

    @field_validator("origin_country", "destination_country")
    @classmethod
    def check_country(cls, v: str) -> str:
        return validate_country_code(v)


class CrtResponse(BaseResponseSchema):
    """CRT response schema."""
    id: uuid.UUID
    number: str
    sequence_number: int
    carrier_id: uuid.UUID
    origin_country: str
    destination_country: str
    license_code: Optional[str] = None
    commercial_invoice: str
    exporter: str
    importer: str
    created_at: datetime


class CrtListResponse(BaseResponseSchema):
    """Paginated CRT list."""
    items: List[CrtResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class CrtBatchResponse(BaseResponseSchema):
    """Documents issued by one request, in sequence order."""
    items: List[CrtResponse]
    count: int
