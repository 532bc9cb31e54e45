"""Pydantic schemas for MIC/DTA documents."""
from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field, field_validator, model_validator

from freightdocs.models.document import MicDtaType
from freightdocs.schemas.base import BaseCreateSchema, BaseResponseSchema, validate_country_code


class MicDtaCreate(BaseCreateSchema):
    """
    MIC/DTA batch request.

    NORMAL: ``crt_id`` is required; carrier and route come from the CRT and,
    if sent anyway, must match it.
    LASTRE: ``carrier_id``, ``origin_country`` and ``destination_country``
    are required and ``crt_id`` must be absent.
    """
    mic_dta_type: MicDtaType = MicDtaType.NORMAL
    count: int = Field(1, ge=1, description="Number of MIC/DTAs to issue")
    crt_id: Optional[uuid.UUID] = None
    carrier_id: Optional[uuid.UUID] = None
    origin_country: Optional[str] = Field(None, min_length=2, max_length=2)
    destination_country: Optional[str] = Field(None, min_length=2, max_length=2)

    @field_validator("origin_country", "destination_country")
    @classmethod
    def check_country(cls, v: Optional[str]) -> Optional[str]:
        return validate_country_code(v)

    @model_validator(mode="after")
    def check_variant_fields(self) -> "MicDtaCreate":
        if self.mic_dta_type == MicDtaType.NORMAL:
            if self.crt_id is None:
                raise ValueError("crt_id is required for NORMAL MIC/DTA")
        else:
            if self.crt_id is not None:
                raise ValueError("LASTRE MIC/DTA cannot reference a CRT")
            if not (self.carrier_id and self.origin_country and self.destination_country):
                raise ValueError(
                    "carrier_id, origin_country and destination_country are required for LASTRE MIC/DTA"
                )
        return self


class MicDtaResponse(BaseResponseSchema):
    """MIC/DTA response schema."""
    id: uuid.UUID
    number: str
    sequence_number: int
    mic_dta_type: MicDtaType
    carrier_id: uuid.UUID
    crt_id: Optional[uuid.UUID] = None
    origin_country: str
    destination_country: str
    license_code: Optional[str] = None
    created_at: datetime


class MicDtaListResponse(BaseResponseSchema):
    """Paginated MIC/DTA list."""
    items: List[MicDtaResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class MicDtaBatchResponse(BaseResponseSchema):
    """Documents issued by one request, in sequence order."""
    items: List[MicDtaResponse]
    count: int
