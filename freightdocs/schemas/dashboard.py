"""Pydantic schemas for the dashboard aggregate."""
from datetime import date, datetime
from typing import List, Optional
import uuid

from freightdocs.schemas.base import BaseResponseSchema


class DocumentCounts(BaseResponseSchema):
    carriers: int = 0
    crts: int = 0
    mic_dtas: int = 0
    mic_dtas_normal: int = 0
    mic_dtas_lastre: int = 0


class RecentDocument(BaseResponseSchema):
    id: uuid.UUID
    document_type: str
    number: str
    carrier_id: uuid.UUID
    origin_country: str
    destination_country: str
    created_at: datetime


class LicenseAlert(BaseResponseSchema):
    carrier_id: uuid.UUID
    carrier_name: str
    destination_country: str
    license_code: str
    expiry_date: date
    days_to_expiry: int


class DashboardResponse(BaseResponseSchema):
    counts: DocumentCounts
    recent_crts: List[RecentDocument] = []
    recent_mic_dtas: List[RecentDocument] = []
    expired_licenses: List[LicenseAlert] = []
    expiring_licenses: List[LicenseAlert] = []
    generated_at: Optional[datetime] = None
