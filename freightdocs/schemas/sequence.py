"""Pydantic schemas for sequence inspection."""
from typing import Optional
import uuid

from freightdocs.models.document import DocumentType, MicDtaType
from freightdocs.schemas.base import BaseResponseSchema


class SequencePreviewResponse(BaseResponseSchema):
    """Advisory next number; nothing is reserved."""
    carrier_id: uuid.UUID
    document_type: DocumentType
    mic_dta_type: Optional[MicDtaType] = None
    origin_country: str
    destination_country: str
    scope_key: str
    current_number: int
    next_number: int
    next_display_number: str


class SequenceSyncResponse(BaseResponseSchema):
    carrier_id: uuid.UUID
    document_type: DocumentType
    scope_key: str
    current_number: int
